"""Test dead reckoning, bearing and distance helpers."""
import math

import numpy as np
import pytest

from engine.geodesy import (
    EARTH_RADIUS_KM, KM_TO_NM, advance, bearing, distance_nm, leg_distances, measure_path,
)


def test_advance_east_at_ten_knots_for_an_hour():
    """10 kn for 60 minutes moves 0.18 degrees along the heading."""
    lat, lng = advance((0.0, 0.0), 90, 10, 60)
    assert lat == pytest.approx(0.0, abs=1e-12)
    assert lng == pytest.approx(0.18)


def test_advance_north_changes_latitude_only():
    lat, lng = advance((10.0, 20.0), 0, 10, 30)
    assert lat == pytest.approx(10.09)
    assert lng == pytest.approx(20.0, abs=1e-12)


def test_advance_ignores_latitude():
    """The planar approximation moves the same angular distance at any latitude."""
    _, lng_equator = advance((0.0, 0.0), 90, 12, 30)
    _, lng_north = advance((60.0, 0.0), 90, 12, 30)
    assert lng_equator == pytest.approx(lng_north)


def test_advance_zero_time_is_identity():
    assert advance((1.5, -3.0), 123, 25, 0) == (1.5, -3.0)


@pytest.mark.parametrize("to, expected", [
    ((1.0, 0.0), 0.0),
    ((0.0, 1.0), 90.0),
    ((-1.0, 0.0), 180.0),
    ((0.0, -1.0), 270.0),
])
def test_bearing_cardinal_directions(to, expected):
    assert bearing((0.0, 0.0), to) == pytest.approx(expected)


def test_bearing_is_normalized():
    for to in [(-1.0, -1.0), (0.5, -2.0), (-3.0, 0.1)]:
        b = bearing((0.0, 0.0), to)
        assert 0 <= b < 360


def test_distance_one_degree_of_latitude():
    assert distance_nm((0.0, 0.0), (1.0, 0.0)) == pytest.approx(60.04, abs=0.01)


def test_distance_same_point_is_zero():
    assert distance_nm((12.3, 45.6), (12.3, 45.6)) == 0.0


@pytest.mark.parametrize("target", [(0.0, 0.1), (0.1, 0.0), (0.05, 0.05), (-0.08, 0.03)])
def test_bearing_and_distance_are_consistent_with_advance(target):
    """Steering the bearing for the haversine distance lands near the target.

    `advance` uses a fixed degrees-per-knot-minute scale, so the landing
    point is allowed to miss by a fraction of the leg.
    """
    start = (0.0, 0.0)
    nm = distance_nm(start, target)
    landed = advance(start, bearing(start, target), nm, 60)
    leg_deg = math.hypot(target[0] - start[0], target[1] - start[1])
    miss = math.hypot(landed[0] - target[0], landed[1] - target[1])
    assert miss <= 0.1 * leg_deg


def test_near_antipodal_distance_is_half_circumference():
    """Rounding in the haversine term must not break points on opposite sides of the globe."""
    a = (-11.056008330198168, -1.5075931025337752)
    b = (11.056008330198168, 178.49240689746622)
    half = math.pi * EARTH_RADIUS_KM * KM_TO_NM
    assert distance_nm(a, b) == pytest.approx(half, rel=1e-6)
    np.testing.assert_allclose(leg_distances([a, b]), [half], rtol=1e-6)
    assert measure_path([a, b]) == pytest.approx(half, rel=1e-6)


def test_leg_distances_match_scalar_distance():
    pts = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (-2.0, 3.5)]
    expected = [distance_nm(a, b) for a, b in zip(pts, pts[1:])]
    np.testing.assert_allclose(leg_distances(pts), expected, rtol=1e-12)


def test_measure_path_units():
    pts = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0)]
    nm = measure_path(pts)
    km = measure_path(pts, "km")
    mi = measure_path(pts, "mi")
    assert nm == pytest.approx(distance_nm(pts[0], pts[1]) + distance_nm(pts[1], pts[2]))
    assert km * 0.539957 == pytest.approx(nm)
    assert mi == pytest.approx(km * 0.621371)


def test_measure_path_needs_two_points():
    assert measure_path([]) == 0.0
    assert measure_path([(1.0, 2.0)]) == 0.0


def test_measure_path_rejects_unknown_unit():
    with pytest.raises(ValueError):
        measure_path([(0.0, 0.0), (1.0, 1.0)], "furlong")
