"""Test single-unit movement for one turn."""
import pytest

from engine.model import PlannedMovement, TrackPoint, Unit, UnitKind, Waypoint
from engine.movement import move_unit


def make_unit(**kw) -> Unit:
    base = dict(id="U1", kind=UnitKind.SHIP, color="blue", position=(0.0, 0.0),
                heading=90.0, speed=10.0)
    base.update(kw)
    return Unit(**base)


def test_dead_reckoning_appends_track_point():
    moved = move_unit(make_unit(), 60, destination_turn=2, timestamp_ms=1234)
    assert moved.position[0] == pytest.approx(0.0, abs=1e-12)
    assert moved.position[1] == pytest.approx(0.18)
    assert moved.track_history == (TrackPoint(moved.position, 1234, 2),)


def test_installation_never_moves():
    unit = make_unit(kind=UnitKind.INSTALLATION, speed=25.0)
    assert move_unit(unit, 30, 2, 0) is unit


def test_zero_speed_unit_is_untouched():
    plan = PlannedMovement(heading=0.0, speed=20.0, turn=2)
    unit = make_unit(speed=0.0, planned_movement=plan)
    moved = move_unit(unit, 30, 2, 0)
    assert moved is unit
    assert moved.track_history == ()


def test_plan_for_destination_turn_is_applied_and_consumed():
    plan = PlannedMovement(heading=0.0, speed=20.0, turn=2)
    moved = move_unit(make_unit(planned_movement=plan), 30, destination_turn=2, timestamp_ms=0)
    assert moved.heading == 0.0
    assert moved.speed == 20.0
    assert moved.position[0] == pytest.approx(20 * 30 * 0.0003)
    assert moved.planned_movement is None


def test_plan_for_later_turn_is_kept():
    plan = PlannedMovement(heading=0.0, speed=20.0, turn=5)
    moved = move_unit(make_unit(planned_movement=plan), 30, destination_turn=2, timestamp_ms=0)
    assert moved.heading == 90.0
    assert moved.speed == 10.0
    assert moved.planned_movement == plan


def test_stale_plan_is_dropped_unapplied():
    plan = PlannedMovement(heading=0.0, speed=20.0, turn=2)
    moved = move_unit(make_unit(planned_movement=plan), 30, destination_turn=3, timestamp_ms=0)
    assert moved.heading == 90.0
    assert moved.speed == 10.0
    assert moved.planned_movement is None


def test_preview_applies_plan_but_keeps_it():
    plan = PlannedMovement(heading=0.0, speed=20.0, turn=2)
    unit = make_unit(planned_movement=plan)
    preview = move_unit(unit, 15, destination_turn=2, timestamp_ms=0, record=False)
    assert preview.heading == 0.0
    assert preview.position[0] == pytest.approx(20 * 15 * 0.0003)
    assert preview.planned_movement == plan
    assert preview.track_history == ()


def test_waypoints_take_precedence_over_plan():
    wp = Waypoint(id="W1", position=(1.0, 0.0), name="North")
    plan = PlannedMovement(heading=180.0, speed=5.0, turn=2)
    unit = make_unit(waypoints=(wp,), following_waypoints=True, planned_movement=plan)
    moved = move_unit(unit, 30, destination_turn=2, timestamp_ms=7)

    assert moved.heading == pytest.approx(0.0)
    assert moved.position[0] > 0
    assert moved.planned_movement == plan
    assert moved.track_history[-1] == TrackPoint(moved.position, 7, 2)


def test_route_not_followed_when_flag_off():
    wp = Waypoint(id="W1", position=(1.0, 0.0), name="North")
    moved = move_unit(make_unit(waypoints=(wp,)), 60, 2, 0)
    assert moved.heading == 90.0
    assert moved.position[1] == pytest.approx(0.18)
    assert not moved.waypoints[0].completed


def test_exhausted_route_reverts_to_dead_reckoning_next_turn():
    wp = Waypoint(id="W1", position=(0.0, 0.0), name="Here", completed=True)
    unit = make_unit(waypoints=(wp,), following_waypoints=True)
    moved = move_unit(unit, 60, 2, 0)
    assert not moved.following_waypoints
    assert moved.position == unit.position
    assert len(moved.track_history) == 1

    again = move_unit(moved, 60, 3, 0)
    assert again.position[1] == pytest.approx(0.18)
