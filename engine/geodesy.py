"""Dead-reckoning and great-circle helpers.

`advance` is a planar approximation: it treats one knot-minute as a fixed
0.0003 degrees in any direction, independent of latitude. Scenario files
produced by the map editor depend on this exact arithmetic, so it is kept
as is and not replaced by a geodesic model.
"""
import math
from typing import Sequence

import numpy as np

from .model import Position

DEGREES_PER_KNOT_MINUTE = 0.0003
EARTH_RADIUS_KM = 6371.0
KM_TO_NM = 0.539957
KM_TO_MI = 0.621371

def advance(position: Position, heading: float, speed_kn: float, minutes: float) -> Position:
    """Dead-reckon a new position from heading, speed and elapsed minutes."""
    # 0 deg heading (north) becomes +90 deg in math convention
    angle = math.radians(90 - heading)
    distance = speed_kn * minutes * DEGREES_PER_KNOT_MINUTE
    return (position[0] + distance * math.sin(angle),
            position[1] + distance * math.cos(angle))

def bearing(frm: Position, to: Position) -> float:
    """Initial great-circle bearing from `frm` to `to`, in [0, 360)."""
    lat1 = math.radians(frm[0])
    lon1 = math.radians(frm[1])
    lat2 = math.radians(to[0])
    lon2 = math.radians(to[1])

    y = math.sin(lon2 - lon1) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(lon2 - lon1)
    theta = math.degrees(math.atan2(y, x))
    return (theta + 360) % 360

def distance_km(frm: Position, to: Position) -> float:
    """Haversine distance in kilometers."""
    lat1 = math.radians(frm[0])
    lat2 = math.radians(to[0])
    d_lat = math.radians(to[0] - frm[0])
    d_lng = math.radians(to[1] - frm[1])

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    # rounding can push `a` just past 1 for near-antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c

def distance_nm(frm: Position, to: Position) -> float:
    """Haversine distance in nautical miles."""
    return distance_km(frm, to) * KM_TO_NM

def _legs_km(points: Sequence[Position]) -> np.ndarray:
    pts = np.radians(np.asarray(points, dtype=float).reshape(-1, 2))
    if len(pts) < 2:
        return np.zeros(0)
    lat1, lat2 = pts[:-1, 0], pts[1:, 0]
    d_lat = lat2 - lat1
    d_lng = pts[1:, 1] - pts[:-1, 1]
    a = np.minimum(np.sin(d_lat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(d_lng / 2) ** 2,
                   1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_KM * c

def leg_distances(points: Sequence[Position]) -> np.ndarray:
    """Per-leg haversine distances of a polyline, in nautical miles."""
    return _legs_km(points) * KM_TO_NM

def measure_path(points: Sequence[Position], unit: str = "nm") -> float:
    """Total length of a polyline in `nm`, `km` or `mi`."""
    factors = {"nm": KM_TO_NM, "km": 1.0, "mi": KM_TO_MI}
    if unit not in factors:
        raise ValueError(f"unknown distance unit {unit!r}, expected one of {sorted(factors)}")
    return float(_legs_km(points).sum() * factors[unit])
