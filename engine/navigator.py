from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from .geodesy import advance, bearing, distance_nm
from .model import Unit, Waypoint

def _next_index(waypoints: Tuple[Waypoint, ...]) -> Optional[int]:
    for idx, wp in enumerate(waypoints):
        if not wp.completed:
            return idx
    return None

def next_waypoint(unit: Unit) -> Optional[Waypoint]:
    """First incomplete waypoint of the unit's route, if any."""
    idx = _next_index(unit.waypoints)
    return None if idx is None else unit.waypoints[idx]

def leg_speed(unit: Unit, wp: Waypoint) -> float:
    return wp.speed or unit.speed

def follow_waypoints(unit: Unit, minutes: float) -> Unit:
    """Move `unit` toward its next waypoint for `minutes` of simulated time.

    The waypoint is completed when the distance reachable at the leg speed
    covers the distance to it; the unit then snaps onto it. Time left over
    after reaching a waypoint is not spent on the following leg.
    """
    idx = _next_index(unit.waypoints)
    if idx is None:
        return replace(unit, following_waypoints=False)

    wp = unit.waypoints[idx]
    heading = bearing(unit.position, wp.position)
    to_go_nm = distance_nm(unit.position, wp.position)
    speed = leg_speed(unit, wp)
    reachable_nm = speed * minutes / 60

    if reachable_nm >= to_go_nm:
        waypoints = tuple(
            replace(w, completed=True) if i == idx else w
            for i, w in enumerate(unit.waypoints)
        )
        return replace(unit, position=wp.position, heading=heading, speed=speed,
                       waypoints=waypoints)

    return replace(unit,
                   position=advance(unit.position, heading, speed, minutes),
                   heading=heading,
                   speed=speed)

def estimate_etas(unit: Unit, start: datetime) -> List[Waypoint]:
    """Fill `eta` on the unit's incomplete waypoints.

    ETAs accumulate leg by leg from the unit's current position. A leg with
    no speed has no ETA, and neither has anything after it.
    """
    result: List[Waypoint] = []
    pos = unit.position
    elapsed_h = 0.0
    reachable = True
    for wp in unit.waypoints:
        if wp.completed:
            result.append(wp)
            continue
        speed = leg_speed(unit, wp)
        if reachable and speed > 0:
            elapsed_h += distance_nm(pos, wp.position) / speed
            result.append(replace(wp, eta=start + timedelta(hours=elapsed_h)))
        else:
            reachable = False
            result.append(replace(wp, eta=None))
        pos = wp.position
    return result
