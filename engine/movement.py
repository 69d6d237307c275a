from dataclasses import replace

from .geodesy import advance
from .model import TrackPoint, Unit
from .navigator import follow_waypoints

def move_unit(unit: Unit, minutes: float, destination_turn: int, timestamp_ms: int,
              record: bool = True) -> Unit:
    """Return `unit` advanced by `minutes` toward `destination_turn`.

    With `record=False` the result is a preview: no track point is added and
    a pending planned movement is applied but left in place.
    """
    if unit.is_stationary():
        return unit

    if unit.is_following_route():
        moved = follow_waypoints(unit, minutes)
        if not record:
            return moved
        point = TrackPoint(moved.position, timestamp_ms, destination_turn)
        return replace(moved, track_history=moved.track_history + (point,))

    heading = unit.heading
    speed = unit.speed
    plan = unit.planned_movement
    if plan is not None and plan.turn == destination_turn:
        heading = plan.heading
        speed = plan.speed
    if record and plan is not None and plan.turn <= destination_turn:
        # consumed once its turn is produced; a stale plan is dropped unapplied
        plan = None

    new_pos = advance(unit.position, heading, speed, minutes)
    if not record:
        return replace(unit, position=new_pos, heading=heading, speed=speed)

    point = TrackPoint(new_pos, timestamp_ms, destination_turn)
    return replace(unit,
                   position=new_pos,
                   heading=heading,
                   speed=speed,
                   planned_movement=plan,
                   track_history=unit.track_history + (point,))
