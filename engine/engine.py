import logging
import time
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Tuple

from .history import History, NoNextState, NoPreviousState, Snapshot
from .model import (
    UNIT_COLORS, AirPayload, Annotation, Event, PlannedMovement, Position,
    ScenarioInfo, Sensors, SimulationConfig, SubsurfacePayload, TrackPoint,
    TurnState, TurnType, Unit, UnitKind, Waypoint, payload_for,
)
from .movement import move_unit
from .navigator import estimate_etas
from .scenario import from_document, to_document

logger = logging.getLogger(__name__)

Mode = Literal["idle", "discrete", "realtime"]

EDITABLE_FIELDS = {
    "name", "unit_class", "subtype", "color", "heading", "speed", "detected",
    "show_label", "label_offset", "kind", "altitude_ft", "depth_m", "sensors",
}

def _wall_clock_ms() -> int:
    return int(time.time() * 1000)

def _route_open(waypoints: Sequence[Waypoint]) -> bool:
    return any(not wp.completed for wp in waypoints)

class Engine:
    """Simulation session: live units, turn clock, history and playback mode.

    All mutation goes through these methods. Each one returns the events it
    produced; an unknown unit id produces none and changes nothing.
    """

    def __init__(self,
                 initial_units: Sequence[Unit] = (),
                 turn_state: Optional[TurnState] = None,
                 info: Optional[ScenarioInfo] = None,
                 annotations: Sequence[Annotation] = (),
                 config: Optional[SimulationConfig] = None,
                 clock: Callable[[], int] = _wall_clock_ms):
        self.config = config or SimulationConfig()
        self._clock = clock
        if turn_state is None:
            now = datetime.now(timezone.utc).replace(second=0, microsecond=0)
            turn_state = TurnState(current_time=now)
        self.turn_state = turn_state
        self.info = info or ScenarioInfo(
            name="New scenario",
            date=turn_state.current_time.date().isoformat(),
            time=turn_state.current_time.strftime("%H:%M"),
        )
        self.annotations: List[Annotation] = list(annotations)
        self.units: Tuple[Unit, ...] = tuple(initial_units)
        self.history = History(self.units, turn=turn_state.current_turn,
                               current_time=turn_state.current_time)

        self.mode: Mode = "idle"
        self.speed_multiplier = 1.0
        self.progress = 0.0  # real-time turn progress, percent
        self._discrete_elapsed_ms = 0
        self._realtime_elapsed_ms = 0
        self._preview: Optional[Tuple[Unit, ...]] = None

    # ---- read model ----

    def view_units(self) -> Tuple[Unit, ...]:
        """Units as a renderer should draw them (interpolated during real-time playback)."""
        return self._preview if self._preview is not None else self.units

    def get_unit(self, unit_id: str) -> Optional[Unit]:
        for u in self.units:
            if u.id == unit_id:
                return u
        return None

    # ---- commits ----

    def _event(self, kind: str, **data: Any) -> Event:
        return Event(kind, self._clock(), data)

    def _commit(self, units: Sequence[Unit]) -> None:
        self.units = tuple(units)
        self.history.commit(self.units, turn=self.turn_state.current_turn,
                            current_time=self.turn_state.current_time)
        if self.mode == "realtime" and self._preview is not None:
            self._preview = self._interpolate(self._realtime_minutes())

    def _update_unit(self, unit_id: str, fn: Callable[[Unit], Unit]) -> Optional[Unit]:
        updated: Optional[Unit] = None
        units = []
        for u in self.units:
            if u.id == unit_id:
                updated = fn(u)
                units.append(updated)
            else:
                units.append(u)
        if updated is None:
            logger.warning("Unit %s not found", unit_id)
            return None
        self._commit(units)
        return updated

    def _reset_playback(self) -> None:
        self._realtime_elapsed_ms = 0
        self._discrete_elapsed_ms = 0
        self.progress = 0.0
        self._preview = None

    # ---- turn controller ----

    def advance_units(self) -> List[Event]:
        """Move every unit one full turn and commit the result."""
        evts: List[Event] = []
        minutes = self.turn_state.minutes_per_turn
        next_turn = self.turn_state.current_turn + 1
        ts = self._clock()

        moved = []
        for u in self.units:
            n = move_unit(u, minutes, next_turn, ts)
            moved.append(n)
            evts += self._movement_events(u, n, next_turn)

        self.turn_state.current_turn = next_turn
        self.turn_state.current_time += timedelta(minutes=minutes)
        self._realtime_elapsed_ms = 0
        self.progress = 0.0
        self._preview = None
        self._commit(moved)

        logger.info("Advanced to turn %d (%s, %d units)", next_turn,
                    self.turn_state.turn_type.value, len(moved))
        evts.append(self._event("TurnAdvanced", turn=next_turn,
                                current_time=self.turn_state.current_time.isoformat(),
                                minutes=minutes))
        return evts

    def _movement_events(self, before: Unit, after: Unit, turn: int) -> List[Event]:
        evts: List[Event] = []
        if before.planned_movement is not None and after.planned_movement is None:
            if before.planned_movement.turn == turn:
                evts.append(self._event("PlannedMovementApplied", unit_id=after.id, turn=turn,
                                        heading=after.heading, speed=after.speed))
            else:
                evts.append(self._event("PlannedMovementDiscarded", unit_id=after.id,
                                        turn=before.planned_movement.turn))
        done_before = sum(wp.completed for wp in before.waypoints)
        reached = [wp for b, wp in zip(before.waypoints, after.waypoints)
                   if wp.completed and not b.completed]
        for wp in reached:
            evts.append(self._event("WaypointReached", unit_id=after.id,
                                    waypoint_id=wp.id, name=wp.name))
        if before.following_waypoints and not after.following_waypoints:
            evts.append(self._event("RouteCompleted", unit_id=after.id,
                                    waypoints=done_before))
        return evts

    def _restore(self, snap: Snapshot) -> None:
        self.units = snap.units
        if snap.turn is not None:
            self.turn_state.current_turn = snap.turn
        if snap.current_time is not None:
            self.turn_state.current_time = snap.current_time
        self._reset_playback()

    def revert_units(self) -> List[Event]:
        """Step back to the previous snapshot, turn clock included."""
        try:
            snap = self.history.revert()
        except NoPreviousState:
            logger.warning("Revert rejected: no earlier turn")
            return [self._event("RevertRejected", reason="no earlier turn")]
        self._restore(snap)
        logger.info("Reverted to turn %d", self.turn_state.current_turn)
        return [self._event("UnitsReverted", turn=self.turn_state.current_turn,
                            cursor=self.history.cursor)]

    def redo_units(self) -> List[Event]:
        try:
            snap = self.history.redo()
        except NoNextState:
            logger.warning("Redo rejected: no later state")
            return [self._event("RedoRejected", reason="no later state")]
        self._restore(snap)
        logger.info("Redid to turn %d", self.turn_state.current_turn)
        return [self._event("UnitsRestored", turn=self.turn_state.current_turn,
                            cursor=self.history.cursor)]

    def _set_mode(self, mode: Mode) -> List[Event]:
        previous = self.mode
        self.mode = mode
        self._reset_playback()
        logger.info("Playback mode %s -> %s", previous, mode)
        return [self._event("ModeChanged", mode=mode, previous=previous)]

    def toggle_simulation(self) -> List[Event]:
        """Start or stop discrete auto-advance; starting it stops real-time playback."""
        return self._set_mode("idle" if self.mode == "discrete" else "discrete")

    def toggle_real_time(self) -> List[Event]:
        """Start or stop real-time playback; starting it stops discrete auto-advance."""
        return self._set_mode("idle" if self.mode == "realtime" else "realtime")

    def _turn_duration_ms(self) -> float:
        """Wall-clock length of one turn of real-time playback."""
        return (self.turn_state.minutes_per_turn * self.config.real_seconds_per_minute * 1000
                / self.speed_multiplier)

    def _realtime_minutes(self) -> float:
        return self.turn_state.minutes_per_turn * self._realtime_elapsed_ms / self._turn_duration_ms()

    def _keep_progress(self, change: Callable[[], None]) -> None:
        fraction = self._realtime_elapsed_ms / self._turn_duration_ms()
        change()
        self._realtime_elapsed_ms = fraction * self._turn_duration_ms()

    def set_speed_multiplier(self, multiplier: float) -> List[Event]:
        """Set the real-time playback speed, clamped into the configured bounds."""
        clamped = max(self.config.min_speed_multiplier,
                      min(self.config.max_speed_multiplier, float(multiplier)))

        def change():
            self.speed_multiplier = clamped
        self._keep_progress(change)
        logger.info("Speed multiplier set to %sx", clamped)
        return [self._event("SpeedMultiplierChanged", speed_multiplier=clamped)]

    def set_turn_type(self, turn_type: TurnType) -> List[Event]:
        def change():
            self.turn_state.turn_type = turn_type
        self._keep_progress(change)
        if self._preview is not None:
            self._preview = self._interpolate(self._realtime_minutes())
        return [self._event("TurnTypeChanged", turn_type=turn_type.value)]

    def _interpolate(self, minutes: float) -> Tuple[Unit, ...]:
        next_turn = self.turn_state.current_turn + 1
        ts = self._clock()
        return tuple(move_unit(u, minutes, next_turn, ts, record=False) for u in self.units)

    def tick(self, dt_ms: float) -> List[Event]:
        """Advance playback by `dt_ms` of wall-clock time.

        Discrete mode commits one turn per elapsed discrete interval.
        Real-time mode publishes an interpolated preview computed from the
        last committed units and commits a full turn once the turn's
        wall-clock duration has elapsed.
        """
        evts: List[Event] = []
        if self.mode == "discrete":
            self._discrete_elapsed_ms += dt_ms
            interval = self.config.discrete_interval_ms
            while self._discrete_elapsed_ms >= interval:
                self._discrete_elapsed_ms -= interval
                evts += self.advance_units()
        elif self.mode == "realtime":
            self._realtime_elapsed_ms += dt_ms
            fraction = self._realtime_elapsed_ms / self._turn_duration_ms()
            if fraction >= 1.0:
                evts += self.advance_units()
            else:
                self.progress = fraction * 100
                self._preview = self._interpolate(self._realtime_minutes())
                logger.debug("Real-time progress %.1f%%", self.progress)
        return evts

    # ---- unit requests ----

    def save_planned_movement(self, unit_id: str, heading: float, speed: float) -> List[Event]:
        """Plan a one-shot heading/speed change for the next turn."""
        turn = self.turn_state.current_turn + 1
        plan = PlannedMovement(heading=float(heading) % 360, speed=float(speed), turn=turn)
        if self._update_unit(unit_id, lambda u: replace(u, planned_movement=plan)) is None:
            return []
        return [self._event("MovementPlanned", unit_id=unit_id, turn=turn,
                            heading=plan.heading, speed=plan.speed)]

    def save_waypoints(self, unit_id: str, waypoints: Sequence[Waypoint], follow: bool) -> List[Event]:
        """Replace a unit's route and following flag."""
        route = tuple(waypoints)
        following = bool(follow) and _route_open(route)
        if self._update_unit(unit_id, lambda u: replace(
                u, waypoints=route, following_waypoints=following)) is None:
            return []
        return [self._event("WaypointsSaved", unit_id=unit_id, count=len(route),
                            following=following)]

    def add_waypoint(self, unit_id: str, position: Position) -> List[Event]:
        """Append a waypoint at `position` and start following the route."""
        added: List[Waypoint] = []

        def fn(u: Unit) -> Unit:
            wp = Waypoint(id=f"waypoint-{uuid.uuid4().hex[:12]}",
                          position=(float(position[0]), float(position[1])),
                          name=f"Waypoint {len(u.waypoints) + 1}",
                          speed=u.speed)
            added.append(wp)
            return replace(u, waypoints=u.waypoints + (wp,), following_waypoints=True)

        if self._update_unit(unit_id, fn) is None:
            return []
        return [self._event("WaypointAdded", unit_id=unit_id, waypoint_id=added[0].id,
                            name=added[0].name)]

    def route_etas(self, unit_id: str) -> Optional[List[Waypoint]]:
        u = self.get_unit(unit_id)
        if u is None:
            return None
        return estimate_etas(u, self.turn_state.current_time)

    def add_unit(self, kind: UnitKind, color: str, position: Position,
                 unit_id: Optional[str] = None, **fields: Any) -> List[Event]:
        """Place a new unit; its track starts at `position` on the current turn."""
        if color not in UNIT_COLORS:
            raise ValueError(f"unknown unit color {color!r}")
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"unknown unit fields: {sorted(unknown)}")
        unit_id = unit_id or f"unit-{uuid.uuid4().hex[:12]}"
        if self.get_unit(unit_id) is not None:
            raise ValueError(f"unit id {unit_id!r} already in use")
        pos = (float(position[0]), float(position[1]))
        unit = self._apply_fields(Unit(
            id=unit_id, kind=kind, color=color, position=pos,
            payload=payload_for(kind),
            track_history=(TrackPoint(pos, self._clock(), self.turn_state.current_turn),),
        ), fields)
        self._commit(self.units + (unit,))
        logger.info("Added %s unit %s", kind.value, unit_id)
        return [self._event("UnitAdded", unit_id=unit_id, unit_kind=kind.value)]

    def remove_unit(self, unit_id: str) -> List[Event]:
        remaining = tuple(u for u in self.units if u.id != unit_id)
        if len(remaining) == len(self.units):
            return []
        self._commit(remaining)
        return [self._event("UnitRemoved", unit_id=unit_id)]

    def reposition_unit(self, unit_id: str, position: Position) -> List[Event]:
        """Drop a unit at a new position, recording it on the current turn."""
        pos = (float(position[0]), float(position[1]))
        point = TrackPoint(pos, self._clock(), self.turn_state.current_turn)
        if self._update_unit(unit_id, lambda u: replace(
                u, position=pos, track_history=u.track_history + (point,))) is None:
            return []
        return [self._event("UnitRepositioned", unit_id=unit_id, position=list(pos))]

    def update_unit(self, unit_id: str, **fields: Any) -> List[Event]:
        """Apply edit-dialog changes; the payload is rebuilt for the resulting kind."""
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"fields not editable: {sorted(unknown)}")
        if "color" in fields and fields["color"] not in UNIT_COLORS:
            raise ValueError(f"unknown unit color {fields['color']!r}")
        if self._update_unit(unit_id, lambda u: self._apply_fields(u, fields)) is None:
            return []
        return [self._event("UnitUpdated", unit_id=unit_id, fields=sorted(fields))]

    def _apply_fields(self, unit: Unit, fields: Dict[str, Any]) -> Unit:
        fields = dict(fields)
        kind: UnitKind = fields.pop("kind", unit.kind)
        altitude = fields.pop("altitude_ft", None)
        depth = fields.pop("depth_m", None)
        sensors: Optional[Sensors] = fields.pop("sensors", unit.payload.sensors)
        if altitude is None and isinstance(unit.payload, AirPayload):
            altitude = unit.payload.altitude_ft
        if depth is None and isinstance(unit.payload, SubsurfacePayload):
            depth = unit.payload.depth_m
        if "heading" in fields:
            fields["heading"] = float(fields["heading"]) % 360
        if "speed" in fields:
            fields["speed"] = max(0.0, float(fields["speed"]))
        return replace(unit, kind=kind, payload=payload_for(kind, altitude, depth, sensors),
                       **fields)

    # ---- scenarios ----

    def load_scenario(self, doc) -> List[Event]:
        """Replace the whole scenario; raises ScenarioError and changes nothing on bad input."""
        scenario = from_document(doc)
        self.info = scenario.info
        self.turn_state = scenario.turn_state
        self.annotations = list(scenario.annotations)
        self.units = tuple(scenario.units)
        self.history.reset(self.units, turn=self.turn_state.current_turn,
                           current_time=self.turn_state.current_time)
        self._reset_playback()
        logger.info("Loaded scenario %r with %d units at turn %d", self.info.name,
                    len(self.units), self.turn_state.current_turn)
        return [self._event("ScenarioLoaded", name=self.info.name, units=len(self.units),
                            turn=self.turn_state.current_turn)]

    def export_scenario(self, name: Optional[str] = None) -> Dict[str, Any]:
        return to_document(self.info, self.turn_state, self.units, self.annotations, name=name)
