"""Scenario document codec.

Documents use the map editor's camelCase JSON layout::

    {id, name, date, scenarioInfo, turnState, units[], annotations[], version}

`turnState.currentTime` and waypoint `eta` travel as ISO-8601 strings.
Decoding builds every object before returning, so a bad document never
leaves a half-loaded scenario behind.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from .model import (
    INTERMEDIATE_TURN_MINUTES, TACTICAL_TURN_MINUTES, UNIT_COLORS,
    AirPayload, Annotation, PlannedMovement, ScenarioInfo, Sensor, Sensors,
    SubsurfacePayload, TrackPoint, TurnState, TurnType, Unit, UnitKind,
    Waypoint, payload_for,
)

FORMAT_VERSION = "1.0"
REQUIRED_FIELDS = ("scenarioInfo", "turnState", "units")

class ScenarioError(ValueError):
    """A scenario document could not be decoded."""

@dataclass
class Scenario:
    info: ScenarioInfo
    turn_state: TurnState
    units: List[Unit]
    annotations: List[Annotation] = field(default_factory=list)
    name: Optional[str] = None

def format_time(value: datetime) -> str:
    if value.tzinfo is not None and value.utcoffset() == timedelta(0):
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return value.isoformat()

def parse_time(value: str) -> datetime:
    if not isinstance(value, str):
        raise TypeError(f"expected ISO-8601 string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)

def _pos(raw) -> tuple:
    lat, lng = raw
    return (float(lat), float(lng))

# ---- encoding ----

def _sensor_to_dict(sensor: Optional[Sensor]) -> Optional[Dict]:
    if sensor is None:
        return None
    return {"range": sensor.range_nm, "active": sensor.active}

def waypoint_to_dict(wp: Waypoint) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": wp.id,
        "position": list(wp.position),
        "name": wp.name,
        "completed": wp.completed,
    }
    if wp.speed is not None:
        d["speed"] = wp.speed
    if wp.eta is not None:
        d["eta"] = format_time(wp.eta)
    return d

def unit_to_dict(u: Unit) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": u.id,
        "type": u.kind.value,
        "color": u.color,
        "position": list(u.position),
        "name": u.name,
        "class": u.unit_class,
        "heading": u.heading,
        "speed": u.speed,
        "trackHistory": [
            {"coords": list(p.coords), "timestamp": p.timestamp_ms, "turn": p.turn}
            for p in u.track_history
        ],
        "showLabel": u.show_label,
        "waypoints": [waypoint_to_dict(wp) for wp in u.waypoints],
        "followingWaypoints": u.following_waypoints,
        "detected": u.detected,
    }
    if u.subtype is not None:
        d["subtype"] = u.subtype
    if isinstance(u.payload, AirPayload):
        d["altitude"] = u.payload.altitude_ft
    elif isinstance(u.payload, SubsurfacePayload):
        d["depth"] = u.payload.depth_m
    sensors = u.payload.sensors
    if sensors is not None:
        d["sensors"] = {
            key: _sensor_to_dict(s)
            for key, s in (("radar", sensors.radar),
                           ("activeSonar", sensors.active_sonar),
                           ("passiveSonar", sensors.passive_sonar))
            if s is not None
        }
    if u.label_offset is not None:
        d["labelOffset"] = {"x": u.label_offset[0], "y": u.label_offset[1]}
    if u.planned_movement is not None:
        pm = u.planned_movement
        d["plannedMovement"] = {"heading": pm.heading, "speed": pm.speed, "turn": pm.turn}
    return d

def turn_state_to_dict(ts: TurnState) -> Dict[str, Any]:
    return {
        "currentTurn": ts.current_turn,
        "turnType": ts.turn_type.value,
        "tacticalTurnDuration": ts.tactical_turn_duration,
        "intermediateTurnDuration": ts.intermediate_turn_duration,
        "currentTime": format_time(ts.current_time),
    }

def to_document(info: ScenarioInfo, turn_state: TurnState, units: Sequence[Unit],
                annotations: Sequence[Annotation] = (), name: Optional[str] = None,
                now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    name = name or info.name
    scenario_info: Dict[str, Any] = {
        "name": info.name,
        "date": info.date,
        "time": info.time,
        "weather": info.weather,
    }
    if info.description is not None:
        scenario_info["description"] = info.description
    return {
        "id": f"scenario-{int(now.timestamp() * 1000)}",
        "name": name,
        "date": format_time(now),
        "scenarioInfo": scenario_info,
        "turnState": turn_state_to_dict(turn_state),
        "units": [unit_to_dict(u) for u in units],
        "annotations": [
            {"id": a.id, "position": list(a.position), "title": a.title,
             "text": a.text, "color": a.color}
            for a in annotations
        ],
        "version": FORMAT_VERSION,
    }

# ---- decoding ----

def _sensor_from_dict(raw: Optional[Dict]) -> Optional[Sensor]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise TypeError(f"sensor must be an object, got {type(raw).__name__}")
    return Sensor(range_nm=float(raw["range"]), active=bool(raw.get("active", False)))

def sensors_from_dict(raw: Optional[Dict]) -> Optional[Sensors]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise TypeError(f"sensors must be an object, got {type(raw).__name__}")
    return Sensors(
        radar=_sensor_from_dict(raw.get("radar")),
        active_sonar=_sensor_from_dict(raw.get("activeSonar")),
        passive_sonar=_sensor_from_dict(raw.get("passiveSonar")),
    )

def waypoint_from_dict(raw: Dict[str, Any]) -> Waypoint:
    speed = raw.get("speed")
    eta = raw.get("eta")
    return Waypoint(
        id=str(raw["id"]),
        position=_pos(raw["position"]),
        name=str(raw.get("name", "")),
        speed=None if speed is None else float(speed),
        eta=None if eta is None else parse_time(eta),
        completed=bool(raw.get("completed", False)),
    )

def unit_from_dict(raw: Dict[str, Any]) -> Unit:
    kind = UnitKind(raw["type"])
    if raw["color"] not in UNIT_COLORS:
        raise ValueError(f"unknown unit color {raw['color']!r}")
    planned = raw.get("plannedMovement")
    offset = raw.get("labelOffset")
    waypoints = tuple(waypoint_from_dict(w) for w in raw.get("waypoints") or [])
    following = bool(raw.get("followingWaypoints", False))
    return Unit(
        id=str(raw["id"]),
        kind=kind,
        color=raw["color"],
        position=_pos(raw["position"]),
        heading=float(raw.get("heading", 0)),
        speed=float(raw.get("speed", 0)),
        payload=payload_for(kind, raw.get("altitude"), raw.get("depth"),
                            sensors_from_dict(raw.get("sensors"))),
        name=str(raw.get("name", "")),
        unit_class=str(raw.get("class", "")),
        subtype=raw.get("subtype"),
        track_history=tuple(
            TrackPoint(_pos(p["coords"]), int(p["timestamp"]), int(p["turn"]))
            for p in raw.get("trackHistory") or []
        ),
        planned_movement=None if not planned else PlannedMovement(
            heading=float(planned["heading"]),
            speed=float(planned["speed"]),
            turn=int(planned["turn"]),
        ),
        waypoints=waypoints,
        following_waypoints=following,
        detected=bool(raw.get("detected", False)),
        show_label=bool(raw.get("showLabel", True)),
        label_offset=None if not offset else (float(offset["x"]), float(offset["y"])),
    )

def turn_state_from_dict(raw: Dict[str, Any]) -> TurnState:
    current_turn = int(raw.get("currentTurn", 1))
    if current_turn < 1:
        raise ValueError(f"currentTurn must be at least 1, got {current_turn}")
    return TurnState(
        current_time=parse_time(raw["currentTime"]),
        current_turn=current_turn,
        turn_type=TurnType(raw.get("turnType", TurnType.TACTICAL.value)),
        tactical_turn_duration=int(raw.get("tacticalTurnDuration", TACTICAL_TURN_MINUTES * 60)),
        intermediate_turn_duration=int(raw.get("intermediateTurnDuration", INTERMEDIATE_TURN_MINUTES * 60)),
    )

def from_document(doc: Union[str, bytes, Dict[str, Any]]) -> Scenario:
    """Decode a scenario document or raise ScenarioError."""
    if isinstance(doc, (str, bytes)):
        try:
            doc = json.loads(doc)
        except ValueError as e:
            raise ScenarioError(f"scenario is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise ScenarioError("scenario document must be a JSON object")
    missing = [k for k in REQUIRED_FIELDS if doc.get(k) is None]
    if missing:
        raise ScenarioError(f"scenario is missing required fields: {', '.join(missing)}")

    try:
        raw_info = doc["scenarioInfo"]
        info = ScenarioInfo(
            name=str(raw_info["name"]),
            date=str(raw_info.get("date", "")),
            time=str(raw_info.get("time", "")),
            weather=raw_info.get("weather", "clear"),
            description=raw_info.get("description"),
        )
        turn_state = turn_state_from_dict(doc["turnState"])
        units = [unit_from_dict(u) for u in doc["units"]]
        ids = [u.id for u in units]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate unit ids: {', '.join(duplicates)}")
        annotations = [
            Annotation(id=str(a["id"]), position=_pos(a["position"]),
                       title=str(a.get("title", "")), text=str(a.get("text", "")),
                       color=str(a.get("color", "#3b82f6")))
            for a in doc.get("annotations") or []
        ]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ScenarioError(f"invalid scenario content: {e!r}") from e

    return Scenario(info=info, turn_state=turn_state, units=units,
                    annotations=annotations, name=doc.get("name"))
