from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Literal, Optional, Tuple

Position = Tuple[float, float]  # (lat, lng) in degrees
UnitColor = Literal["red", "blue", "green"]
UNIT_COLORS = ("red", "blue", "green")
Weather = Literal["clear", "cloudy", "rain", "storm", "fog", "snow"]

TACTICAL_TURN_MINUTES = 30
INTERMEDIATE_TURN_MINUTES = 3

class UnitKind(Enum):
    """Declared kind of a unit"""
    SHIP = "ship"
    AIRCRAFT = "aircraft"
    SUBMARINE = "submarine"
    HELICOPTER = "helicopter"
    INSTALLATION = "installation"
    AUXILIARY = "auxiliary"
    INTELLIGENCE = "intelligence"
    DRONE = "drone"
    MISSILE = "missile"
    SPECIAL = "special"

AIRBORNE_KINDS = {UnitKind.AIRCRAFT, UnitKind.HELICOPTER, UnitKind.DRONE}
SONAR_KINDS = {UnitKind.SHIP, UnitKind.SUBMARINE, UnitKind.AUXILIARY}

class TurnType(Enum):
    TACTICAL = "tactical"          # 30 simulated minutes
    INTERMEDIATE = "intermediate"  # 3 simulated minutes

    @property
    def minutes(self) -> int:
        if self is TurnType.TACTICAL:
            return TACTICAL_TURN_MINUTES
        return INTERMEDIATE_TURN_MINUTES

@dataclass(frozen=True)
class Sensor:
    range_nm: float
    active: bool = False

@dataclass(frozen=True)
class Sensors:
    radar: Optional[Sensor] = None
    active_sonar: Optional[Sensor] = None
    passive_sonar: Optional[Sensor] = None

@dataclass(frozen=True)
class Payload:
    """Kind-specific part of a unit. Subclasses add the fields their kinds use."""
    sensors: Optional[Sensors] = None

@dataclass(frozen=True)
class SurfacePayload(Payload):
    pass

@dataclass(frozen=True)
class AirPayload(Payload):
    altitude_ft: float = 10000.0

@dataclass(frozen=True)
class SubsurfacePayload(Payload):
    depth_m: float = 50.0

def payload_for(kind: UnitKind,
                altitude_ft: Optional[float] = None,
                depth_m: Optional[float] = None,
                sensors: Optional[Sensors] = None) -> Payload:
    """Build the payload variant selected by `kind`.

    Fields that make no sense for the kind are dropped: altitude outside
    airborne kinds, depth outside submarines, radar on missiles and sonar
    outside ship/submarine/auxiliary.
    """
    if sensors is not None:
        sensors = Sensors(
            radar=None if kind is UnitKind.MISSILE else sensors.radar,
            active_sonar=sensors.active_sonar if kind in SONAR_KINDS else None,
            passive_sonar=sensors.passive_sonar if kind in SONAR_KINDS else None,
        )
        if sensors == Sensors():
            sensors = None
    if kind in AIRBORNE_KINDS:
        if altitude_ft is None:
            return AirPayload(sensors=sensors)
        return AirPayload(sensors=sensors, altitude_ft=float(altitude_ft))
    if kind is UnitKind.SUBMARINE:
        if depth_m is None:
            return SubsurfacePayload(sensors=sensors)
        return SubsurfacePayload(sensors=sensors, depth_m=float(depth_m))
    return SurfacePayload(sensors=sensors)

@dataclass(frozen=True)
class TrackPoint:
    coords: Position
    timestamp_ms: int
    turn: int

@dataclass(frozen=True)
class Waypoint:
    id: str
    position: Position
    name: str
    speed: Optional[float] = None  # leg speed override, knots
    eta: Optional[datetime] = None
    completed: bool = False

@dataclass(frozen=True)
class PlannedMovement:
    heading: float
    speed: float
    turn: int  # turn whose advance applies the plan

@dataclass(frozen=True)
class Unit:
    id: str
    kind: UnitKind
    color: UnitColor
    position: Position
    heading: float = 0.0  # degrees, [0, 360)
    speed: float = 0.0    # knots
    payload: Payload = field(default_factory=SurfacePayload)
    name: str = ""
    unit_class: str = ""
    subtype: Optional[str] = None
    track_history: Tuple[TrackPoint, ...] = ()
    planned_movement: Optional[PlannedMovement] = None
    waypoints: Tuple[Waypoint, ...] = ()
    following_waypoints: bool = False
    detected: bool = False
    show_label: bool = True
    label_offset: Optional[Tuple[float, float]] = None

    def is_stationary(self) -> bool:
        return self.kind is UnitKind.INSTALLATION or self.speed == 0

    def is_following_route(self) -> bool:
        return self.following_waypoints and len(self.waypoints) > 0

@dataclass
class TurnState:
    current_time: datetime
    current_turn: int = 1
    turn_type: TurnType = TurnType.TACTICAL
    tactical_turn_duration: int = TACTICAL_TURN_MINUTES * 60  # seconds
    intermediate_turn_duration: int = INTERMEDIATE_TURN_MINUTES * 60  # seconds

    @property
    def minutes_per_turn(self) -> int:
        return self.turn_type.minutes

@dataclass
class ScenarioInfo:
    name: str
    date: str
    time: str  # HH:MM
    weather: Weather = "clear"
    description: Optional[str] = None

@dataclass(frozen=True)
class Annotation:
    id: str
    position: Position
    title: str
    text: str = ""
    color: str = "#3b82f6"

@dataclass
class SimulationConfig:
    """Timing knobs for the turn controller"""
    discrete_interval_ms: int = 2000
    realtime_interval_ms: int = 100
    real_seconds_per_minute: float = 60.0  # at 1x playback
    min_speed_multiplier: float = 0.1
    max_speed_multiplier: float = 1000.0

@dataclass
class Event:
    kind: str
    ts_ms: int
    data: Dict
