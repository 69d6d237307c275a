from datetime import datetime
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from engine.model import Sensor, Sensors, UnitKind, Waypoint

LatLng = Tuple[float, float]
KindName = Literal["ship", "aircraft", "submarine", "helicopter", "installation",
                   "auxiliary", "intelligence", "drone", "missile", "special"]
ColorName = Literal["red", "blue", "green"]

class NewScenarioRequest(BaseModel):
    """New scenario request schema."""
    name: str = "New scenario"
    start_time: Optional[datetime] = None
    turn_type: Literal["tactical", "intermediate"] = "tactical"
    weather: Literal["clear", "cloudy", "rain", "storm", "fog", "snow"] = "clear"
    description: Optional[str] = None

class SensorIn(BaseModel):
    range_nm: float = Field(ge=0)
    active: bool = False

    def to_sensor(self) -> Sensor:
        return Sensor(range_nm=self.range_nm, active=self.active)

class SensorsIn(BaseModel):
    radar: Optional[SensorIn] = None
    active_sonar: Optional[SensorIn] = None
    passive_sonar: Optional[SensorIn] = None

    def to_sensors(self) -> Sensors:
        return Sensors(
            radar=self.radar.to_sensor() if self.radar else None,
            active_sonar=self.active_sonar.to_sensor() if self.active_sonar else None,
            passive_sonar=self.passive_sonar.to_sensor() if self.passive_sonar else None,
        )

class UnitFields(BaseModel):
    """Editable unit fields; anything left unset keeps its current value."""
    name: Optional[str] = None
    unit_class: Optional[str] = None
    subtype: Optional[str] = None
    color: Optional[ColorName] = None
    heading: Optional[float] = Field(default=None, ge=0, le=360)
    speed: Optional[float] = Field(default=None, ge=0)
    altitude_ft: Optional[float] = Field(default=None, ge=0)
    depth_m: Optional[float] = Field(default=None, ge=0)
    sensors: Optional[SensorsIn] = None
    detected: Optional[bool] = None
    show_label: Optional[bool] = None

    def engine_fields(self) -> dict:
        fields = self.model_dump(exclude_unset=True, exclude={"sensors"})
        fields = {k: v for k, v in fields.items() if v is not None}
        if self.sensors is not None:
            fields["sensors"] = self.sensors.to_sensors()
        return fields

class UnitCreate(UnitFields):
    id: Optional[str] = None
    kind: KindName
    color: ColorName = "blue"
    position: LatLng

    def engine_fields(self) -> dict:
        fields = super().engine_fields()
        for key in ("id", "kind", "color", "position"):
            fields.pop(key, None)
        return fields

    def unit_kind(self) -> UnitKind:
        return UnitKind(self.kind)

class UnitUpdate(UnitFields):
    kind: Optional[KindName] = None

    def engine_fields(self) -> dict:
        fields = super().engine_fields()
        if "kind" in fields:
            fields["kind"] = UnitKind(fields["kind"])
        return fields

class PositionIn(BaseModel):
    position: LatLng

class PlanIn(BaseModel):
    """Planned movement request schema."""
    heading: float = Field(ge=0, le=360)
    speed: float = Field(ge=0)

class WaypointIn(BaseModel):
    id: Optional[str] = None
    position: LatLng
    name: str = ""
    speed: Optional[float] = Field(default=None, ge=0)
    eta: Optional[datetime] = None
    completed: bool = False

    def to_waypoint(self, index: int) -> Waypoint:
        return Waypoint(
            id=self.id or f"waypoint-{index + 1}",
            position=self.position,
            name=self.name or f"Waypoint {index + 1}",
            speed=self.speed,
            eta=self.eta,
            completed=self.completed,
        )

class WaypointsIn(BaseModel):
    waypoints: List[WaypointIn] = []
    follow: bool = True

class SpeedIn(BaseModel):
    multiplier: float = Field(gt=0)

class TurnTypeIn(BaseModel):
    turn_type: Literal["tactical", "intermediate"]

class MeasureIn(BaseModel):
    points: List[LatLng]
    unit: Literal["nm", "km", "mi"] = "nm"

class EventsResponse(BaseModel):
    """Events response schema."""
    first_offset: int
    next_offset: int
    events: list[dict]
