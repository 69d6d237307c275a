import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from engine.engine import Engine
from engine.geodesy import leg_distances, measure_path
from engine.model import Event, ScenarioInfo, SimulationConfig, TurnState, TurnType
from engine.navigator import next_waypoint
from engine.scenario import ScenarioError, turn_state_to_dict, unit_to_dict, waypoint_to_dict
from runtime.runner import TickRunner
from .schemas import (
    EventsResponse, MeasureIn, NewScenarioRequest, PlanIn, PositionIn, SpeedIn,
    TurnTypeIn, UnitCreate, UnitUpdate, WaypointsIn,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Tactical Map Engine API")
runner: TickRunner | None = None

# Enable CORS for development (the map editor runs on a different port)
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("TACMAP_CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def _config() -> SimulationConfig:
    return SimulationConfig(
        discrete_interval_ms=int(os.getenv("TACMAP_DISCRETE_INTERVAL_MS", "2000")),
        realtime_interval_ms=int(os.getenv("TACMAP_TICK_MS", "100")),
    )

def _make_engine(req: NewScenarioRequest) -> Engine:
    start = req.start_time or datetime.now(timezone.utc).replace(second=0, microsecond=0)
    turn_state = TurnState(current_time=start, turn_type=TurnType(req.turn_type))
    info = ScenarioInfo(name=req.name, date=start.date().isoformat(),
                        time=start.strftime("%H:%M"), weather=req.weather,
                        description=req.description)
    return Engine(turn_state=turn_state, info=info, config=_config())

async def _replace_runner(engine: Engine) -> TickRunner:
    global runner
    await shutdown()
    runner = TickRunner(engine)
    await runner.start()
    return runner

def _require_runner() -> TickRunner:
    if not runner:
        raise HTTPException(400, "No scenario loaded")
    return runner

def _events(evts: List[Event]) -> List[dict]:
    return [{"kind": e.kind, "ts_ms": e.ts_ms, "data": e.data} for e in evts]

def _state(engine: Engine) -> Dict[str, Any]:
    return {
        "scenario": engine.info.name,
        "turn_state": turn_state_to_dict(engine.turn_state),
        "mode": engine.mode,
        "progress": engine.progress,
        "speed_multiplier": engine.speed_multiplier,
        "can_revert": engine.history.can_revert(),
        "can_redo": engine.history.can_redo(),
        "units": [unit_to_dict(u) for u in engine.view_units()],
    }

async def _unit_request(request) -> dict:
    evts = await _require_runner().execute(request)
    if not evts:
        raise HTTPException(404, "Unit not found")
    return {"events": _events(evts)}

@app.get("/")
async def root():
    """API root endpoint."""
    return {
        "message": "Tactical Map Engine API",
        "docs": "/docs",
        "version": "1.0",
        "running": runner is not None and runner.running,
    }

@app.on_event("startup")
async def startup():
    """Open an empty scenario and start the tick loop."""
    if runner is None:
        await _replace_runner(_make_engine(NewScenarioRequest()))

@app.on_event("shutdown")
async def shutdown():
    """Stop the tick loop."""
    global runner
    if runner:
        await runner.stop()
        runner = None

# ---- scenarios ----

@app.post("/scenario/new")
async def new_scenario(req: NewScenarioRequest):
    """Start an empty scenario."""
    r = await _replace_runner(_make_engine(req))
    return {"scenario": r.engine.info.name, "turn_state": turn_state_to_dict(r.engine.turn_state)}

@app.post("/scenario/import")
async def import_scenario(doc: Dict[str, Any] = Body(...)):
    """Load a scenario document; a rejected document leaves the current scenario untouched."""
    if runner is None:
        engine = Engine(config=_config())
        try:
            evts = engine.load_scenario(doc)
        except ScenarioError as e:
            raise HTTPException(422, str(e))
        r = await _replace_runner(engine)
        r.events.append_many(evts)
        return {"events": _events(evts)}
    try:
        evts = await runner.execute(lambda eng: eng.load_scenario(doc))
    except ScenarioError as e:
        logger.warning("Scenario import rejected: %s", e)
        raise HTTPException(422, str(e))
    return {"events": _events(evts)}

@app.get("/scenario/export")
async def export_scenario(name: str | None = None):
    """Export the current scenario document."""
    return await _require_runner().read(lambda eng: eng.export_scenario(name))

# ---- read model ----

@app.get("/state")
async def get_state():
    """Get the current turn state and units as they should be drawn."""
    return await _require_runner().read(_state)

@app.get("/events")
async def get_events(since: int = 0, limit: int = 500):
    """Get events since offset."""
    r = _require_runner()
    evts, next_offset = r.events.since(since, limit)
    # first_offset > since tells the client it missed dropped events
    return EventsResponse(first_offset=r.events.first_offset, next_offset=next_offset,
                          events=_events(evts))

# ---- turn controls ----

@app.post("/turn/advance")
async def advance_turn():
    evts = await _require_runner().execute(lambda eng: eng.advance_units())
    return {"events": _events(evts)}

@app.post("/turn/revert")
async def revert_turn():
    evts = await _require_runner().execute(lambda eng: eng.revert_units())
    if evts and evts[-1].kind == "RevertRejected":
        raise HTTPException(409, "No earlier turn")
    return {"events": _events(evts)}

@app.post("/turn/redo")
async def redo_turn():
    evts = await _require_runner().execute(lambda eng: eng.redo_units())
    if evts and evts[-1].kind == "RedoRejected":
        raise HTTPException(409, "No later turn")
    return {"events": _events(evts)}

@app.post("/turn/type")
async def set_turn_type(req: TurnTypeIn):
    evts = await _require_runner().execute(lambda eng: eng.set_turn_type(TurnType(req.turn_type)))
    return {"events": _events(evts)}

@app.post("/simulation/toggle")
async def toggle_simulation():
    """Start or stop discrete auto-advance."""
    r = _require_runner()
    await r.execute(lambda eng: eng.toggle_simulation())
    return {"mode": r.engine.mode}

@app.post("/realtime/toggle")
async def toggle_realtime():
    """Start or stop real-time playback."""
    r = _require_runner()
    await r.execute(lambda eng: eng.toggle_real_time())
    return {"mode": r.engine.mode}

@app.post("/realtime/speed")
async def set_speed(req: SpeedIn):
    """Set real-time playback speed multiplier."""
    r = _require_runner()
    await r.execute(lambda eng: eng.set_speed_multiplier(req.multiplier))
    return {"speed_multiplier": r.engine.speed_multiplier}

# ---- units ----

@app.post("/units")
async def create_unit(req: UnitCreate):
    try:
        evts = await _require_runner().execute(
            lambda eng: eng.add_unit(req.unit_kind(), req.color, req.position,
                                     unit_id=req.id, **req.engine_fields()))
    except ValueError as e:
        raise HTTPException(422, str(e))
    return {"unit_id": evts[0].data["unit_id"], "events": _events(evts)}

@app.patch("/units/{unit_id}")
async def edit_unit(unit_id: str, req: UnitUpdate):
    return await _unit_request(lambda eng: eng.update_unit(unit_id, **req.engine_fields()))

@app.delete("/units/{unit_id}")
async def delete_unit(unit_id: str):
    return await _unit_request(lambda eng: eng.remove_unit(unit_id))

@app.post("/units/{unit_id}/position")
async def move_unit_to(unit_id: str, req: PositionIn):
    return await _unit_request(lambda eng: eng.reposition_unit(unit_id, req.position))

@app.post("/units/{unit_id}/plan")
async def plan_movement(unit_id: str, req: PlanIn):
    return await _unit_request(lambda eng: eng.save_planned_movement(unit_id, req.heading, req.speed))

@app.put("/units/{unit_id}/waypoints")
async def save_waypoints(unit_id: str, req: WaypointsIn):
    waypoints = [wp.to_waypoint(i) for i, wp in enumerate(req.waypoints)]
    return await _unit_request(lambda eng: eng.save_waypoints(unit_id, waypoints, req.follow))

@app.post("/units/{unit_id}/waypoints")
async def add_waypoint(unit_id: str, req: PositionIn):
    return await _unit_request(lambda eng: eng.add_waypoint(unit_id, req.position))

@app.get("/units/{unit_id}/route")
async def get_route(unit_id: str):
    """Route of a unit with estimated times of arrival."""
    def view(eng: Engine):
        unit = eng.get_unit(unit_id)
        if unit is None:
            return None
        return eng.route_etas(unit_id), next_waypoint(unit)

    found = await _require_runner().read(view)
    if found is None:
        raise HTTPException(404, "Unit not found")
    route, target = found
    return {
        "unit_id": unit_id,
        "next_waypoint_id": target.id if target else None,
        "waypoints": [waypoint_to_dict(wp) for wp in route],
    }

# ---- tools ----

@app.post("/measure")
async def measure(req: MeasureIn):
    """Measure a polyline drawn on the map."""
    legs = leg_distances(req.points)
    return {
        "unit": req.unit,
        "total": measure_path(req.points, req.unit),
        "legs_nm": [float(d) for d in legs],
    }
