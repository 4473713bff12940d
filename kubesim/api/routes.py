"""REST routes for KubeSim, mounted under ``/api/v1``.

Every handler reads the simulation from ``request.app.state.simulation``.
Missing resources and incidents return 404 with the standard error envelope.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from kubesim.api.schemas import (
    CommandRequest,
    CommandResponse,
    ErrorResponse,
    HealthResponse,
    ResolutionResponse,
    ResolveRequest,
    SimulationStateResponse,
    StepResponse,
    TimeScaleRequest,
)
from kubesim.incidents import IncidentState
from kubesim.models.codec import encode
from kubesim.models.resources import Kind
from kubesim.store import QueryFilter, parse_selector

router = APIRouter()

_MAX_LIMIT = 1000


def _sim(request: Request) -> Any:
    return request.app.state.simulation


def _not_found(what: str, key: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content=ErrorResponse(error="NOT_FOUND", detail=f"{what} {key!r} not found").model_dump(),
    )


def _invalid(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="INVALID_REQUEST", detail=detail).model_dump(),
    )


def _state(sim: Any) -> SimulationStateResponse:
    return SimulationStateResponse(
        paused=sim.paused,
        time_scale=sim.time_scale,
        sim_time=sim.sim_time,
        tick=sim.engine.tick_count,
    )


# ---------------------------------------------------------------------------
# Health and cluster state
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, response_model_by_alias=True)
async def health(request: Request) -> HealthResponse:
    sim = _sim(request)
    return HealthResponse(
        status="ok",
        version=request.app.state.version,
        sim_time=sim.sim_time,
        tick=sim.engine.tick_count,
        paused=sim.paused,
    )


@router.get("/stats")
async def stats(request: Request) -> dict[str, Any]:
    return _sim(request).status()


@router.get("/snapshot")
async def snapshot(request: Request) -> dict[str, Any]:
    return _sim(request).snapshot()


@router.get("/quota/{namespace}", response_model=None)
async def quota(request: Request, namespace: str) -> dict[str, Any] | JSONResponse:
    store = _sim(request).store
    hard = store.get_resource_quota(namespace)
    if hard is None:
        return _not_found("ResourceQuota", namespace)
    check = store.check_quota(namespace, 0.0, 0.0, 0)
    return {
        "namespace": namespace,
        "hard": encode(hard),
        "used": encode(check.usage),
        "violations": list(check.violations),
    }


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


@router.get("/resources", response_model=None)
async def list_resources(
    request: Request,
    kind: str | None = None,
    namespace: str | None = None,
    label_selector: str | None = Query(default=None, alias="labelSelector"),
    field_selector: str | None = Query(default=None, alias="fieldSelector"),
    phase: str | None = None,
    limit: int | None = Query(default=None, ge=0, le=_MAX_LIMIT),
) -> dict[str, Any] | JSONResponse:
    if kind is not None and kind not in {k.value for k in Kind}:
        return _invalid(f"unknown kind {kind!r}")
    try:
        flt = QueryFilter(
            kind=kind,
            namespace=namespace,
            selector=parse_selector(label_selector) or None,
            field_selector=parse_selector(field_selector) or None,
            phase=phase,
            limit=limit,
        )
    except ValueError as exc:
        return _invalid(str(exc))
    items = _sim(request).store.query(flt)
    return {"items": [r.to_dict() for r in items], "count": len(items)}


@router.get("/resources/{uid}", response_model=None)
async def get_resource(request: Request, uid: str, events: bool = False) -> dict[str, Any] | JSONResponse:
    resource = _sim(request).store.get(uid)
    if resource is None:
        return _not_found("Resource", uid)
    return resource.to_dict(include_events=events)


@router.get("/resources/{uid}/children", response_model=None)
async def resource_children(request: Request, uid: str) -> dict[str, Any] | JSONResponse:
    store = _sim(request).store
    if store.get(uid) is None:
        return _not_found("Resource", uid)
    items = store.children(uid)
    return {"items": [r.to_dict() for r in items], "count": len(items)}


@router.get("/resources/{uid}/descendants", response_model=None)
async def resource_descendants(
    request: Request,
    uid: str,
    max_depth: int | None = Query(default=None, alias="maxDepth", ge=0),
) -> dict[str, Any] | JSONResponse:
    store = _sim(request).store
    if store.get(uid) is None:
        return _not_found("Resource", uid)
    items = store.descendants(uid, max_depth)
    return {"items": [r.to_dict() for r in items], "count": len(items)}


@router.get("/resources/{uid}/owner-chain", response_model=None)
async def resource_owner_chain(request: Request, uid: str) -> dict[str, Any] | JSONResponse:
    store = _sim(request).store
    if store.get(uid) is None:
        return _not_found("Resource", uid)
    items = store.owner_chain(uid)
    return {"items": [r.to_dict() for r in items], "count": len(items)}


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@router.post("/commands", response_model=CommandResponse, response_model_by_alias=True)
async def post_command(request: Request, body: CommandRequest) -> CommandResponse:
    sim = _sim(request)
    if body.queue:
        position = sim.queue_command(body.to_command())
        return CommandResponse(success=True, message=f"queued at position {position}", queued=True)
    result = sim.execute_command(body.to_command())
    return CommandResponse(success=result.success, message=result.message, data=result.data)


# ---------------------------------------------------------------------------
# Incidents
# ---------------------------------------------------------------------------


@router.get("/incidents", response_model=None)
async def list_incidents(
    request: Request,
    state: str | None = None,
    include_resolved: bool = Query(default=True, alias="includeResolved"),
) -> dict[str, Any] | JSONResponse:
    wanted: IncidentState | None = None
    if state is not None:
        try:
            wanted = IncidentState(state)
        except ValueError:
            return _invalid(f"unknown incident state {state!r}")
    engine = _sim(request).incidents
    items = engine.incidents(wanted, include_resolved=include_resolved)
    return {"items": [i.to_dict() for i in items], "count": len(items), "stats": engine.stats()}


@router.get("/incidents/{incident_id}", response_model=None)
async def get_incident(request: Request, incident_id: str) -> dict[str, Any] | JSONResponse:
    incident = _sim(request).incidents.get(incident_id)
    if incident is None:
        return _not_found("Incident", incident_id)
    return incident.to_dict()


@router.post("/incidents/{incident_id}/investigate", response_model=None)
async def investigate_incident(request: Request, incident_id: str) -> dict[str, Any] | JSONResponse:
    incident = _sim(request).incidents.investigate(incident_id)
    if incident is None:
        return _not_found("Open incident", incident_id)
    return incident.to_dict()


@router.post("/incidents/{incident_id}/steps/{index}", response_model=None)
async def complete_incident_step(
    request: Request,
    incident_id: str,
    index: int,
) -> StepResponse | JSONResponse:
    progress = _sim(request).incidents.complete_step(incident_id, index)
    if progress is None:
        return _not_found("Investigation step", f"{incident_id}/{index}")
    return StepResponse(incident_id=incident_id, step_index=index, progress=progress)


@router.post("/incidents/{incident_id}/resolve", response_model=None)
async def resolve_incident(
    request: Request,
    incident_id: str,
    body: ResolveRequest | None = None,
) -> ResolutionResponse | JSONResponse:
    action = body.action if body is not None else ""
    result = _sim(request).incidents.resolve(incident_id, action)
    if result is None:
        return _not_found("Open incident", incident_id)
    return ResolutionResponse(
        incident_id=incident_id,
        xp=result.xp,
        combo=result.combo,
        resolution_time=result.resolution_time,
        cascade_children_remaining=list(result.cascade_children_remaining),
    )


# ---------------------------------------------------------------------------
# Simulation control
# ---------------------------------------------------------------------------


@router.post("/simulation/pause", response_model=SimulationStateResponse, response_model_by_alias=True)
async def pause_simulation(request: Request) -> SimulationStateResponse:
    sim = _sim(request)
    sim.pause()
    return _state(sim)


@router.post("/simulation/resume", response_model=SimulationStateResponse, response_model_by_alias=True)
async def resume_simulation(request: Request) -> SimulationStateResponse:
    sim = _sim(request)
    sim.resume()
    return _state(sim)


@router.post("/simulation/time-scale", response_model=SimulationStateResponse, response_model_by_alias=True)
async def set_time_scale(request: Request, body: TimeScaleRequest) -> SimulationStateResponse:
    sim = _sim(request)
    sim.set_time_scale(body.scale)
    return _state(sim)
