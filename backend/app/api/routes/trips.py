"""Trip plan endpoints - plan read/write, revision history and restore."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, StrictInt
from sqlalchemy.orm import Session

from backend.app.api.auth import get_current_context
from backend.app.db.context import RequestContext
from backend.app.db.engine import get_session
from backend.app.models.common import RevisionSource
from backend.app.models.display import DisplayDestination
from backend.app.models.revisions import RestoreResult, TripRevisionList, WriteAudit
from backend.app.models.trip_plan import PlannerTripSeed, PlanWriteResult, TripPlanSnapshot
from backend.app.trips import persistence
from backend.app.trips.errors import TripPlanPersistenceError, TripPlanValidationError
from backend.app.trips.sql_store import SqlTripPlanStore
from backend.app.trips.store import TripPlanStore

router = APIRouter(prefix="/trips", tags=["trips"])


def get_trip_plan_store(session: Annotated[Session, Depends(get_session)]) -> TripPlanStore:
    """FastAPI dependency for the trip plan store."""
    return SqlTripPlanStore(session)


class TripPlanResponse(BaseModel):
    """Response for GET /trips/{trip_id}/plan."""

    trip_id: str
    version: int
    destinations: list[DisplayDestination]


class RestoreRevisionRequest(BaseModel):
    """Request body for POST /trips/{trip_id}/revisions/{revision_id}/restore."""

    expected_version: StrictInt | None = None
    reason: str | None = None


def _http_error(error: TripPlanPersistenceError) -> HTTPException:
    detail: dict[str, Any] = {"code": error.code, "message": str(error)}
    if isinstance(error, TripPlanValidationError):
        detail["issues"] = [issue.model_dump() for issue in error.issues]
    return HTTPException(status_code=error.status_code, detail=detail)


@router.get("/{trip_id}/plan", response_model=TripPlanResponse)
def get_trip_plan(
    trip_id: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripPlanStore, Depends(get_trip_plan_store)],
) -> TripPlanResponse:
    """Get a trip's plan in display form.

    Args:
        trip_id: Trip ID
        ctx: Request context (user_id)
        store: Trip plan store

    Returns:
        Current version and one destination per day
    """
    try:
        destinations = persistence.load_trip_display(store, user_id=ctx.user_id, trip_id=trip_id)
    except TripPlanPersistenceError as e:
        raise _http_error(e) from e

    version = persistence.get_trip_current_version(store, user_id=ctx.user_id, trip_id=trip_id)
    return TripPlanResponse(trip_id=trip_id, version=version or 0, destinations=destinations)


@router.get("/{trip_id}/snapshot", response_model=TripPlanSnapshot)
def get_trip_plan_snapshot(
    trip_id: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripPlanStore, Depends(get_trip_plan_store)],
) -> TripPlanSnapshot:
    """Get a trip's current plan without durable ids."""
    snapshot = persistence.load_trip_plan_snapshot(store, user_id=ctx.user_id, trip_id=trip_id)

    if snapshot is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": f"Trip {trip_id} not found"})

    return snapshot


@router.get("/{trip_id}/planner-seed", response_model=PlannerTripSeed)
def get_planner_seed(
    trip_id: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripPlanStore, Depends(get_trip_plan_store)],
) -> PlannerTripSeed:
    seed = persistence.get_planner_trip_seed(store, user_id=ctx.user_id, trip_id=trip_id)

    if seed is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": f"Trip {trip_id} not found"})

    return seed


@router.put("/{trip_id}/plan", response_model=PlanWriteResult)
def put_trip_plan(
    trip_id: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripPlanStore, Depends(get_trip_plan_store)],
    body: Annotated[dict[str, Any], Body()],
) -> PlanWriteResult:
    """Replace a trip's plan.

    The body is the write payload ({stops, preferences?, title?}) plus an
    optional ``expected_version`` for conflict detection. Validation
    failures answer 422 with path-qualified issues.

    Returns:
        Day index -> new day id map and the new version
    """
    payload = dict(body)
    expected_version = payload.pop("expected_version", None)
    if expected_version is not None and (isinstance(expected_version, bool) or not isinstance(expected_version, int)):
        raise HTTPException(
            status_code=422,
            detail={"code": "INVALID_PAYLOAD", "message": "expected_version must be an integer"},
        )

    try:
        return persistence.save_trip_plan_as_user(
            store,
            user_id=ctx.user_id,
            trip_id=trip_id,
            payload=payload,
            expected_version=expected_version,
            audit=WriteAudit(source=RevisionSource.api, actor=ctx.user_id),
        )
    except TripPlanPersistenceError as e:
        raise _http_error(e) from e


@router.get("/{trip_id}/revisions", response_model=TripRevisionList)
def get_trip_revisions(
    trip_id: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripPlanStore, Depends(get_trip_plan_store)],
) -> TripRevisionList:
    """List a trip's revisions, newest first."""
    try:
        return persistence.list_trip_revisions(store, user_id=ctx.user_id, trip_id=trip_id)
    except TripPlanPersistenceError as e:
        raise _http_error(e) from e


@router.post("/{trip_id}/revisions/{revision_id}/restore", response_model=RestoreResult)
def restore_revision(
    trip_id: str,
    revision_id: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripPlanStore, Depends(get_trip_plan_store)],
    request: Annotated[RestoreRevisionRequest | None, Body()] = None,
) -> RestoreResult:
    """Restore a historical revision as a new version."""
    request = request or RestoreRevisionRequest()
    try:
        return persistence.restore_trip_revision(
            store,
            user_id=ctx.user_id,
            trip_id=trip_id,
            revision_id=revision_id,
            actor=ctx.user_id,
            expected_version=request.expected_version,
            reason=request.reason,
        )
    except TripPlanPersistenceError as e:
        raise _http_error(e) from e
