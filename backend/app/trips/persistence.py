"""Trip plan persistence operations.

Every write is authorized first, then applied as one full-plan replacement
with an immutable revision. Reads are scoped to the trip owner.
"""

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from backend.app.itinerary.converter import (
    apply_editable_stops,
    snapshot_to_editable_stops,
    snapshot_to_write_payload,
    to_display,
)
from backend.app.itinerary.stop_mutations import StopMutationResult
from backend.app.models.common import RevisionSource
from backend.app.models.display import DisplayDestination
from backend.app.models.revisions import RestoreResult, TripRevisionList, WriteAudit
from backend.app.models.stops import EditableStop
from backend.app.models.trip_plan import (
    PlannerTripSeed,
    PlanWriteResult,
    SnapshotStop,
    TripPlanSnapshot,
    TripPlanWritePayload,
    duplicate_day_index_issues,
    format_validation_issues,
)
from backend.app.trips.authorization import (
    WriteAuthMode,
    WriteRejection,
    decide_trip_plan_write_access,
)
from backend.app.trips.errors import (
    TripPlanAuthorizationError,
    TripPlanValidationError,
    TripRevisionNotFoundError,
    TripVersionConflictError,
)
from backend.app.trips.store import PlanCommit, TripPlanStore
from backend.app.utils.logging import persistence_logger
from backend.app.utils.metrics import plan_metrics

logger = logging.getLogger(__name__)

RESTORE_REASON = "restore_trip_revision"
STOP_EDIT_REASON = "edit_trip_stops"


def validate_write_payload(
    payload: TripPlanWritePayload | Mapping[str, Any], *, message: str = "Invalid trip plan payload"
) -> TripPlanWritePayload:
    """Validate a raw payload against the write schema.

    Raises:
        TripPlanValidationError: With path-qualified issues; nothing is written.
    """
    if isinstance(payload, TripPlanWritePayload):
        parsed = payload
    else:
        try:
            parsed = TripPlanWritePayload.model_validate(payload)
        except ValidationError as e:
            raise TripPlanValidationError(message, format_validation_issues(e)) from e

    issues = duplicate_day_index_issues(parsed)
    if issues:
        raise TripPlanValidationError(message, issues)
    return parsed


def _reject(
    rejection: WriteRejection,
    *,
    trip_id: str,
    mode: WriteAuthMode,
    audit: WriteAudit,
    user_id: str | None = None,
    expected_trip_owner_user_id: str | None = None,
) -> TripPlanAuthorizationError:
    persistence_logger.log_event(
        "write.rejected",
        trip_id=trip_id,
        mode=mode.value,
        actor=audit.actor,
        reason=rejection.value,
        user_id=user_id,
        expected_trip_owner_user_id=expected_trip_owner_user_id,
        source=audit.source.value,
        job_id=audit.job_id,
        generation_id=audit.generation_id,
    )
    plan_metrics.record_write(mode.value, "rejected")

    if rejection == WriteRejection.not_found:
        return TripPlanAuthorizationError("NOT_FOUND", f"Trip {trip_id} not found")
    if rejection == WriteRejection.owner_mismatch:
        return TripPlanAuthorizationError(
            "OWNER_MISMATCH", f"Trip {trip_id} owner mismatch for internal write actor {audit.actor}"
        )
    return TripPlanAuthorizationError(
        "FORBIDDEN", f"Trip {trip_id} does not belong to user {user_id}"
    )


def _commit(store: TripPlanStore, commit: PlanCommit, mode: WriteAuthMode) -> PlanWriteResult:
    started = time.perf_counter()
    try:
        result = store.commit_plan(commit)
    except TripVersionConflictError as e:
        persistence_logger.log_event(
            "write.conflict",
            trip_id=commit.trip_id,
            mode=mode.value,
            actor=commit.audit.actor,
            expected_version=e.expected_version,
            current_version=e.current_version,
        )
        plan_metrics.record_write(mode.value, "conflict")
        raise

    latency_ms = (time.perf_counter() - started) * 1000
    persistence_logger.log_event(
        "write.success",
        trip_id=commit.trip_id,
        mode=mode.value,
        actor=commit.audit.actor,
        version=result.version,
        source=commit.audit.source.value,
        job_id=commit.audit.job_id,
        generation_id=commit.audit.generation_id,
        restored_from_version=commit.restored_from_version,
        days=len(result.day_id_map),
    )
    plan_metrics.record_write(mode.value, "success", latency_ms)
    return result


def save_trip_plan_as_user(
    store: TripPlanStore,
    *,
    user_id: str,
    trip_id: str,
    payload: TripPlanWritePayload | Mapping[str, Any],
    expected_version: int | None = None,
    restored_from_version: int | None = None,
    audit: WriteAudit | None = None,
) -> PlanWriteResult:
    """Replace a trip's plan on behalf of a signed-in user.

    Args:
        store: Trip plan store
        user_id: Acting user; must own the trip
        trip_id: Trip ID
        payload: Full plan replacement
        expected_version: Version the caller last read, if it wants a conflict check
        restored_from_version: Source version when replaying a revision
        audit: Revision audit fields (defaults to an api write by the user)

    Returns:
        Day index -> new day id map and the new version

    Raises:
        TripPlanValidationError: If the payload fails the write schema
        TripPlanAuthorizationError: NOT_FOUND or FORBIDDEN
        TripVersionConflictError: If ``expected_version`` is stale
    """
    audit = audit or WriteAudit(source=RevisionSource.api, actor=user_id)
    validated = validate_write_payload(payload)

    access = store.get_trip_access(trip_id)
    decision = decide_trip_plan_write_access(
        mode=WriteAuthMode.user,
        trip_exists=access is not None,
        trip_owner_user_id=access.user_id if access else None,
        user_id=user_id,
    )
    if not decision.allowed:
        raise _reject(
            decision.reason, trip_id=trip_id, mode=WriteAuthMode.user, audit=audit, user_id=user_id
        )

    return _commit(
        store,
        PlanCommit(
            trip_id=trip_id,
            payload=validated,
            audit=audit,
            expected_version=expected_version,
            restored_from_version=restored_from_version,
        ),
        WriteAuthMode.user,
    )


def save_trip_plan_internal(
    store: TripPlanStore,
    *,
    trip_id: str,
    payload: TripPlanWritePayload | Mapping[str, Any],
    actor: str,
    reason: str,
    expected_trip_owner_user_id: str | None = None,
    expected_version: int | None = None,
    audit: WriteAudit | None = None,
) -> PlanWriteResult:
    """Replace a trip's plan on behalf of a trusted system actor (planner, job).

    The owner is only checked when ``expected_trip_owner_user_id`` is given.

    Raises:
        TripPlanValidationError: If the payload fails the write schema
        TripPlanAuthorizationError: NOT_FOUND or OWNER_MISMATCH
        TripVersionConflictError: If ``expected_version`` is stale
    """
    audit = WriteAudit(
        source=audit.source if audit else RevisionSource.planner,
        actor=actor,
        reason=reason,
        job_id=audit.job_id if audit else None,
        generation_id=audit.generation_id if audit else None,
    )
    validated = validate_write_payload(payload)

    access = store.get_trip_access(trip_id)
    decision = decide_trip_plan_write_access(
        mode=WriteAuthMode.internal,
        trip_exists=access is not None,
        trip_owner_user_id=access.user_id if access else None,
        expected_trip_owner_user_id=expected_trip_owner_user_id,
    )
    if not decision.allowed:
        raise _reject(
            decision.reason,
            trip_id=trip_id,
            mode=WriteAuthMode.internal,
            audit=audit,
            expected_trip_owner_user_id=expected_trip_owner_user_id,
        )

    return _commit(
        store,
        PlanCommit(
            trip_id=trip_id,
            payload=validated,
            audit=audit,
            expected_version=expected_version,
        ),
        WriteAuthMode.internal,
    )


def save_trip_plan_snapshot(
    store: TripPlanStore,
    *,
    user_id: str,
    trip_id: str,
    stops: list[SnapshotStop],
    preferences: dict[str, Any] | None = None,
    title: str | None = None,
    expected_version: int | None = None,
    audit: WriteAudit | None = None,
) -> PlanWriteResult:
    """Write back a previously loaded snapshot (e.g. after stop edits)."""
    payload = snapshot_to_write_payload(stops, preferences=preferences, title=title)
    return save_trip_plan_as_user(
        store,
        user_id=user_id,
        trip_id=trip_id,
        payload=payload,
        expected_version=expected_version,
        audit=audit,
    )


def edit_trip_stops(
    store: TripPlanStore,
    *,
    user_id: str,
    trip_id: str,
    edit: Callable[[list[EditableStop]], StopMutationResult | list[EditableStop]],
    expected_version: int | None = None,
    audit: WriteAudit | None = None,
) -> PlanWriteResult:
    """Apply a name-based stop edit to the persisted plan.

    ``edit`` receives the trip's stops as an editable list and returns the
    edited list (or a mutation result, which is unwrapped). The edit is
    written against the version it was computed from unless
    ``expected_version`` says otherwise, so a concurrent write conflicts
    instead of being overwritten.

    Raises:
        TripPlanAuthorizationError: NOT_FOUND if missing or not owned by the user
        StopMutationError: If a name is unmatched or ambiguous; nothing is written
        TripVersionConflictError: If the plan changed since it was loaded
    """
    snapshot = store.load_snapshot(trip_id, user_id)
    if snapshot is None:
        raise TripPlanAuthorizationError("NOT_FOUND", f"Trip {trip_id} not found")

    edited = edit(snapshot_to_editable_stops(snapshot.stops))
    if isinstance(edited, StopMutationResult):
        edited = edited.unwrap()

    return save_trip_plan_snapshot(
        store,
        user_id=user_id,
        trip_id=trip_id,
        stops=apply_editable_stops(snapshot.stops, edited),
        expected_version=expected_version if expected_version is not None else snapshot.trip.current_version,
        audit=audit or WriteAudit(source=RevisionSource.api, actor=user_id, reason=STOP_EDIT_REASON),
    )


def load_trip_display(store: TripPlanStore, *, user_id: str, trip_id: str) -> list[DisplayDestination]:
    """Load a user's trip in display form.

    Raises:
        TripPlanAuthorizationError: NOT_FOUND if missing or not owned by the user
    """
    trip = store.load_trip(trip_id, user_id)
    if trip is None:
        raise TripPlanAuthorizationError("NOT_FOUND", f"Trip {trip_id} not found")
    return to_display(trip)


def load_trip_plan_snapshot(store: TripPlanStore, *, user_id: str, trip_id: str) -> TripPlanSnapshot | None:
    return store.load_snapshot(trip_id, user_id)


def get_trip_current_version(store: TripPlanStore, *, user_id: str, trip_id: str) -> int | None:
    return store.get_current_version(trip_id, user_id)


def get_planner_trip_seed(store: TripPlanStore, *, user_id: str, trip_id: str) -> PlannerTripSeed | None:
    """Destination titles and whether days exist, for seeding the planner."""
    return store.get_planner_trip_seed(trip_id, user_id)


def list_trip_revisions(store: TripPlanStore, *, user_id: str, trip_id: str) -> TripRevisionList:
    """List a user's trip revisions, newest first.

    Raises:
        TripPlanAuthorizationError: NOT_FOUND if missing or not owned by the user
    """
    revisions = store.list_revisions(trip_id, user_id)
    if revisions is None:
        raise TripPlanAuthorizationError("NOT_FOUND", f"Trip {trip_id} not found")
    return revisions


def restore_trip_revision(
    store: TripPlanStore,
    *,
    user_id: str,
    trip_id: str,
    revision_id: str,
    actor: str,
    expected_version: int | None = None,
    reason: str | None = None,
) -> RestoreResult:
    """Replay a historical revision as a new forward write.

    The stored payload is re-validated against the current write schema
    before it is re-submitted; history is never rewritten.

    Args:
        store: Trip plan store
        user_id: Acting user; must own the trip
        trip_id: Trip ID
        revision_id: Revision to restore
        actor: Recorded on the new revision
        expected_version: Optional conflict check against the current version
        reason: Recorded on the new revision (defaults to "restore_trip_revision")

    Returns:
        The newly written version and the version it was restored from

    Raises:
        TripPlanAuthorizationError: NOT_FOUND if missing or not owned by the user
        TripRevisionNotFoundError: If the revision does not belong to the trip
        TripPlanValidationError: If the stored payload no longer validates
        TripVersionConflictError: If ``expected_version`` is stale
    """
    if store.get_current_version(trip_id, user_id) is None:
        raise TripPlanAuthorizationError("NOT_FOUND", f"Trip {trip_id} not found")

    revision = store.get_revision(trip_id, revision_id)
    if revision is None:
        raise TripRevisionNotFoundError(f"Revision {revision_id} not found for trip {trip_id}")

    payload = validate_write_payload(
        revision.payload,
        message=f"Stored revision payload is invalid for revision {revision_id}",
    )

    result = save_trip_plan_as_user(
        store,
        user_id=user_id,
        trip_id=trip_id,
        payload=payload,
        expected_version=expected_version,
        restored_from_version=revision.version,
        audit=WriteAudit(source=RevisionSource.api, actor=actor, reason=reason or RESTORE_REASON),
    )
    plan_metrics.inc_restore()
    logger.info(
        f"Restored trip {trip_id} revision v{revision.version} as v{result.version}",
        extra={"structured": {"trip_id": trip_id, "revision_id": revision_id}},
    )

    return RestoreResult(restored_version=result.version, restored_from_version=revision.version)
