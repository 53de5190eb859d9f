"""Trip revision models - immutable audit history of plan writes."""

from datetime import datetime

from pydantic import BaseModel, Field

from backend.app.models.common import RevisionSource


class WriteAudit(BaseModel):
    """Who wrote a plan, and why."""

    source: RevisionSource = RevisionSource.api
    actor: str = "unknown"
    reason: str | None = None
    job_id: str | None = None
    generation_id: str | None = None


class TripRevisionSummary(BaseModel):
    """Revision as listed to clients (payload omitted)."""

    id: str
    version: int = Field(..., ge=1)
    source: RevisionSource
    actor: str
    reason: str | None = None
    job_id: str | None = None
    generation_id: str | None = None
    restored_from_version: int | None = None
    created_at: datetime


class TripRevisionList(BaseModel):
    """Revision history of one trip, newest first."""

    trip_id: str
    current_version: int
    revisions: list[TripRevisionSummary]


class StoredRevision(BaseModel):
    """Revision with the raw payload that produced it."""

    id: str
    trip_id: str
    version: int
    payload: dict


class RestoreResult(BaseModel):
    """Outcome of restoring a historical revision."""

    restored_version: int
    restored_from_version: int
