"""Models package - re-exports for convenience."""

from backend.app.models.common import (
    BookingStatus,
    ItemStatus,
    ItemType,
    PaymentStatus,
    RevisionSource,
    StopType,
)
from backend.app.models.display import DisplayDestination, DisplayItem, DisplayPlace
from backend.app.models.job import GenerationJob, GenerationMode, JobProgress, JobStage, JobStatus
from backend.app.models.plan import BookingSnapshot, Day, Item, Location, Plan, Stop
from backend.app.models.revisions import (
    RestoreResult,
    StoredRevision,
    TripRevisionList,
    TripRevisionSummary,
    WriteAudit,
)
from backend.app.models.stops import EditableStop
from backend.app.models.trip_plan import (
    PersistedTrip,
    PlannerTripSeed,
    PlanWriteResult,
    TripPlanSnapshot,
    TripPlanWritePayload,
    ValidationIssue,
)

__all__ = [
    # Common
    "StopType",
    "ItemType",
    "ItemStatus",
    "BookingStatus",
    "PaymentStatus",
    "RevisionSource",
    # Plan
    "Plan",
    "Stop",
    "Day",
    "Item",
    "Location",
    "BookingSnapshot",
    # Trip plan persistence
    "TripPlanWritePayload",
    "ValidationIssue",
    "TripPlanSnapshot",
    "PersistedTrip",
    "PlanWriteResult",
    "PlannerTripSeed",
    # Revisions
    "WriteAudit",
    "TripRevisionSummary",
    "TripRevisionList",
    "StoredRevision",
    "RestoreResult",
    # Display
    "DisplayDestination",
    "DisplayItem",
    "DisplayPlace",
    # Stops
    "EditableStop",
    # Jobs
    "GenerationJob",
    "GenerationMode",
    "JobProgress",
    "JobStage",
    "JobStatus",
]
