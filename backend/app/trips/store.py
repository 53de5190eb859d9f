"""Trip plan store protocol and the records it exchanges."""

from dataclasses import dataclass, field
from typing import Protocol

from backend.app.models.revisions import StoredRevision, TripRevisionList, WriteAudit
from backend.app.models.trip_plan import (
    PersistedTrip,
    PlannerTripSeed,
    PlanWriteResult,
    TripPlanSnapshot,
    TripPlanWritePayload,
)


@dataclass
class TripAccessRecord:
    """Ownership facts needed to authorize a write."""

    trip_id: str
    user_id: str


@dataclass
class PlanCommit:
    """A full plan replacement, ready to be applied in one transaction."""

    trip_id: str
    payload: TripPlanWritePayload
    audit: WriteAudit = field(default_factory=WriteAudit)
    expected_version: int | None = None
    restored_from_version: int | None = None


class TripPlanStore(Protocol):
    """Storage operations behind trip plan persistence.

    Read methods taking ``user_id`` enforce ownership and return None for
    trips the user does not own.
    """

    def get_trip_access(self, trip_id: str) -> TripAccessRecord | None:
        """Get ownership facts for a trip, regardless of caller.

        Args:
            trip_id: Trip ID

        Returns:
            Access record or None if the trip does not exist
        """
        ...

    def commit_plan(self, commit: PlanCommit) -> PlanWriteResult:
        """Replace a trip's plan and record a revision, all-or-nothing.

        Deletes every stop/day/item of the trip, recreates them from the
        payload, updates title/status/preferences, bumps the version, and
        appends a revision. On any failure nothing is changed.

        Args:
            commit: The plan replacement

        Returns:
            Day index -> new day id map and the new version

        Raises:
            TripPlanAuthorizationError: NOT_FOUND if the trip disappeared
            TripVersionConflictError: If ``expected_version`` is stale
        """
        ...

    def load_trip(self, trip_id: str, user_id: str) -> PersistedTrip | None:
        """Load a trip with ids, experiences and bookings for display."""
        ...

    def load_snapshot(self, trip_id: str, user_id: str) -> TripPlanSnapshot | None:
        """Load the current plan of a trip without durable ids."""
        ...

    def get_current_version(self, trip_id: str, user_id: str) -> int | None:
        ...

    def list_revisions(self, trip_id: str, user_id: str) -> TripRevisionList | None:
        """List revisions newest-first."""
        ...

    def get_revision(self, trip_id: str, revision_id: str) -> StoredRevision | None:
        ...

    def get_planner_trip_seed(self, trip_id: str, user_id: str) -> PlannerTripSeed | None:
        """Destination titles in stop order and whether any day is persisted."""
        ...
