"""In-memory implementation of the trip plan store."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from backend.app.config import get_settings
from backend.app.itinerary.converter import parse_locations, parse_suggested_hosts
from backend.app.models.common import ItemStatus, RevisionSource, StopType
from backend.app.models.plan import BookingSnapshot, Location
from backend.app.models.revisions import StoredRevision, TripRevisionList, TripRevisionSummary
from backend.app.models.trip_plan import (
    ExperienceRef,
    PersistedDay,
    PersistedItem,
    PersistedStop,
    PersistedTrip,
    PlannerTripSeed,
    PlanWriteResult,
    SnapshotDay,
    SnapshotItem,
    SnapshotStop,
    TripPlanSnapshot,
    TripSummary,
)
from backend.app.trips.errors import TripPlanAuthorizationError
from backend.app.trips.rewrite import (
    day_values,
    item_values,
    merge_preferences,
    resolve_title,
    revision_payload,
    stop_values,
)
from backend.app.trips.store import PlanCommit, TripAccessRecord
from backend.app.trips.versioning import resolve_next_trip_version


@dataclass
class _TripRow:
    id: str
    user_id: str
    title: str
    status: str
    preferences: dict[str, Any]
    current_version: int = 0


@dataclass
class _RevisionRow:
    id: str
    trip_id: str
    version: int
    payload: dict[str, Any]
    source: str
    actor: str
    reason: str | None
    job_id: str | None
    generation_id: str | None
    restored_from_version: int | None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryTripPlanStore:
    """In-memory implementation of TripPlanStore.

    A commit builds the complete replacement tree before touching stored
    state, so a failure part-way leaves the previous plan intact.
    """

    def __init__(self) -> None:
        self._trips: dict[str, _TripRow] = {}
        self._stops: dict[str, list[dict[str, Any]]] = {}
        self._revisions: dict[str, list[_RevisionRow]] = {}
        self._experience_hosts: dict[str, str] = {}
        self._bookings: dict[str, list[BookingSnapshot]] = {}

    # --- seeding (trips, experiences and bookings are owned elsewhere) ---

    def create_trip(
        self,
        user_id: str,
        title: str = "My Trip",
        *,
        trip_id: str | None = None,
        status: str = "DRAFT",
        preferences: dict[str, Any] | None = None,
    ) -> str:
        """Create an empty trip."""
        trip_id = trip_id or str(uuid.uuid4())
        self._trips[trip_id] = _TripRow(
            id=trip_id,
            user_id=user_id,
            title=title,
            status=status,
            preferences=dict(preferences or {}),
        )
        self._stops[trip_id] = []
        self._revisions[trip_id] = []
        return trip_id

    def add_experience(self, experience_id: str, host_id: str) -> None:
        self._experience_hosts[experience_id] = host_id

    def attach_booking(self, item_id: str, booking: BookingSnapshot) -> None:
        """Attach a booking; the newest attachment is listed first."""
        self._bookings.setdefault(item_id, []).insert(0, booking)

    def get_preferences(self, trip_id: str) -> dict[str, Any] | None:
        trip = self._trips.get(trip_id)
        return dict(trip.preferences) if trip else None

    # --- TripPlanStore ---

    def get_trip_access(self, trip_id: str) -> TripAccessRecord | None:
        """Get ownership facts for a trip."""
        trip = self._trips.get(trip_id)
        if trip is None:
            return None
        return TripAccessRecord(trip_id=trip.id, user_id=trip.user_id)

    def commit_plan(self, commit: PlanCommit) -> PlanWriteResult:
        """Replace a trip's plan and record a revision."""
        trip = self._trips.get(commit.trip_id)
        if trip is None:
            raise TripPlanAuthorizationError("NOT_FOUND", f"Trip {commit.trip_id} not found")

        step = resolve_next_trip_version(trip.current_version, commit.expected_version)

        day_id_map: dict[int, str] = {}
        new_stops: list[dict[str, Any]] = []
        for stop_position, stop in enumerate(commit.payload.stops):
            days: list[dict[str, Any]] = []
            for day in stop.days or []:
                day_id = str(uuid.uuid4())
                day_id_map[day.day_index] = day_id
                days.append(
                    {
                        "id": day_id,
                        **day_values(day),
                        "items": [
                            {"id": str(uuid.uuid4()), "status": None, **item_values(item, position)}
                            for position, item in enumerate(day.items or [])
                        ],
                    }
                )
            new_stops.append({"id": str(uuid.uuid4()), **stop_values(stop, stop_position), "days": days})

        preferences = merge_preferences(trip.preferences, commit.payload.preferences)
        title = resolve_title(trip.title, commit.payload.title)
        revision = _RevisionRow(
            id=str(uuid.uuid4()),
            trip_id=trip.id,
            version=step.next_version,
            payload=revision_payload(commit.payload, preferences, title),
            source=commit.audit.source.value,
            actor=commit.audit.actor,
            reason=commit.audit.reason,
            job_id=commit.audit.job_id,
            generation_id=commit.audit.generation_id,
            restored_from_version=commit.restored_from_version,
        )

        # Swap in the new state only once everything is built
        self._stops[trip.id] = new_stops
        trip.title = title
        trip.status = get_settings().planned_trip_status
        trip.preferences = preferences
        trip.current_version = step.next_version
        self._revisions[trip.id].append(revision)

        return PlanWriteResult(day_id_map=day_id_map, version=step.next_version)

    def _owned(self, trip_id: str, user_id: str) -> _TripRow | None:
        trip = self._trips.get(trip_id)
        if trip is None or trip.user_id != user_id:
            return None
        return trip

    def _ordered_stops(self, trip_id: str) -> list[dict[str, Any]]:
        stops = sorted(self._stops.get(trip_id, []), key=lambda stop: stop["order"])
        for stop in stops:
            stop["days"].sort(key=lambda day: day["day_index"])
            for day in stop["days"]:
                day["items"].sort(key=lambda item: item["order_index"])
        return stops

    @staticmethod
    def _stop_locations(stop: dict[str, Any]) -> list[Location]:
        return parse_locations(stop["locations"]) or [Location(name=stop["title"], lat=0, lng=0)]

    def load_trip(self, trip_id: str, user_id: str) -> PersistedTrip | None:
        """Load a trip for display."""
        trip = self._owned(trip_id, user_id)
        if trip is None:
            return None

        stops = [
            PersistedStop(
                id=stop["id"],
                title=stop["title"],
                type=StopType(stop["type"]),
                locations=self._stop_locations(stop),
                days=[
                    PersistedDay(
                        id=day["id"],
                        day_index=day["day_index"],
                        date=day["date"],
                        title=day["title"],
                        suggested_hosts=parse_suggested_hosts(day["suggested_hosts"]),
                        items=[self._persisted_item(item) for item in day["items"]],
                    )
                    for day in stop["days"]
                ],
            )
            for stop in self._ordered_stops(trip.id)
        ]
        return PersistedTrip(
            id=trip.id,
            user_id=trip.user_id,
            title=trip.title,
            status=trip.status,
            current_version=trip.current_version,
            stops=stops,
        )

    def _persisted_item(self, item: dict[str, Any]) -> PersistedItem:
        experience_id = item["experience_id"]
        experience = None
        if experience_id and experience_id in self._experience_hosts:
            experience = ExperienceRef(host_id=self._experience_hosts[experience_id])
        return PersistedItem(
            id=item["id"],
            type=item["type"],
            title=item["title"],
            description=item["description"],
            status=ItemStatus(item["status"]) if item["status"] else None,
            start_time=item["start_time"],
            end_time=item["end_time"],
            location_name=item["location_name"],
            place_id=item.get("place_id"),
            lat=item["lat"],
            lng=item["lng"],
            experience_id=experience_id,
            host_id=item["host_id"],
            order_index=item["order_index"],
            experience=experience,
            bookings=list(self._bookings.get(item["id"], [])),
        )

    def load_snapshot(self, trip_id: str, user_id: str) -> TripPlanSnapshot | None:
        """Load the current plan without durable ids."""
        trip = self._owned(trip_id, user_id)
        if trip is None:
            return None

        return TripPlanSnapshot(
            trip=TripSummary(
                id=trip.id,
                title=trip.title,
                status=trip.status,
                current_version=trip.current_version,
            ),
            stops=[
                SnapshotStop(
                    title=stop["title"],
                    type=StopType(stop["type"]),
                    locations=self._stop_locations(stop),
                    days=[
                        SnapshotDay(
                            day_index=day["day_index"],
                            date=day["date"],
                            title=day["title"],
                            suggested_hosts=parse_suggested_hosts(day["suggested_hosts"]),
                            items=[
                                SnapshotItem(
                                    **{
                                        key: value
                                        for key, value in item.items()
                                        if key not in ("id", "status", "order_index")
                                    }
                                )
                                for item in day["items"]
                            ],
                        )
                        for day in stop["days"]
                    ],
                )
                for stop in self._ordered_stops(trip.id)
            ],
        )

    def get_current_version(self, trip_id: str, user_id: str) -> int | None:
        trip = self._owned(trip_id, user_id)
        return trip.current_version if trip else None

    def list_revisions(self, trip_id: str, user_id: str) -> TripRevisionList | None:
        """List revisions newest-first."""
        trip = self._owned(trip_id, user_id)
        if trip is None:
            return None

        revisions = sorted(self._revisions[trip.id], key=lambda row: row.version, reverse=True)
        return TripRevisionList(
            trip_id=trip.id,
            current_version=trip.current_version,
            revisions=[
                TripRevisionSummary(
                    id=row.id,
                    version=row.version,
                    source=RevisionSource(row.source),
                    actor=row.actor,
                    reason=row.reason,
                    job_id=row.job_id,
                    generation_id=row.generation_id,
                    restored_from_version=row.restored_from_version,
                    created_at=row.created_at,
                )
                for row in revisions
            ],
        )

    def get_revision(self, trip_id: str, revision_id: str) -> StoredRevision | None:
        for row in self._revisions.get(trip_id, []):
            if row.id == revision_id:
                return StoredRevision(
                    id=row.id, trip_id=row.trip_id, version=row.version, payload=row.payload
                )
        return None

    def get_planner_trip_seed(self, trip_id: str, user_id: str) -> PlannerTripSeed | None:
        trip = self._owned(trip_id, user_id)
        if trip is None:
            return None

        stops = self._ordered_stops(trip.id)
        return PlannerTripSeed(
            destination_titles=[stop["title"] for stop in stops if stop["title"].strip()],
            has_persisted_itinerary_days=any(stop["days"] for stop in stops),
        )
