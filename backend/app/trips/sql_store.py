"""SQL implementation of the trip plan store."""

import uuid
from collections import defaultdict
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, defer

from backend.app.config import get_settings
from backend.app.db.models import (
    Booking,
    Experience,
    ItineraryDay,
    ItineraryItem,
    Trip,
    TripRevision,
    TripStop,
)
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
from backend.app.trips.errors import TripPlanAuthorizationError, TripVersionConflictError
from backend.app.trips.rewrite import (
    day_values,
    item_values,
    merge_preferences,
    resolve_title,
    revision_payload,
    stop_values,
)
from backend.app.trips.schema_cache import SchemaCapabilityCache, get_schema_cache
from backend.app.trips.store import PlanCommit, TripAccessRecord
from backend.app.trips.versioning import resolve_next_trip_version
from backend.app.utils.logging import persistence_logger


class _PlanTree:
    """Stops, days and items of one trip, each level in display order."""

    def __init__(
        self,
        stops: list[TripStop],
        days_by_stop: dict[str, list[ItineraryDay]],
        items_by_day: dict[str, list[ItineraryItem]],
    ) -> None:
        self.stops = stops
        self.days_by_stop = days_by_stop
        self.items_by_day = items_by_day


class SqlTripPlanStore:
    """SQL implementation of TripPlanStore."""

    def __init__(self, session: Session, schema_cache: SchemaCapabilityCache | None = None) -> None:
        self._session = session
        self._schema_cache = schema_cache or get_schema_cache()

    def get_trip_access(self, trip_id: str) -> TripAccessRecord | None:
        """Get ownership facts for a trip."""
        row = self._session.execute(
            select(Trip.id, Trip.user_id).where(Trip.id == trip_id)
        ).first()

        if row is None:
            return None

        return TripAccessRecord(trip_id=row.id, user_id=row.user_id)

    def commit_plan(self, commit: PlanCommit) -> PlanWriteResult:
        """Replace a trip's plan and record a revision in one transaction."""
        try:
            result = self._apply_commit(commit)
            self._session.commit()
        except IntegrityError as e:
            self._session.rollback()
            # A concurrent writer took the version first
            if commit.expected_version is not None and "trip_revision" in str(e.orig):
                current = self._session.execute(
                    select(Trip.current_version).where(Trip.id == commit.trip_id)
                ).scalar_one()
                raise TripVersionConflictError(commit.expected_version, current) from e
            raise
        except Exception:
            self._session.rollback()
            raise

        return result

    def _apply_commit(self, commit: PlanCommit) -> PlanWriteResult:
        trip = self._session.execute(
            select(Trip).where(Trip.id == commit.trip_id).with_for_update()
        ).scalar_one_or_none()

        if trip is None:
            raise TripPlanAuthorizationError("NOT_FOUND", f"Trip {commit.trip_id} not found")

        step = resolve_next_trip_version(trip.current_version, commit.expected_version)

        include_place_id = self._schema_cache.supports_item_place_id(self._session)
        if not include_place_id:
            persistence_logger.log_event(
                "write.compat.place_id_disabled", trip_id=trip.id, version=step.next_version
            )

        day_ids = select(ItineraryDay.id).where(ItineraryDay.trip_id == trip.id)
        self._session.execute(delete(ItineraryItem).where(ItineraryItem.day_id.in_(day_ids)))
        self._session.execute(delete(ItineraryDay).where(ItineraryDay.trip_id == trip.id))
        self._session.execute(delete(TripStop).where(TripStop.trip_id == trip.id))

        day_id_map: dict[int, str] = {}
        stop_rows: list[dict[str, Any]] = []
        day_rows: list[dict[str, Any]] = []
        item_rows: list[dict[str, Any]] = []

        for stop_position, stop in enumerate(commit.payload.stops):
            stop_id = str(uuid.uuid4())
            stop_rows.append({"id": stop_id, "trip_id": trip.id, **stop_values(stop, stop_position)})

            for day in stop.days or []:
                day_id = str(uuid.uuid4())
                day_id_map[day.day_index] = day_id
                day_rows.append({"id": day_id, "trip_id": trip.id, "stop_id": stop_id, **day_values(day)})

                for position, item in enumerate(day.items or []):
                    item_rows.append(
                        {
                            "id": str(uuid.uuid4()),
                            "day_id": day_id,
                            **item_values(item, position, include_place_id=include_place_id),
                        }
                    )

        # Core inserts render only the supplied columns, so a missing
        # place_id column is never referenced
        for table, rows in (
            (TripStop.__table__, stop_rows),
            (ItineraryDay.__table__, day_rows),
            (ItineraryItem.__table__, item_rows),
        ):
            if rows:
                self._session.execute(insert(table), rows)

        preferences = merge_preferences(trip.preferences, commit.payload.preferences)
        title = resolve_title(trip.title, commit.payload.title)

        trip.title = title
        trip.status = get_settings().planned_trip_status
        trip.preferences = preferences
        trip.current_version = step.next_version

        self._session.add(
            TripRevision(
                id=str(uuid.uuid4()),
                trip_id=trip.id,
                version=step.next_version,
                source=commit.audit.source.value,
                actor=commit.audit.actor,
                reason=commit.audit.reason,
                job_id=commit.audit.job_id,
                generation_id=commit.audit.generation_id,
                restored_from_version=commit.restored_from_version,
                payload=revision_payload(commit.payload, preferences, title),
            )
        )
        self._session.flush()

        return PlanWriteResult(day_id_map=day_id_map, version=step.next_version)

    def _owned_trip(self, trip_id: str, user_id: str) -> Trip | None:
        return self._session.execute(
            select(Trip).where(Trip.id == trip_id, Trip.user_id == user_id)
        ).scalar_one_or_none()

    def _load_tree(self, trip_id: str, include_place_id: bool) -> _PlanTree:
        stops = list(
            self._session.execute(
                select(TripStop).where(TripStop.trip_id == trip_id).order_by(TripStop.order)
            ).scalars()
        )

        days_by_stop: dict[str, list[ItineraryDay]] = defaultdict(list)
        days = self._session.execute(
            select(ItineraryDay)
            .where(ItineraryDay.trip_id == trip_id)
            .order_by(ItineraryDay.day_index)
        ).scalars()
        day_ids: list[str] = []
        for day in days:
            days_by_stop[day.stop_id].append(day)
            day_ids.append(day.id)

        items_by_day: dict[str, list[ItineraryItem]] = defaultdict(list)
        if day_ids:
            item_query = (
                select(ItineraryItem)
                .where(ItineraryItem.day_id.in_(day_ids))
                .order_by(ItineraryItem.order_index)
            )
            if not include_place_id:
                item_query = item_query.options(defer(ItineraryItem.place_id))
            for item in self._session.execute(item_query).scalars():
                items_by_day[item.day_id].append(item)

        return _PlanTree(stops, days_by_stop, items_by_day)

    @staticmethod
    def _stop_locations(stop: TripStop) -> list[Location]:
        return parse_locations(stop.locations) or [Location(name=stop.title, lat=0, lng=0)]

    def load_trip(self, trip_id: str, user_id: str) -> PersistedTrip | None:
        """Load a trip with experiences and bookings attached."""
        trip = self._owned_trip(trip_id, user_id)

        if trip is None:
            return None

        include_place_id = self._schema_cache.supports_item_place_id(self._session)
        tree = self._load_tree(trip.id, include_place_id)
        items = [item for day_items in tree.items_by_day.values() for item in day_items]

        experience_ids = {item.experience_id for item in items if item.experience_id}
        hosts: dict[str, str] = {}
        if experience_ids:
            rows = self._session.execute(
                select(Experience.id, Experience.host_id).where(Experience.id.in_(experience_ids))
            )
            hosts = {row.id: row.host_id for row in rows}

        bookings_by_item: dict[str, list[BookingSnapshot]] = defaultdict(list)
        if items:
            bookings = self._session.execute(
                select(Booking)
                .where(Booking.item_id.in_([item.id for item in items]))
                .order_by(Booking.created_at.desc(), Booking.updated_at.desc())
            ).scalars()
            for booking in bookings:
                bookings_by_item[booking.item_id].append(
                    BookingSnapshot(
                        id=booking.id,
                        status=booking.status,
                        payment_status=booking.payment_status,
                        updated_at=booking.updated_at,
                    )
                )

        def persisted_item(item: ItineraryItem) -> PersistedItem:
            host_id = hosts.get(item.experience_id) if item.experience_id else None
            return PersistedItem(
                id=item.id,
                type=item.type,
                title=item.title,
                description=item.description,
                status=ItemStatus(item.status) if item.status else None,
                start_time=item.start_time,
                end_time=item.end_time,
                location_name=item.location_name,
                place_id=item.place_id if include_place_id else None,
                lat=item.lat,
                lng=item.lng,
                experience_id=item.experience_id,
                host_id=item.host_id,
                order_index=item.order_index,
                experience=ExperienceRef(host_id=host_id) if host_id else None,
                bookings=bookings_by_item.get(item.id, []),
            )

        return PersistedTrip(
            id=trip.id,
            user_id=trip.user_id,
            title=trip.title,
            status=trip.status,
            current_version=trip.current_version,
            stops=[
                PersistedStop(
                    id=stop.id,
                    title=stop.title,
                    type=StopType(stop.type),
                    locations=self._stop_locations(stop),
                    days=[
                        PersistedDay(
                            id=day.id,
                            day_index=day.day_index,
                            date=day.date,
                            title=day.title,
                            suggested_hosts=parse_suggested_hosts(day.suggested_hosts),
                            items=[persisted_item(item) for item in tree.items_by_day.get(day.id, [])],
                        )
                        for day in tree.days_by_stop.get(stop.id, [])
                    ],
                )
                for stop in tree.stops
            ],
        )

    def load_snapshot(self, trip_id: str, user_id: str) -> TripPlanSnapshot | None:
        """Load the current plan without durable ids."""
        trip = self._owned_trip(trip_id, user_id)

        if trip is None:
            return None

        include_place_id = self._schema_cache.supports_item_place_id(self._session)
        tree = self._load_tree(trip.id, include_place_id)

        def snapshot_item(item: ItineraryItem) -> SnapshotItem:
            return SnapshotItem(
                type=item.type,
                title=item.title,
                description=item.description,
                start_time=item.start_time,
                end_time=item.end_time,
                location_name=item.location_name,
                place_id=item.place_id if include_place_id else None,
                lat=item.lat,
                lng=item.lng,
                experience_id=item.experience_id,
                host_id=item.host_id,
                created_by_ai=item.created_by_ai,
            )

        return TripPlanSnapshot(
            trip=TripSummary(
                id=trip.id,
                title=trip.title,
                status=trip.status,
                current_version=trip.current_version,
            ),
            stops=[
                SnapshotStop(
                    title=stop.title,
                    type=StopType(stop.type),
                    locations=self._stop_locations(stop),
                    days=[
                        SnapshotDay(
                            day_index=day.day_index,
                            date=day.date,
                            title=day.title,
                            suggested_hosts=parse_suggested_hosts(day.suggested_hosts),
                            items=[snapshot_item(item) for item in tree.items_by_day.get(day.id, [])],
                        )
                        for day in tree.days_by_stop.get(stop.id, [])
                    ],
                )
                for stop in tree.stops
            ],
        )

    def get_current_version(self, trip_id: str, user_id: str) -> int | None:
        return self._session.execute(
            select(Trip.current_version).where(Trip.id == trip_id, Trip.user_id == user_id)
        ).scalar_one_or_none()

    def list_revisions(self, trip_id: str, user_id: str) -> TripRevisionList | None:
        """List revisions newest-first."""
        trip = self._owned_trip(trip_id, user_id)

        if trip is None:
            return None

        revisions = self._session.execute(
            select(TripRevision)
            .where(TripRevision.trip_id == trip.id)
            .order_by(TripRevision.version.desc())
        ).scalars()

        return TripRevisionList(
            trip_id=trip.id,
            current_version=trip.current_version,
            revisions=[
                TripRevisionSummary(
                    id=revision.id,
                    version=revision.version,
                    source=RevisionSource(revision.source),
                    actor=revision.actor,
                    reason=revision.reason,
                    job_id=revision.job_id,
                    generation_id=revision.generation_id,
                    restored_from_version=revision.restored_from_version,
                    created_at=revision.created_at,
                )
                for revision in revisions
            ],
        )

    def get_revision(self, trip_id: str, revision_id: str) -> StoredRevision | None:
        revision = self._session.execute(
            select(TripRevision).where(
                TripRevision.id == revision_id, TripRevision.trip_id == trip_id
            )
        ).scalar_one_or_none()

        if revision is None:
            return None

        return StoredRevision(
            id=revision.id,
            trip_id=revision.trip_id,
            version=revision.version,
            payload=revision.payload,
        )

    def get_planner_trip_seed(self, trip_id: str, user_id: str) -> PlannerTripSeed | None:
        trip = self._owned_trip(trip_id, user_id)

        if trip is None:
            return None

        titles = self._session.execute(
            select(TripStop.title).where(TripStop.trip_id == trip.id).order_by(TripStop.order)
        ).scalars()
        first_day = self._session.execute(
            select(ItineraryDay.id).where(ItineraryDay.trip_id == trip.id).limit(1)
        ).first()

        return PlannerTripSeed(
            destination_titles=[title for title in titles if title and title.strip()],
            has_persisted_itinerary_days=first_day is not None,
        )
