"""Trip plan persistence shapes - write payload, stored snapshot, persisted read model."""

import datetime as dt
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from backend.app.models.common import ItemStatus, ItemType, StopType
from backend.app.models.plan import BookingSnapshot, Location

# --- Write payload schema ---
# Accepted by every trip plan write and re-validated when a stored
# revision is restored.


class LocationInput(BaseModel):
    """Location as supplied by a writer; all fields optional."""

    name: str | None = None
    lat: float | None = None
    lng: float | None = None
    place_id: str | None = None


class ItemInput(BaseModel):
    """Itinerary item in a write payload."""

    type: ItemType | None = None
    title: str | None = None
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    location_name: str | None = None
    place_id: str | None = None
    lat: float | None = None
    lng: float | None = None
    experience_id: str | None = None
    host_id: str | None = None
    order_index: int | None = None
    created_by_ai: bool | None = None


class DayInput(BaseModel):
    """Itinerary day in a write payload."""

    day_index: int = Field(ge=1)
    date: dt.date | None = None
    title: str | None = None
    suggested_hosts: list[Any] | None = None
    items: list[ItemInput] | None = None


class StopInput(BaseModel):
    """Stop in a write payload.

    Either ``locations`` or the legacy flat ``city``/``lat``/``lng``
    fields may be supplied.
    """

    title: str | None = None
    city: str | None = None
    lat: float | None = None
    lng: float | None = None
    place_id: str | None = None
    type: StopType | None = None
    order: int | None = None
    locations: list[LocationInput] | None = None
    days: list[DayInput] | None = None


class TripPlanWritePayload(BaseModel):
    """Full replacement payload for a trip's plan."""

    stops: list[StopInput]
    preferences: dict[str, Any] | None = None
    title: str | None = None


class ValidationIssue(BaseModel):
    """Path-qualified schema violation."""

    path: str
    message: str
    code: str


def format_validation_issues(error: ValidationError) -> list[ValidationIssue]:
    """Flatten a pydantic ValidationError into path-qualified issues."""
    return [
        ValidationIssue(
            path=".".join(str(part) for part in issue["loc"]) if issue["loc"] else "root",
            message=issue["msg"],
            code=issue["type"],
        )
        for issue in error.errors()
    ]


def duplicate_day_index_issues(payload: TripPlanWritePayload) -> list[ValidationIssue]:
    """Issues for every day whose ``day_index`` was already used earlier in the trip."""
    seen: set[int] = set()
    issues: list[ValidationIssue] = []
    for stop_index, stop in enumerate(payload.stops):
        for day_position, day in enumerate(stop.days or []):
            if day.day_index in seen:
                issues.append(
                    ValidationIssue(
                        path=f"stops.{stop_index}.days.{day_position}.day_index",
                        message=f"Duplicate day_index {day.day_index}; day indexes must be unique within a trip",
                        code="duplicate_day_index",
                    )
                )
            seen.add(day.day_index)
    return issues


# --- Stored snapshot (no durable ids) ---


class TripSummary(BaseModel):
    """Trip header returned alongside a plan snapshot."""

    id: str
    title: str
    status: str
    current_version: int


class SnapshotItem(BaseModel):
    type: ItemType
    title: str
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    location_name: str | None = None
    place_id: str | None = None
    lat: float | None = None
    lng: float | None = None
    experience_id: str | None = None
    host_id: str | None = None
    created_by_ai: bool = True


class SnapshotDay(BaseModel):
    day_index: int
    date: dt.date | None = None
    title: str | None = None
    suggested_hosts: list[Any] = Field(default_factory=list)
    items: list[SnapshotItem] = Field(default_factory=list)


class SnapshotStop(BaseModel):
    title: str
    type: StopType
    locations: list[Location]
    days: list[SnapshotDay] = Field(default_factory=list)


class TripPlanSnapshot(BaseModel):
    """Current persisted plan of a trip."""

    trip: TripSummary
    stops: list[SnapshotStop]


# --- Persisted read model (durable ids, bookings attached) ---


class ExperienceRef(BaseModel):
    """Linked experience, reduced to what item conversion needs."""

    host_id: str | None = None


class PersistedItem(BaseModel):
    id: str
    type: str
    title: str
    description: str | None = None
    status: ItemStatus | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    location_name: str | None = None
    place_id: str | None = None
    lat: float | None = None
    lng: float | None = None
    experience_id: str | None = None
    host_id: str | None = None
    order_index: int = 0
    experience: ExperienceRef | None = None
    bookings: list[BookingSnapshot] = Field(default_factory=list)


class PersistedDay(BaseModel):
    id: str
    day_index: int
    date: dt.date | None = None
    title: str | None = None
    suggested_hosts: list[Any] = Field(default_factory=list)
    items: list[PersistedItem] = Field(default_factory=list)


class PersistedStop(BaseModel):
    id: str
    title: str
    type: StopType = StopType.CITY
    locations: list[Location] = Field(default_factory=list)
    days: list[PersistedDay] = Field(default_factory=list)


class PersistedTrip(BaseModel):
    """Trip as loaded for interactive display."""

    id: str
    user_id: str
    title: str
    status: str = "DRAFT"
    current_version: int = 0
    stops: list[PersistedStop] = Field(default_factory=list)


class PlanWriteResult(BaseModel):
    """Outcome of a successful plan write."""

    day_id_map: dict[int, str]
    version: int


class PlannerTripSeed(BaseModel):
    """Minimal trip context handed to the planner."""

    destination_titles: list[str]
    has_persisted_itinerary_days: bool
