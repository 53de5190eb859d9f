"""Canonical plan models - what the planner produces."""

import datetime as dt
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from backend.app.models.common import (
    BookingStatus,
    ItemType,
    PaymentStatus,
    StopType,
    coerce_item_type,
)


class Location(BaseModel):
    """Named geographic point anchoring a stop."""

    name: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    place_id: str | None = None


class BookingSnapshot(BaseModel):
    """Read-only view of a booking attached to an item.

    Lists of snapshots are expected newest-first; status derivation
    inspects the first entry when looking for a failed payment.
    """

    id: str
    status: BookingStatus
    payment_status: PaymentStatus
    updated_at: datetime | None = None


class Item(BaseModel):
    """Single activity within a day."""

    type: ItemType = ItemType.SIGHT
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
    order_index: int = 0
    bookings: list[BookingSnapshot] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> ItemType:
        return coerce_item_type(value)


class Day(BaseModel):
    """One itinerary day, identified by its 1-based index within the trip."""

    day_index: int = Field(..., ge=1)
    date: dt.date | None = None
    title: str | None = None
    suggested_hosts: list[Any] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)


class Stop(BaseModel):
    """Geographic grouping of days."""

    title: str
    type: StopType = StopType.CITY
    locations: list[Location] = Field(..., min_length=1)
    days: list[Day] = Field(default_factory=list)


class Plan(BaseModel):
    """Day-indexed itinerary content produced by the planner."""

    title: str | None = None
    request: str | None = None
    stops: list[Stop] = Field(default_factory=list)

    def all_days(self) -> list[Day]:
        """Days across all stops, in stop order."""
        return [day for stop in self.stops for day in stop.days]
