"""Interactive display models - geo-anchored destinations with activities."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from backend.app.models.common import ItemStatus

DAY_COLORS = [
    "#fb8500",
    "#219ebc",
    "#8ecae6",
    "#ffb703",
    "#023047",
    "#e63946",
    "#2a9d8f",
    "#9b5de5",
]


def color_for_day(day: int) -> str:
    """Palette colour for a 1-based day index."""
    return DAY_COLORS[(day - 1) % len(DAY_COLORS)]


class DisplayPlace(BaseModel):
    """Where an activity happens."""

    id: str
    name: str
    lat: float
    lng: float


class DisplayItem(BaseModel):
    """Activity card within a destination."""

    id: str
    type: str | None = None
    category: str | None = None
    title: str
    description: str = ""
    host_id: str | None = None
    experience_id: str | None = None
    status: ItemStatus = ItemStatus.DRAFT
    candidate_id: str | None = None
    position: int = 0
    time_slot: str = "Flexible"
    start_time: datetime | None = None
    end_time: datetime | None = None
    place: DisplayPlace | None = None
    # True when coordinates were borrowed from the owning stop
    location_fallback: bool = False


class DisplayDestination(BaseModel):
    """One itinerary day rendered as a map destination."""

    id: str
    name: str
    lat: float
    lng: float
    day: int
    color: str
    city: str | None = None
    suggested_hosts: list[Any] = Field(default_factory=list)
    activities: list[DisplayItem] = Field(default_factory=list)
