"""Row values for a full plan rewrite, shared by every store.

Item and stop positions come from their place in the payload, never from
client-supplied order values.
"""

from typing import Any

from backend.app.models.common import ItemType, StopType
from backend.app.models.trip_plan import DayInput, ItemInput, StopInput, TripPlanWritePayload

MOCK_EXPERIENCE_PREFIX = "mock_"


def stop_locations(stop: StopInput) -> list[dict[str, Any]]:
    """Locations to store for a stop, falling back to its flat city fields."""
    fallback_name = stop.title or stop.city or "Unknown"
    if stop.locations:
        return [
            {
                "name": location.name or fallback_name,
                "lat": location.lat if location.lat is not None else 0,
                "lng": location.lng if location.lng is not None else 0,
                **({"place_id": location.place_id} if location.place_id else {}),
            }
            for location in stop.locations
        ]
    return [
        {
            "name": stop.city or "Unknown",
            "lat": stop.lat if stop.lat is not None else 0,
            "lng": stop.lng if stop.lng is not None else 0,
            **({"place_id": stop.place_id} if stop.place_id else {}),
        }
    ]


def stop_values(stop: StopInput, position: int) -> dict[str, Any]:
    return {
        "title": stop.title or stop.city or "Stop",
        "type": (stop.type or StopType.CITY).value,
        "locations": stop_locations(stop),
        "order": position,
    }


def day_values(day: DayInput) -> dict[str, Any]:
    return {
        "day_index": day.day_index,
        "date": day.date,
        "title": day.title,
        "suggested_hosts": list(day.suggested_hosts or []),
    }


def item_values(item: ItemInput, position: int, *, include_place_id: bool = True) -> dict[str, Any]:
    experience_id = item.experience_id
    if experience_id and experience_id.startswith(MOCK_EXPERIENCE_PREFIX):
        experience_id = None

    values: dict[str, Any] = {
        "type": (item.type or ItemType.SIGHT).value,
        "title": item.title or "Untitled",
        "description": item.description,
        "start_time": item.start_time,
        "end_time": item.end_time,
        "location_name": item.location_name,
        "lat": item.lat,
        "lng": item.lng,
        "experience_id": experience_id,
        "host_id": item.host_id,
        "order_index": position,
        "created_by_ai": True if item.created_by_ai is None else item.created_by_ai,
    }
    if include_place_id:
        values["place_id"] = item.place_id
    return values


def merge_preferences(
    existing: dict[str, Any] | None, incoming: dict[str, Any] | None
) -> dict[str, Any]:
    """Shallow-merge incoming preferences over the stored ones."""
    base = dict(existing) if isinstance(existing, dict) else {}
    if isinstance(incoming, dict):
        base.update(incoming)
    return base


def resolve_title(existing: str, incoming: str | None) -> str:
    """Keep the stored title unless a non-blank one is supplied."""
    if isinstance(incoming, str) and incoming.strip():
        return incoming.strip()
    return existing


def revision_payload(
    payload: TripPlanWritePayload, preferences: dict[str, Any], title: str
) -> dict[str, Any]:
    """JSON-safe copy of the write that produced a revision."""
    return {
        "stops": [stop.model_dump(mode="json", exclude_none=True) for stop in payload.stops],
        "preferences": preferences,
        "title": title,
    }
