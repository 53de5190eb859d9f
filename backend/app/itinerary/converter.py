"""Plan conversion between the planner, persistence, and display shapes.

Three representations of one itinerary meet here:

- ``Plan``: canonical, day-indexed content produced by the planner
- ``TripPlanWritePayload`` / ``PersistedTrip``: the stored stop -> day -> item tree
- ``DisplayDestination``: one geo-anchored destination per day for the client

Ordering is re-derived on every conversion. Item positions are dense,
0-based, and never trusted from input, so converting a persisted trip to
display and back does not drift.
"""

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from backend.app.itinerary.status import derive_item_status
from backend.app.models.common import StopType, coerce_item_type
from backend.app.models.display import DisplayDestination, DisplayItem, DisplayPlace, color_for_day
from backend.app.models.plan import Location, Plan
from backend.app.models.stops import EditableStop
from backend.app.models.trip_plan import (
    DayInput,
    ItemInput,
    LocationInput,
    PersistedDay,
    PersistedItem,
    PersistedStop,
    PersistedTrip,
    SnapshotStop,
    StopInput,
    TripPlanWritePayload,
)

logger = logging.getLogger(__name__)

UNKNOWN_PLACE_ID = "unknown"
SYNTHETIC_PLACE_ID_PREFIXES = ("fallback-", "place-", "loc-")


def normalize_place_id(value: str | None) -> str | None:
    """Strip sentinel and synthetic place ids so they never reach storage."""
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed or trimmed == UNKNOWN_PLACE_ID:
        return None
    if trimmed.startswith(SYNTHETIC_PLACE_ID_PREFIXES):
        return None
    return trimmed


def parse_locations(raw: Any) -> list[Location]:
    """Parse stored ``locations`` JSON, dropping entries without name and coordinates."""
    if not isinstance(raw, list):
        return []

    locations: list[Location] = []
    for entry in raw:
        if isinstance(entry, Location):
            locations.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        if not isinstance(entry.get("name"), str):
            continue
        if not all(isinstance(entry.get(key), int | float) for key in ("lat", "lng")):
            continue
        place_id = entry.get("place_id")
        try:
            locations.append(
                Location(
                    name=entry["name"],
                    lat=entry["lat"],
                    lng=entry["lng"],
                    place_id=place_id if isinstance(place_id, str) else None,
                )
            )
        except ValidationError:
            continue
    return locations


def parse_suggested_hosts(raw: Any) -> list[Any]:
    """Stored suggested hosts, or an empty list when malformed."""
    return list(raw) if isinstance(raw, list) else []


def primary_location(stop: PersistedStop) -> Location:
    """First location of a stop, or a zero-coordinate anchor named after it."""
    if stop.locations:
        return stop.locations[0]
    return Location(name=stop.title, lat=0, lng=0)


# --- Persisted -> display ---


def _resolve_place_id(item: PersistedItem) -> str:
    if item.place_id:
        return item.place_id
    if item.location_name:
        return f"loc-{item.id}"
    return UNKNOWN_PLACE_ID


def _to_display_item(item: PersistedItem, position: int, stop: PersistedStop) -> DisplayItem:
    anchor = primary_location(stop)
    location_fallback = item.lat is None or item.lng is None
    lat = anchor.lat if location_fallback else item.lat
    lng = anchor.lng if location_fallback else item.lng
    if location_fallback:
        logger.debug(
            "Item coordinates fell back to stop anchor",
            extra={"structured": {"item_id": item.id, "stop_id": stop.id}},
        )

    host_id = item.host_id or (item.experience.host_id if item.experience else None)
    derived = derive_item_status(item.bookings, item.status)
    item_type = coerce_item_type(item.type)

    return DisplayItem(
        id=item.id,
        type=item_type.value,
        category=item_type.value.lower(),
        title=item.title,
        description=item.description or "",
        host_id=host_id or None,
        experience_id=item.experience_id,
        status=derived.status,
        candidate_id=derived.candidate_id,
        position=position,
        time_slot=item.start_time.strftime("%H:%M") if item.start_time else "Flexible",
        start_time=item.start_time,
        end_time=item.end_time,
        place=DisplayPlace(
            id=_resolve_place_id(item),
            name=item.location_name or stop.title,
            lat=lat,  # type: ignore[arg-type]
            lng=lng,  # type: ignore[arg-type]
        ),
        location_fallback=location_fallback,
    )


def _to_display_destination(day: PersistedDay, stop: PersistedStop) -> DisplayDestination:
    anchor = primary_location(stop)
    # sorted() is stable, so equal order_index values keep array order
    ordered_items = sorted(day.items, key=lambda item: item.order_index)
    return DisplayDestination(
        id=day.id,
        name=day.title or stop.title,
        lat=anchor.lat,
        lng=anchor.lng,
        day=day.day_index,
        color=color_for_day(day.day_index),
        city=stop.title,
        suggested_hosts=list(day.suggested_hosts),
        activities=[
            _to_display_item(item, position, stop) for position, item in enumerate(ordered_items)
        ],
    )


def to_display(trip: PersistedTrip) -> list[DisplayDestination]:
    """Flatten a persisted trip into one display destination per day, by day index."""
    destinations = [
        _to_display_destination(day, stop) for stop in trip.stops for day in stop.days
    ]
    return sorted(destinations, key=lambda destination: destination.day)


def plan_to_persisted_view(plan: Plan, trip_id: str = "draft", user_id: str = "") -> PersistedTrip:
    """View an unsaved plan as a persisted trip with synthetic ids."""
    stops: list[PersistedStop] = []
    for stop_index, stop in enumerate(plan.stops):
        days = [
            PersistedDay(
                id=f"draft-day-{day.day_index}",
                day_index=day.day_index,
                date=day.date,
                title=day.title,
                suggested_hosts=list(day.suggested_hosts),
                items=[
                    PersistedItem(
                        id=f"draft-{day.day_index}-{item_index}",
                        type=item.type.value,
                        title=item.title,
                        description=item.description,
                        start_time=item.start_time,
                        end_time=item.end_time,
                        location_name=item.location_name,
                        place_id=item.place_id,
                        lat=item.lat,
                        lng=item.lng,
                        experience_id=item.experience_id,
                        host_id=item.host_id,
                        order_index=item_index,
                        bookings=item.bookings,
                    )
                    for item_index, item in enumerate(day.items)
                ],
            )
            for day in stop.days
        ]
        stops.append(
            PersistedStop(
                id=f"draft-stop-{stop_index}",
                title=stop.title,
                type=stop.type,
                locations=stop.locations,
                days=days,
            )
        )

    return PersistedTrip(
        id=trip_id,
        user_id=user_id,
        title=plan.title or "",
        stops=stops,
    )


def plan_to_display(plan: Plan) -> list[DisplayDestination]:
    """Display destinations for a plan that has not been persisted yet."""
    return to_display(plan_to_persisted_view(plan))


# --- Display -> persisted ---


def _grouping_key(destination: DisplayDestination) -> str:
    return (destination.city or destination.name or "").strip() or "Unknown"


def _to_item_input(item: DisplayItem, order_index: int) -> ItemInput:
    place = item.place
    # Sentinel places and stop-anchor fallbacks carry no location of their own
    has_own_place = place is not None and place.id != UNKNOWN_PLACE_ID
    has_own_coordinates = place is not None and not item.location_fallback

    return ItemInput(
        type=coerce_item_type(item.type),
        title=item.title,
        description=item.description or None,
        start_time=item.start_time,
        end_time=item.end_time,
        location_name=place.name if has_own_place and place else None,
        place_id=normalize_place_id(place.id) if place else None,
        lat=place.lat if has_own_coordinates and place else None,
        lng=place.lng if has_own_coordinates and place else None,
        experience_id=item.experience_id,
        host_id=item.host_id,
        order_index=order_index,
    )


def to_persistence_payload(
    destinations: Sequence[DisplayDestination],
    *,
    preferences: dict[str, Any] | None = None,
    title: str | None = None,
) -> TripPlanWritePayload:
    """Fold display destinations back into the write payload.

    A new stop starts whenever the city changes between consecutive days,
    so a route that returns to a city yields a second stop for it.
    """
    ordered = sorted(destinations, key=lambda destination: destination.day)
    stops: list[StopInput] = []
    current_key: str | None = None

    for destination in ordered:
        key = _grouping_key(destination)
        if key != current_key:
            stops.append(
                StopInput(
                    title=key,
                    city=key,
                    type=StopType.CITY,
                    order=len(stops),
                    locations=[LocationInput(name=key, lat=destination.lat, lng=destination.lng)],
                    days=[],
                )
            )
            current_key = key

        stops[-1].days.append(  # type: ignore[union-attr]
            DayInput(
                day_index=destination.day,
                title=destination.name,
                suggested_hosts=list(destination.suggested_hosts),
                items=[
                    _to_item_input(item, index) for index, item in enumerate(destination.activities)
                ],
            )
        )

    return TripPlanWritePayload(stops=stops, preferences=preferences, title=title)


def plan_to_write_payload(
    plan: Plan, *, preferences: dict[str, Any] | None = None, title: str | None = None
) -> TripPlanWritePayload:
    """Convert planner output into the write payload."""
    stops = [
        StopInput(
            title=stop.title,
            type=stop.type,
            order=stop_index,
            locations=[
                LocationInput(
                    name=location.name,
                    lat=location.lat,
                    lng=location.lng,
                    place_id=normalize_place_id(location.place_id),
                )
                for location in stop.locations
            ],
            days=[
                DayInput(
                    day_index=day.day_index,
                    date=day.date,
                    title=day.title,
                    suggested_hosts=list(day.suggested_hosts),
                    items=[
                        ItemInput(
                            type=item.type,
                            title=item.title,
                            description=item.description,
                            start_time=item.start_time,
                            end_time=item.end_time,
                            location_name=item.location_name,
                            place_id=normalize_place_id(item.place_id),
                            lat=item.lat,
                            lng=item.lng,
                            experience_id=item.experience_id,
                            host_id=item.host_id,
                            order_index=item_index,
                            created_by_ai=True,
                        )
                        for item_index, item in enumerate(day.items)
                    ],
                )
                for day in stop.days
            ],
        )
        for stop_index, stop in enumerate(plan.stops)
    ]
    return TripPlanWritePayload(
        stops=stops, preferences=preferences, title=title if title is not None else plan.title
    )


def snapshot_to_write_payload(
    stops: Sequence[SnapshotStop],
    *,
    preferences: dict[str, Any] | None = None,
    title: str | None = None,
) -> TripPlanWritePayload:
    """Turn a loaded snapshot back into a write payload, reindexing order."""
    return TripPlanWritePayload(
        stops=[
            StopInput(
                title=stop.title,
                type=stop.type,
                order=stop_index,
                locations=[
                    LocationInput(
                        name=location.name,
                        lat=location.lat,
                        lng=location.lng,
                        place_id=location.place_id,
                    )
                    for location in stop.locations
                ]
                or [LocationInput(name=stop.title, lat=0, lng=0)],
                days=[
                    DayInput(
                        day_index=day.day_index,
                        date=day.date,
                        title=day.title,
                        suggested_hosts=list(day.suggested_hosts),
                        items=[
                            ItemInput(
                                **item.model_dump(exclude={"created_by_ai"}),
                                order_index=item_index,
                                created_by_ai=item.created_by_ai,
                            )
                            for item_index, item in enumerate(day.items)
                        ],
                    )
                    for day in stop.days
                ],
            )
            for stop_index, stop in enumerate(stops)
        ],
        preferences=preferences,
        title=title,
    )


def editable_stop_id(position: int) -> str:
    return f"stop-{position}"


def snapshot_to_editable_stops(stops: Sequence[SnapshotStop]) -> list[EditableStop]:
    """Editable stop list for name-based edits of a loaded snapshot.

    Snapshots carry no durable ids, so each stop is identified by its
    position in ``stops``.
    """
    editable: list[EditableStop] = []
    for position, stop in enumerate(stops):
        anchor = stop.locations[0] if stop.locations else Location(name=stop.title, lat=0, lng=0)
        editable.append(
            EditableStop(
                id=editable_stop_id(position),
                name=stop.title,
                lat=anchor.lat,
                lng=anchor.lng,
                order=position + 1,
            )
        )
    return editable


def apply_editable_stops(stops: Sequence[SnapshotStop], edited: Sequence[EditableStop]) -> list[SnapshotStop]:
    """Carry an edited stop list back onto the snapshot it was built from.

    Stops keep their locations and days under their (possibly new) name.
    Stops missing from ``edited`` are dropped with their days, and stops
    with ids this snapshot never handed out are added as CITY stops without
    days. Day indexes are renumbered from 1 in the new stop order.
    Descriptions have no stored counterpart and are not carried over.
    """
    by_id = {editable_stop_id(position): stop for position, stop in enumerate(stops)}
    next_day_index = 1
    result: list[SnapshotStop] = []

    for editable in edited:
        source = by_id.get(editable.id)
        if source is None:
            result.append(
                SnapshotStop(
                    title=editable.name,
                    type=StopType.CITY,
                    locations=[Location(name=editable.name, lat=editable.lat, lng=editable.lng)],
                )
            )
            continue

        days = []
        for day in sorted(source.days, key=lambda day: day.day_index):
            days.append(day.model_copy(update={"day_index": next_day_index}))
            next_day_index += 1
        result.append(source.model_copy(update={"title": editable.name, "days": days}))

    return result
