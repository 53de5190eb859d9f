"""Tests for plan conversion between persisted, display and write shapes."""

from backend.app.itinerary.converter import (
    apply_editable_stops,
    normalize_place_id,
    parse_locations,
    plan_to_display,
    plan_to_write_payload,
    snapshot_to_editable_stops,
    snapshot_to_write_payload,
    to_display,
    to_persistence_payload,
)
from backend.app.models.common import BookingStatus, ItemStatus, PaymentStatus, StopType
from backend.app.models.display import DAY_COLORS, DisplayDestination
from backend.app.models.plan import BookingSnapshot, Day, Item, Location, Plan, Stop
from backend.app.models.stops import EditableStop
from backend.app.models.trip_plan import (
    ExperienceRef,
    PersistedDay,
    PersistedItem,
    PersistedStop,
    PersistedTrip,
    SnapshotDay,
    SnapshotItem,
    SnapshotStop,
)


def _item(item_id: str, order_index: int, **overrides: object) -> PersistedItem:
    values: dict[str, object] = {
        "id": item_id,
        "type": "SIGHT",
        "title": f"Item {item_id}",
        "order_index": order_index,
    }
    values.update(overrides)
    return PersistedItem(**values)  # type: ignore[arg-type]


def _trip() -> PersistedTrip:
    rome = PersistedStop(
        id="stop-rome",
        title="Rome",
        locations=[Location(name="Rome", lat=41.9, lng=12.5)],
        days=[
            PersistedDay(
                id="day-2",
                day_index=2,
                title="Ancient Rome",
                items=[
                    # Sparse, out-of-order indices
                    _item("c", 7, location_name="Forum", place_id="gp-forum", lat=41.89, lng=12.48),
                    _item("a", 3, location_name="Colosseum", lat=41.89, lng=12.49),
                ],
            ),
            PersistedDay(
                id="day-1",
                day_index=1,
                items=[
                    _item(
                        "x",
                        0,
                        type="EXPERIENCE",
                        experience_id="exp-1",
                        experience=ExperienceRef(host_id="host-9"),
                    ),
                ],
            ),
        ],
    )
    return PersistedTrip(id="trip-1", user_id="u1", title="Rome", stops=[rome])


class TestToDisplay:
    """Test to_display."""

    def test_destinations_sorted_by_day_with_palette_colors(self) -> None:
        destinations = to_display(_trip())

        assert [destination.day for destination in destinations] == [1, 2]
        assert destinations[0].color == DAY_COLORS[0]
        assert destinations[1].color == DAY_COLORS[1]
        assert destinations[0].name == "Rome"
        assert destinations[1].name == "Ancient Rome"
        assert destinations[1].id == "day-2"

    def test_items_ordered_by_index_with_dense_positions(self) -> None:
        activities = to_display(_trip())[1].activities

        assert [activity.id for activity in activities] == ["a", "c"]
        assert [activity.position for activity in activities] == [0, 1]

    def test_place_ids_and_fallbacks(self) -> None:
        day_one, day_two = to_display(_trip())

        colosseum, forum = day_two.activities
        assert forum.place is not None and forum.place.id == "gp-forum"
        assert colosseum.place is not None and colosseum.place.id == "loc-a"

        (experience,) = day_one.activities
        assert experience.place is not None
        assert experience.place.id == "unknown"
        assert experience.location_fallback is True
        assert (experience.place.lat, experience.place.lng) == (41.9, 12.5)

    def test_host_inherited_from_experience(self) -> None:
        (experience,) = to_display(_trip())[0].activities

        assert experience.host_id == "host-9"
        assert experience.category == "experience"

    def test_status_derived_from_bookings(self) -> None:
        trip = _trip()
        trip.stops[0].days[1].items[0].bookings = [
            BookingSnapshot(id="bk-1", status=BookingStatus.TENTATIVE, payment_status=PaymentStatus.PENDING)
        ]

        (experience,) = to_display(trip)[0].activities

        assert experience.status == ItemStatus.PENDING
        assert experience.candidate_id == "bk-1"


class TestRoundTrip:
    """Test display -> persistence payload."""

    def test_round_trip_reindexes_and_drops_synthetic_place_ids(self) -> None:
        payload = to_persistence_payload(to_display(_trip()))

        (stop,) = payload.stops
        assert stop.title == "Rome"
        day_one, day_two = stop.days or []

        assert [item.order_index for item in day_two.items or []] == [0, 1]
        colosseum, forum = day_two.items or []
        assert forum.place_id == "gp-forum"
        assert colosseum.place_id is None
        assert colosseum.location_name == "Colosseum"

        (experience,) = day_one.items or []
        assert experience.place_id is None
        assert experience.host_id == "host-9"
        # Fallback coordinates belong to the stop, not the item
        assert experience.lat is None and experience.lng is None
        assert experience.location_name is None

    def test_revisited_city_becomes_separate_stop(self) -> None:
        def destination(day: int, city: str) -> DisplayDestination:
            return DisplayDestination(
                id=f"d{day}", name=city, lat=0, lng=0, day=day, color="#000", city=city
            )

        payload = to_persistence_payload(
            [destination(3, "Amsterdam"), destination(1, "Amsterdam"), destination(2, "Utrecht")]
        )

        assert [stop.title for stop in payload.stops] == ["Amsterdam", "Utrecht", "Amsterdam"]
        assert [stop.order for stop in payload.stops] == [0, 1, 2]
        assert [[day.day_index for day in stop.days or []] for stop in payload.stops] == [[1], [2], [3]]


def _plan() -> Plan:
    return Plan(
        title="Lisbon Weekend",
        stops=[
            Stop(
                title="Lisbon",
                type=StopType.CITY,
                locations=[Location(name="Lisbon", lat=38.72, lng=-9.14, place_id="fallback-lisbon")],
                days=[
                    Day(
                        day_index=1,
                        items=[
                            Item(type="meal", title="Pasteis", place_id="place-123", lat=38.7, lng=-9.2),
                            Item(type="unknown-kind", title="Tram 28", place_id="gp-tram"),
                        ],
                    ),
                    Day(day_index=2, items=[Item(title="Belem")]),
                ],
            )
        ],
    )


def test_plan_to_display_uses_draft_day_ids() -> None:
    destinations = plan_to_display(_plan())

    assert [destination.id for destination in destinations] == ["draft-day-1", "draft-day-2"]
    assert destinations[0].activities[1].type == "SIGHT"


def test_plan_to_write_payload_normalizes_place_ids_and_types() -> None:
    payload = plan_to_write_payload(_plan(), preferences={"pace": "slow"})

    (stop,) = payload.stops
    assert payload.title == "Lisbon Weekend"
    assert payload.preferences == {"pace": "slow"}
    assert stop.locations is not None and stop.locations[0].place_id is None
    pasteis, tram = (stop.days or [])[0].items or []
    assert pasteis.place_id is None
    assert pasteis.type is not None and pasteis.type.value == "MEAL"
    assert tram.place_id == "gp-tram"
    assert tram.created_by_ai is True


def test_snapshot_to_write_payload_reindexes() -> None:
    stops = [
        SnapshotStop(
            title="Porto",
            type=StopType.CITY,
            locations=[Location(name="Porto", lat=41.15, lng=-8.61)],
            days=[
                SnapshotDay(
                    day_index=3,
                    items=[
                        SnapshotItem(type="SIGHT", title="Ribeira", created_by_ai=False),
                        SnapshotItem(type="MEAL", title="Francesinha"),
                    ],
                )
            ],
        )
    ]

    payload = snapshot_to_write_payload(stops, title="Porto")

    (stop,) = payload.stops
    assert stop.order == 0
    items = (stop.days or [])[0].items or []
    assert [item.order_index for item in items] == [0, 1]
    assert items[0].created_by_ai is False


def test_normalize_place_id() -> None:
    assert normalize_place_id("unknown") is None
    assert normalize_place_id("loc-abc") is None
    assert normalize_place_id("fallback-1") is None
    assert normalize_place_id("place-9") is None
    assert normalize_place_id("  ") is None
    assert normalize_place_id(" ChIJ123 ") == "ChIJ123"


def test_parse_locations_drops_malformed_entries() -> None:
    raw = [
        {"name": "Rome", "lat": 41.9, "lng": 12.5, "place_id": "gp-rome"},
        {"name": "No coords"},
        {"lat": 1, "lng": 2},
        "Rome",
    ]

    locations = parse_locations(raw)

    assert [location.name for location in locations] == ["Rome"]
    assert locations[0].place_id == "gp-rome"
    assert parse_locations({"name": "Rome"}) == []


def _snapshot_stops() -> list[SnapshotStop]:
    return [
        SnapshotStop(
            title="Lisbon",
            type=StopType.CITY,
            locations=[Location(name="Lisbon", lat=38.72, lng=-9.14)],
            days=[SnapshotDay(day_index=2), SnapshotDay(day_index=1)],
        ),
        SnapshotStop(title="Sintra", type=StopType.REGION, locations=[], days=[SnapshotDay(day_index=3)]),
    ]


def test_snapshot_to_editable_stops() -> None:
    editable = snapshot_to_editable_stops(_snapshot_stops())

    assert [(stop.id, stop.name, stop.order) for stop in editable] == [
        ("stop-0", "Lisbon", 1),
        ("stop-1", "Sintra", 2),
    ]
    assert (editable[0].lat, editable[0].lng) == (38.72, -9.14)
    assert (editable[1].lat, editable[1].lng) == (0, 0)


def test_apply_editable_stops_renames_reorders_and_renumbers_days() -> None:
    stops = _snapshot_stops()
    lisbon, sintra = snapshot_to_editable_stops(stops)
    added = EditableStop(id="new", name="Cascais", lat=38.7, lng=-9.42, order=3)

    result = apply_editable_stops(stops, [sintra.model_copy(update={"name": "Sintra Hills"}), lisbon, added])

    assert [stop.title for stop in result] == ["Sintra Hills", "Lisbon", "Cascais"]
    assert result[0].type == StopType.REGION
    assert [[day.day_index for day in stop.days] for stop in result] == [[1], [2, 3], []]
    assert result[2].locations == [Location(name="Cascais", lat=38.7, lng=-9.42)]
