"""Common types and enums shared across all models."""

from enum import Enum


class StopType(str, Enum):
    """Geographic grouping of one or more itinerary days."""

    CITY = "CITY"
    REGION = "REGION"
    ROAD_TRIP = "ROAD_TRIP"
    TRAIL = "TRAIL"


class ItemType(str, Enum):
    """Kind of itinerary activity."""

    SIGHT = "SIGHT"
    EXPERIENCE = "EXPERIENCE"
    MEAL = "MEAL"
    FREE_TIME = "FREE_TIME"
    TRANSPORT = "TRANSPORT"
    NOTE = "NOTE"
    LODGING = "LODGING"


class ItemStatus(str, Enum):
    """Fulfillment status of an item, derived from its bookings."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    BOOKED = "BOOKED"
    FAILED = "FAILED"


class BookingStatus(str, Enum):
    """Booking lifecycle status as reported by the booking subsystem."""

    TENTATIVE = "TENTATIVE"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Payment status of a booking."""

    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class RevisionSource(str, Enum):
    """Origin of a trip plan write."""

    api = "api"
    planner = "planner"


def coerce_item_type(value: object) -> ItemType:
    """Normalize a loosely-typed item type, defaulting to SIGHT."""
    if isinstance(value, ItemType):
        return value
    if isinstance(value, str):
        try:
            return ItemType(value.strip().upper())
        except ValueError:
            return ItemType.SIGHT
    return ItemType.SIGHT
