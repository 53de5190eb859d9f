"""Item fulfillment status, derived from booking snapshots.

Status is never stored; it is recomputed on every read as a pure function
of the item's bookings, falling back to the persisted status only when no
booking decides it.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from backend.app.models.common import BookingStatus, ItemStatus, PaymentStatus
from backend.app.models.plan import BookingSnapshot

logger = logging.getLogger(__name__)

_BOOKED_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.COMPLETED})
_IN_FLIGHT_STATUSES = frozenset({BookingStatus.TENTATIVE, BookingStatus.PENDING})


@dataclass(frozen=True)
class DerivedStatus:
    """Derived status plus the booking currently being pursued, if any."""

    status: ItemStatus
    candidate_id: str | None = None


def derive_item_status(
    bookings: Sequence[BookingSnapshot],
    persisted_status: ItemStatus | str | None = None,
) -> DerivedStatus:
    """Derive an item's status from its bookings.

    Strict priority chain, exactly one branch fires:

    1. any CONFIRMED/COMPLETED booking -> BOOKED
    2. any TENTATIVE/PENDING booking whose payment has not failed -> PENDING,
       with that booking as the candidate
    3. the most recent booking (``bookings[0]``) has a FAILED payment -> FAILED
    4. the persisted status, defaulting to DRAFT

    ``bookings`` must be ordered newest-first; this function does not sort.
    """
    if any(booking.status in _BOOKED_STATUSES for booking in bookings):
        return DerivedStatus(ItemStatus.BOOKED)

    for booking in bookings:
        if (
            booking.status in _IN_FLIGHT_STATUSES
            and booking.payment_status != PaymentStatus.FAILED
        ):
            return DerivedStatus(ItemStatus.PENDING, candidate_id=booking.id)

    if bookings and bookings[0].payment_status == PaymentStatus.FAILED:
        return DerivedStatus(ItemStatus.FAILED)

    return DerivedStatus(_coerce_item_status(persisted_status))


def _coerce_item_status(value: ItemStatus | str | None) -> ItemStatus:
    if isinstance(value, ItemStatus):
        return value
    if isinstance(value, str):
        try:
            return ItemStatus(value)
        except ValueError:
            return ItemStatus.DRAFT
    return ItemStatus.DRAFT


def parse_booking_snapshots(raw: Any) -> list[BookingSnapshot]:
    """Parse loosely-typed booking data, dropping malformed entries.

    Returns an empty list for anything that is not a list.
    """
    if not isinstance(raw, list):
        return []

    snapshots: list[BookingSnapshot] = []
    for entry in raw:
        if isinstance(entry, BookingSnapshot):
            snapshots.append(entry)
            continue
        try:
            snapshots.append(BookingSnapshot.model_validate(entry))
        except ValidationError:
            logger.debug("Dropping malformed booking snapshot", extra={"structured": {"entry": entry}})
    return snapshots
