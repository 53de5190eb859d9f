"""Optimistic concurrency for trip plan writes."""

from dataclasses import dataclass

from backend.app.trips.errors import TripVersionConflictError


@dataclass(frozen=True)
class VersionStep:
    current_version: int
    next_version: int


def resolve_next_trip_version(current_version: int, expected_version: int | None = None) -> VersionStep:
    """Check ``expected_version`` against the current one and compute the next.

    Raises:
        TripVersionConflictError: If an expected version was given and differs.
    """
    if expected_version is not None and expected_version != current_version:
        raise TripVersionConflictError(expected_version, current_version)

    return VersionStep(current_version=current_version, next_version=current_version + 1)
