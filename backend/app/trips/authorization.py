"""Trip plan write authorization policy.

Pure decision function with no I/O, shared by the HTTP write path and the
planner/job write path.
"""

from dataclasses import dataclass
from enum import Enum


class WriteAuthMode(str, Enum):
    """Who is writing: a signed-in user, or a trusted system actor."""

    user = "user"
    internal = "internal"


class WriteRejection(str, Enum):
    not_found = "not_found"
    forbidden = "forbidden"
    owner_mismatch = "owner_mismatch"


@dataclass(frozen=True)
class WriteAuthDecision:
    """Result of an authorization check."""

    allowed: bool
    reason: WriteRejection | None = None


ALLOWED = WriteAuthDecision(allowed=True)


def decide_trip_plan_write_access(
    *,
    mode: WriteAuthMode,
    trip_exists: bool,
    trip_owner_user_id: str | None = None,
    user_id: str | None = None,
    expected_trip_owner_user_id: str | None = None,
) -> WriteAuthDecision:
    """Decide whether a trip plan write may proceed.

    ``not_found`` is checked first under both modes so callers can answer 404
    before 403. In user mode the writer must own the trip. In internal mode
    the owner is only checked when an expectation is supplied.
    """
    if not trip_exists:
        return WriteAuthDecision(allowed=False, reason=WriteRejection.not_found)

    if mode == WriteAuthMode.user:
        if not user_id or not trip_owner_user_id or user_id != trip_owner_user_id:
            return WriteAuthDecision(allowed=False, reason=WriteRejection.forbidden)
        return ALLOWED

    if expected_trip_owner_user_id and trip_owner_user_id != expected_trip_owner_user_id:
        return WriteAuthDecision(allowed=False, reason=WriteRejection.owner_mismatch)

    return ALLOWED
