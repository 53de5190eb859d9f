"""Request context for ownership enforcement."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Request context containing the caller's identity.

    Every trip read and user-mode write is scoped by ``user_id``.
    """

    user_id: str
