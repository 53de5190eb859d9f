"""Structured logging for trip plan persistence."""

import logging
from typing import Any

logger = logging.getLogger(__name__)

WARNING_EVENTS = frozenset({"write.rejected", "write.conflict", "write.compat.place_id_disabled"})


class StructuredPersistenceLogger:
    """Emits ``trip_persistence`` events with structured context."""

    def log_event(
        self,
        event: str,
        *,
        trip_id: str,
        mode: str | None = None,
        actor: str | None = None,
        version: int | None = None,
        **details: Any,
    ) -> None:
        """Log a persistence event with structured data."""
        log_data: dict[str, Any] = {"scope": "trip_persistence", "event": event, "trip_id": trip_id}

        if mode:
            log_data["mode"] = mode
        if actor:
            log_data["actor"] = actor
        if version is not None:
            log_data["version"] = version
        log_data.update({key: value for key, value in details.items() if value is not None})

        log_msg = f"Trip persistence: {event} trip={trip_id}"

        if event in WARNING_EVENTS:
            logger.warning(log_msg, extra={"structured": log_data})
        else:
            logger.info(log_msg, extra={"structured": log_data})


persistence_logger = StructuredPersistenceLogger()
