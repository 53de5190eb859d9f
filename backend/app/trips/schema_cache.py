"""Process-scoped memo of optional schema capabilities."""

import logging

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

ITEM_TABLE = "itinerary_item"
ITEM_PLACE_ID_COLUMN = "place_id"


class SchemaCapabilityCache:
    """Remembers whether the database has columns added by later migrations.

    Databases that have not run the place-id migration yet must still accept
    writes, so item place ids are omitted there. One instance is shared per
    process; tests call ``clear()`` between schemas.
    """

    def __init__(self) -> None:
        self._item_place_id: bool | None = None

    def supports_item_place_id(self, session: Session) -> bool:
        if self._item_place_id is None:
            self._item_place_id = self._detect_item_place_id(session)
        return self._item_place_id

    def clear(self) -> None:
        self._item_place_id = None

    @staticmethod
    def _detect_item_place_id(session: Session) -> bool:
        try:
            columns = inspect(session.connection()).get_columns(ITEM_TABLE)
        except SQLAlchemyError as e:
            # Detection failure should not block writes
            logger.warning(
                "Schema inspection failed; assuming item place ids are supported",
                extra={"structured": {"table": ITEM_TABLE, "error": str(e)}},
            )
            return True
        return any(column["name"] == ITEM_PLACE_ID_COLUMN for column in columns)


_default_cache = SchemaCapabilityCache()


def get_schema_cache() -> SchemaCapabilityCache:
    """Get the process-wide schema capability cache."""
    return _default_cache
