"""Editable stop list models - what conversational edits operate on."""

from pydantic import BaseModel, ConfigDict


class EditableStop(BaseModel):
    """A stop in an ordered, user-editable list.

    ``order`` is a dense 1-based position, re-derived after every mutation.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    lat: float
    lng: float
    description: str | None = None
    order: int = 0
