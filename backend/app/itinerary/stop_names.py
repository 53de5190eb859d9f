"""Resolve free-text stop names to stop ids.

Edits arrive from an LLM or a user and address stops by name, so every
lookup must distinguish exactly-one, none, and several matches. Callers
never guess on ambiguity.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from backend.app.models.stops import EditableStop

_WHITESPACE = re.compile(r"\s+")
_EDGE_PUNCTUATION = re.compile(r"^[\s`\"'.,;:!?()\[\]{}-]+|[\s`\"'.,;:!?()\[\]{}-]+$")


class ResolutionFailure(str, Enum):
    UNMATCHED = "UNMATCHED"
    AMBIGUOUS = "AMBIGUOUS"


@dataclass(frozen=True)
class StopNameResolution:
    """Outcome of resolving one name against a stop list."""

    target_name: str
    stop_id: str | None = None
    failure: ResolutionFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def normalize_stop_name(value: str) -> str:
    """Canonical form used for every stop-name comparison."""
    collapsed = _WHITESPACE.sub(" ", value.strip().lower())
    return _EDGE_PUNCTUATION.sub("", collapsed)


def resolve_stop_by_name(stops: Sequence[EditableStop], target_name: str) -> StopNameResolution:
    """Resolve ``target_name`` to the id of the single stop it names."""
    normalized_target = normalize_stop_name(target_name)
    matches = [stop for stop in stops if normalize_stop_name(stop.name) == normalized_target]

    if not matches:
        return StopNameResolution(target_name=target_name, failure=ResolutionFailure.UNMATCHED)
    if len(matches) > 1:
        return StopNameResolution(target_name=target_name, failure=ResolutionFailure.AMBIGUOUS)

    return StopNameResolution(target_name=target_name, stop_id=matches[0].id)
