"""Name-addressed mutations of an ordered stop list.

Every function is pure: it returns a new list and leaves the input
untouched. ``order`` is always re-derived as a dense 1-based sequence;
incoming order values are never trusted.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from backend.app.itinerary.stop_names import normalize_stop_name, resolve_stop_by_name
from backend.app.models.stops import EditableStop


class MutationFailure(str, Enum):
    UNMATCHED = "UNMATCHED"
    AMBIGUOUS = "AMBIGUOUS"
    NO_CHANGES_REQUESTED = "NO_CHANGES_REQUESTED"


class StopMutationError(Exception):
    """Base class for stop mutations that could not be applied."""

    def __init__(self, message: str, names: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.names = list(names)


class UnmatchedNameError(StopMutationError):
    """One or more names matched no stop."""


class AmbiguousNameError(StopMutationError):
    """One or more names matched several stops."""


class NoChangesRequestedError(StopMutationError):
    """An update carried neither a new name nor a description."""


@dataclass(frozen=True)
class StopMutationResult:
    """Outcome of a stop mutation.

    On failure ``stops`` is None and the offending names are reported so a
    conversational caller can ask a clarifying question.
    """

    stops: list[EditableStop] | None = None
    failure: MutationFailure | None = None
    target_name: str | None = None
    unmatched_names: list[str] = field(default_factory=list)
    ambiguous_names: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure is None

    def unwrap(self) -> list[EditableStop]:
        """Return the mutated stops or raise the matching StopMutationError."""
        if self.failure is None and self.stops is not None:
            return self.stops

        if self.failure == MutationFailure.NO_CHANGES_REQUESTED:
            raise NoChangesRequestedError("No stop changes were requested")

        ambiguous = self.ambiguous_names or (
            [self.target_name] if self.failure == MutationFailure.AMBIGUOUS and self.target_name else []
        )
        unmatched = self.unmatched_names or (
            [self.target_name] if self.failure == MutationFailure.UNMATCHED and self.target_name else []
        )
        if ambiguous:
            raise AmbiguousNameError(
                f"Stop name(s) match more than one stop: {', '.join(ambiguous)}", ambiguous
            )
        raise UnmatchedNameError(f"Stop name(s) match no stop: {', '.join(unmatched)}", unmatched)


def with_sequential_order(stops: Sequence[EditableStop]) -> list[EditableStop]:
    """Copy ``stops`` with ``order`` set to 1..n."""
    return [stop.model_copy(update={"order": index + 1}) for index, stop in enumerate(stops)]


def apply_stop_update_by_name(
    stops: Sequence[EditableStop],
    target_name: str,
    *,
    new_name: str | None = None,
    description: str | None = None,
) -> StopMutationResult:
    """Rename and/or re-describe the stop named ``target_name``."""
    has_name_change = isinstance(new_name, str) and len(new_name.strip()) > 0
    has_description_change = isinstance(description, str)
    if not has_name_change and not has_description_change:
        return StopMutationResult(failure=MutationFailure.NO_CHANGES_REQUESTED)

    resolved = resolve_stop_by_name(stops, target_name)
    if not resolved.ok:
        return StopMutationResult(
            failure=MutationFailure(resolved.failure.value), target_name=resolved.target_name
        )

    changes: dict[str, str] = {}
    if has_name_change:
        changes["name"] = new_name.strip()  # type: ignore[union-attr]
    if has_description_change:
        changes["description"] = description  # type: ignore[assignment]

    next_stops = [
        stop.model_copy(update=changes) if stop.id == resolved.stop_id else stop for stop in stops
    ]
    return StopMutationResult(stops=with_sequential_order(next_stops))


def apply_stop_removal_by_name(
    stops: Sequence[EditableStop], target_name: str
) -> StopMutationResult:
    """Remove the stop named ``target_name``."""
    resolved = resolve_stop_by_name(stops, target_name)
    if not resolved.ok:
        return StopMutationResult(
            failure=MutationFailure(resolved.failure.value), target_name=resolved.target_name
        )

    return StopMutationResult(
        stops=with_sequential_order([stop for stop in stops if stop.id != resolved.stop_id])
    )


def apply_stop_reorder_by_names(
    stops: Sequence[EditableStop], ordered_names: Sequence[str]
) -> StopMutationResult:
    """Move the named stops to the front, in the requested order.

    Unnamed stops keep their relative order after the named ones. The
    operation is all-or-nothing: any unmatched or ambiguous name leaves the
    list unchanged and every offending name is reported. A name requested
    twice is ambiguous, since it cannot disambiguate itself.
    """
    normalized_requested = [normalize_stop_name(name) for name in ordered_names]
    seen: set[str] = set()
    duplicates: set[str] = set()
    for normalized in normalized_requested:
        if normalized in seen:
            duplicates.add(normalized)
        seen.add(normalized)

    # dicts keep first-seen order and de-duplicate
    ambiguous_names: dict[str, None] = {}
    unmatched_names: dict[str, None] = {}
    picked_ids: set[str] = set()
    picked_stops: list[EditableStop] = []

    for original_name, normalized_name in zip(ordered_names, normalized_requested):
        if normalized_name in duplicates:
            ambiguous_names[original_name] = None
            continue

        available = [
            stop
            for stop in stops
            if normalize_stop_name(stop.name) == normalized_name and stop.id not in picked_ids
        ]
        if not available:
            unmatched_names[original_name] = None
            continue
        if len(available) > 1:
            ambiguous_names[original_name] = None
            continue

        picked_stops.append(available[0])
        picked_ids.add(available[0].id)

    if unmatched_names or ambiguous_names:
        return StopMutationResult(
            failure=MutationFailure.AMBIGUOUS if ambiguous_names else MutationFailure.UNMATCHED,
            unmatched_names=list(unmatched_names),
            ambiguous_names=list(ambiguous_names),
        )

    remaining = [stop for stop in stops if stop.id not in picked_ids]
    return StopMutationResult(stops=with_sequential_order([*picked_stops, *remaining]))


def apply_stop_append(
    stops: Sequence[EditableStop],
    *,
    name: str,
    lat: float,
    lng: float,
    description: str | None = None,
) -> list[EditableStop]:
    """Append a new stop at the end of the list."""
    appended = EditableStop(
        id=str(uuid.uuid4()),
        name=name,
        lat=lat,
        lng=lng,
        description=description,
        order=len(stops) + 1,
    )
    return with_sequential_order([*stops, appended])
