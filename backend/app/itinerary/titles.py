"""Human-readable trip titles derived from a plan."""

import re
from collections.abc import Iterable

from backend.app.models.plan import Plan

_DAY_PATTERN = re.compile(r"\b(\d{1,2})\s*days?\b", re.IGNORECASE)
_WEEK_PATTERN = re.compile(r"\b(\d{1,2})\s*weeks?\b", re.IGNORECASE)
_ADJECTIVE_SCOPE_PATTERN = re.compile(
    r"\b([a-z][a-z'-]+)\s+(?:road\s*trip|trip|itinerary|vacation|holiday)\b", re.IGNORECASE
)
_GENERIC_TITLES = (
    re.compile(r"^trip$", re.IGNORECASE),
    re.compile(r"^my (first )?trip$", re.IGNORECASE),
    re.compile(r"^new trip$", re.IGNORECASE),
)

_STYLE_PATTERNS = (
    ("road", re.compile(r"\broad\s*trip\b|\bdrive\b|\bcar\b")),
    ("rail", re.compile(r"\btrain\b|\brail\b")),
    ("boat", re.compile(r"\bboat\b|\bferry\b|\bcruise\b|\bship\b")),
    ("air", re.compile(r"\bflight\b|\bfly\b|\bair\b|\bplane\b")),
)

_STYLE_LABELS = {
    "road": "Road Trip",
    "rail": "Rail Journey",
    "boat": "Coastal Journey",
    "air": "Journey",
    "general": "Adventure",
}

DEFAULT_TRIP_TITLE = "My Trip"


def _title_case(value: str) -> str:
    return " ".join(part[:1].upper() + part[1:].lower() for part in value.split())


def _duration_days(request: str | None) -> int | None:
    if not request:
        return None
    day_match = _DAY_PATTERN.search(request)
    if day_match:
        return int(day_match.group(1))
    week_match = _WEEK_PATTERN.search(request)
    if week_match:
        return int(week_match.group(1)) * 7
    return None


def _trip_style(request: str | None) -> str:
    normalized = (request or "").lower()
    for style, pattern in _STYLE_PATTERNS:
        if pattern.search(normalized):
            return style
    return "general"


def _adjective_scope(request: str | None) -> str | None:
    """Scope from phrases like "Italian road trip"."""
    if not request:
        return None
    match = _ADJECTIVE_SCOPE_PATTERN.search(request)
    if not match:
        return None
    token = match.group(1).strip()
    if len(token) < 4 or not re.search(r"(an|ian)$", token, re.IGNORECASE):
        return None
    return _title_case(token)


def _unique(values: Iterable[str | None]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for value in values:
        trimmed = (value or "").strip()
        if not trimmed or trimmed.lower() in seen:
            continue
        seen.add(trimmed.lower())
        unique.append(trimmed)
    return unique


def _scope_from_plan(plan: Plan) -> str | None:
    cities = _unique(stop.title for stop in plan.stops)
    if len(cities) == 1:
        return _title_case(cities[0])
    if len(cities) > 1:
        return "Multi-City"
    return None


def _non_generic_title(value: str | None) -> str | None:
    trimmed = (value or "").strip()
    if not trimmed or any(pattern.match(trimmed) for pattern in _GENERIC_TITLES):
        return None
    return trimmed


def generate_trip_title(plan: Plan) -> str:
    """Build a title such as "5-Day Italian Road Trip" from a plan."""
    day_count = len(plan.all_days())
    duration = _duration_days(plan.request) or (day_count if day_count > 0 else None)
    scope = _adjective_scope(plan.request) or _scope_from_plan(plan)
    style_label = _STYLE_LABELS[_trip_style(plan.request)]

    if duration and scope:
        return f"{duration}-Day {scope} {style_label}"
    if scope:
        return f"{scope} {style_label}"
    if duration:
        return f"{duration}-Day {style_label}"
    return _non_generic_title(plan.title) or DEFAULT_TRIP_TITLE
