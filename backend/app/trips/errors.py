"""Trip plan persistence errors.

Each error carries a stable ``code`` and the HTTP status the route layer
should answer with.
"""

from backend.app.models.trip_plan import ValidationIssue


class TripPlanPersistenceError(Exception):
    """Base class for trip plan persistence failures."""

    code: str = "PERSISTENCE_ERROR"
    status_code: int = 500

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class TripPlanAuthorizationError(TripPlanPersistenceError):
    """Write rejected by the authorization policy. Never retried."""

    _STATUS_BY_CODE = {"NOT_FOUND": 404, "FORBIDDEN": 403, "OWNER_MISMATCH": 403}

    def __init__(self, code: str, message: str) -> None:
        if code not in self._STATUS_BY_CODE:
            raise ValueError(f"Unknown authorization error code: {code}")
        super().__init__(message, code=code)
        self.status_code = self._STATUS_BY_CODE[code]


class TripVersionConflictError(TripPlanPersistenceError):
    """Expected version did not match the trip's current version."""

    code = "VERSION_CONFLICT"
    status_code = 409

    def __init__(self, expected_version: int, current_version: int) -> None:
        super().__init__(
            f"Trip version mismatch. expected={expected_version}, current={current_version}"
        )
        self.expected_version = expected_version
        self.current_version = current_version


class TripPlanValidationError(TripPlanPersistenceError):
    """Payload failed schema validation; nothing was written."""

    code = "INVALID_PAYLOAD"
    status_code = 422

    def __init__(self, message: str, issues: list[ValidationIssue]) -> None:
        super().__init__(message)
        self.issues = issues


class TripRevisionNotFoundError(TripPlanPersistenceError):
    code = "REVISION_NOT_FOUND"
    status_code = 404
