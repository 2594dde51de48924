"""Drill Exceptions - Error taxonomy for the quiz session engine.

Hierarchy:
    DrillError
    ├── NetworkTimeout          (retried inside the pool loader)
    ├── NetworkFailure          (retried inside the pool loader)
    │   └── RemoteServiceError  ({"error": "..."} envelope)
    ├── ValidationFailure       (never retried, straight to fallback)
    │   └── RecordValidationError
    ├── DataUnavailable         (only loader error surfaced to callers)
    ├── StorageWriteFailure     (always caught and logged)
    └── SessionNotFound
"""

from typing import Any


class DrillError(Exception):
    """Base error with a human message and a details dict."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class NetworkTimeout(DrillError):
    """Remote request exceeded the configured timeout."""


class NetworkFailure(DrillError):
    """Transport error or non-2xx response from the pool endpoint."""


class RemoteServiceError(NetworkFailure):
    """The endpoint answered with an explicit error envelope."""


class ValidationFailure(DrillError):
    """Response shape is not a recognized envelope for the requested pool."""


class RecordValidationError(ValidationFailure):
    """One or more rows failed the pool type's record schema."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None, issues=None):
        super().__init__(message, details)
        self.issues = list(issues or [])


class DataUnavailable(DrillError):
    """Remote, cache and bundled dataset all failed for a pool.

    Carries category and pool_type so the UI can show a retry/back
    affordance with a meaningful message.
    """

    def __init__(self, category: str, pool_type: str, cause: BaseException | None = None):
        message = f"No question data available for {category}/{pool_type}"
        details: dict[str, Any] = {"category": category, "pool_type": pool_type}
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, details)
        self.category = category
        self.pool_type = pool_type
        self.cause = cause


class StorageWriteFailure(DrillError):
    """A durable KV write failed (quota, I/O). Never fatal."""


class SessionNotFound(DrillError):
    """Unknown drill session id."""

    def __init__(self, session_id: str):
        super().__init__(f"Drill session {session_id} not found", {"session_id": session_id})
        self.session_id = session_id
