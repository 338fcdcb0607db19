from __future__ import annotations

import json
from enum import Enum
from typing import Any, Mapping


class SceneryError(Exception):
    """Base class for every error raised by the load-order engine."""


class EntryValidationError(SceneryError, ValueError):
    """A malformed entry or an invalid order was handed to the engine."""


class NoIndexLoadedError(SceneryError):
    pass


class ApplyInProgressError(SceneryError):
    """Raised when apply is requested while a previous apply is still running."""


class ApiErrorCode(str, Enum):
    VALIDATION_FAILED = "validation_failed"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    CONFLICT_EXISTS = "conflict_exists"
    CORRUPTED_DATA = "corrupted_data"
    NETWORK_ERROR = "network_error"
    ARCHIVE_ERROR = "archive_error"
    PASSWORD_REQUIRED = "password_required"
    INCORRECT_PASSWORD = "incorrect_password"
    CANCELLED = "cancelled"
    INSUFFICIENT_SPACE = "insufficient_space"
    SECURITY_VIOLATION = "security_violation"
    TIMEOUT = "timeout"
    DATABASE_ERROR = "database_error"
    MIGRATION_FAILED = "migration_failed"
    INTERNAL = "internal"


class BackendError(SceneryError):
    """Structured backend failure carrying a machine-readable code.

    Callers match on ``code`` to show a localized message instead of the raw
    ``message`` text.
    """

    is_api_error = True

    def __init__(self, code: ApiErrorCode | str, message: str, details: str | None = None) -> None:
        try:
            self.code = ApiErrorCode(code)
        except ValueError:
            self.code = ApiErrorCode.INTERNAL
        self.message = message
        self.details = details
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BackendError":
        return cls(data["code"], str(data["message"]), data.get("details"))


def _looks_structured(data: Any) -> bool:
    return isinstance(data, Mapping) and "code" in data and "message" in data


def parse_backend_error(exc: Any) -> BackendError | None:
    """Return the structured form of a backend failure, or None for opaque errors."""

    if isinstance(exc, BackendError):
        return exc
    if _looks_structured(exc):
        return BackendError.from_mapping(exc)

    candidate: Any = exc.args[0] if isinstance(exc, Exception) and len(exc.args) == 1 else exc
    if _looks_structured(candidate):
        return BackendError.from_mapping(candidate)
    if isinstance(candidate, str):
        try:
            decoded = json.loads(candidate)
        except ValueError:
            return None
        if _looks_structured(decoded):
            return BackendError.from_mapping(decoded)
    return None


def error_message(exc: Any) -> str:
    structured = parse_backend_error(exc)
    if structured is not None:
        return structured.message
    return str(exc)
