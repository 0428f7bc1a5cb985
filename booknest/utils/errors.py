from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..constants import DEFAULT_ERROR_MESSAGE


class BookNestError(Exception):
    """Base class for client errors."""


class PermissionDenied(BookNestError):
    """Raised when the current user lacks a capability."""


class InvalidTransition(BookNestError):
    """Raised when a reservation action is not valid for its state or the actor."""


class ApiError(BookNestError):
    """Normalized failure of a backend call: ``{status, message, data}``."""

    def __init__(self, status: Optional[int], message: str = DEFAULT_ERROR_MESSAGE, data: Any = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.data = data

    def as_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message, "data": self.data}


class NetworkError(ApiError):
    """The request never produced an HTTP response."""


class AuthenticationError(ApiError):
    """401: the session is gone."""


class AuthorizationError(ApiError):
    """403: the role is insufficient."""


class ValidationError(ApiError):
    """400/422 from the backend, or input refused before any call."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        data: Any = None,
        field_errors: Optional[List[str]] = None,
    ):
        super().__init__(status, message, data)
        self.field_errors = field_errors or []


class NotFoundError(ApiError):
    """404."""


class ConflictError(ApiError):
    """409, e.g. seats no longer available or a reservation not in the expected state."""


class ServerError(ApiError):
    """5xx."""


def extract_message(data: Any, fallback: str = DEFAULT_ERROR_MESSAGE) -> str:
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, list):
            parts = [str(m) for m in message if m]
            if parts:
                return "; ".join(parts)
        elif message:
            return str(message)
        if data.get("error"):
            return str(data["error"])
    elif isinstance(data, str) and data.strip():
        return data.strip()
    return fallback


def error_from_response(status: int, data: Any) -> ApiError:
    message = extract_message(data)
    if status == 401:
        return AuthenticationError(status, message, data)
    if status == 403:
        return AuthorizationError(status, message, data)
    if status in (400, 422):
        field_errors: List[str] = []
        if isinstance(data, dict) and isinstance(data.get("message"), list):
            field_errors = [str(m) for m in data["message"]]
        return ValidationError(message, status=status, data=data, field_errors=field_errors)
    if status == 404:
        return NotFoundError(status, message, data)
    if status == 409:
        return ConflictError(status, message, data)
    if status >= 500:
        return ServerError(status, message, data)
    return ApiError(status, message, data)
