"""Exceptions raised by idea manager."""

from typing import Any


class IdeaManagerError(Exception):
    """Base class for all idea manager errors."""


class ValidationFailed(IdeaManagerError):
    """Input rejected before it reached the backend."""

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        details = "; ".join(f"{field}: {', '.join(msgs)}" for field, msgs in self.errors.items())
        return f"{self.message} ({details})"


class NotAuthenticated(IdeaManagerError):
    """No valid session exists."""


class CapabilityDenied(IdeaManagerError):
    """The current user's role does not allow the action."""


class AdminAccessDenied(CapabilityDenied):
    """Valid credentials for a user without an admin-capable role."""


class ActionInFlight(IdeaManagerError):
    """The same action on the same resource is still awaiting its response."""


class ApiError(IdeaManagerError):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, errors: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors

    def __str__(self) -> str:
        return f"{self.message} (HTTP {self.status_code})"


class NotFound(ApiError):
    """The requested resource does not exist."""


class ApiUnavailable(IdeaManagerError):
    """The API could not be reached."""


class InvalidPayload(IdeaManagerError):
    """A response or record could not be decoded into a model."""
