"""Exceptions raised by the DevicePilot API client."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .api.base_api import ApiResponse


class DevicePilotError(Exception):
    """Base exception for every error raised by this package."""


class ConfigurationError(DevicePilotError, ValueError):
    """Exception to indicate an invalid client option."""


# --- LOCAL ERRORS ------------------------------------------------------------

class DeviceValidationError(DevicePilotError, ValueError):
    """
    Exception raised when a device record is invalid.
    Raised before any request is made and never retried.
    """


class DeviceMappingError(DeviceValidationError):
    """Exception to indicate an object type cannot be mapped to a device record."""


class RequestCancelledError(DevicePilotError):
    """Exception raised when the caller's cancel event is set."""


# --- API ERRORS --------------------------------------------------------------

class DevicePilotApiError(DevicePilotError):
    """
    Exception raised for backend API errors.
    Carries the status code and the response the server sent, if any.
    """
    def __init__(self, message: str, response: ApiResponse | None = None) -> None:
        self.message = message
        self.response = response
        super().__init__(message)

    @property
    def status(self) -> int:
        """HTTP status code, 0 when no response was received."""
        return self.response.status if self.response is not None else 0


class TransientServiceError(DevicePilotApiError):
    """Exception to indicate a 502/503/504 response, raised once retries are exhausted."""


class InvalidResponseError(DevicePilotApiError):
    """Exception to indicate a response that does not match the expected contract."""


class DevicePilotConnectionError(DevicePilotApiError):
    """Exception to indicate a communication error."""
