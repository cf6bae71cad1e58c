"""Client library for the DevicePilot ingestion API."""
from __future__ import annotations

from .api.base_api import ApiResponse
from .api.client import DevicePilotClient
from .config import ClientConfig
from .const import VERSION as __version__
from .exceptions import (
    ConfigurationError,
    DeviceMappingError,
    DevicePilotApiError,
    DevicePilotConnectionError,
    DevicePilotError,
    DeviceValidationError,
    InvalidResponseError,
    RequestCancelledError,
    TransientServiceError,
)
from .mapping import (
    DeviceMapping,
    device_id,
    device_property,
    device_timestamp,
    mapping_for,
    register_mapping,
)
from .models import DeviceRecord

__all__ = [
    "ApiResponse",
    "ClientConfig",
    "ConfigurationError",
    "DeviceMapping",
    "DeviceMappingError",
    "DevicePilotApiError",
    "DevicePilotClient",
    "DevicePilotConnectionError",
    "DevicePilotError",
    "DeviceRecord",
    "DeviceValidationError",
    "InvalidResponseError",
    "RequestCancelledError",
    "TransientServiceError",
    "device_id",
    "device_property",
    "device_timestamp",
    "mapping_for",
    "register_mapping",
]
