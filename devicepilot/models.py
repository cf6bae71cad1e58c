"""Device record model for DevicePilot ingestion."""
from __future__ import annotations

import base64
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from .const import KEY_ID, KEY_TIMESTAMP, RESERVED_KEYS
from .exceptions import DeviceValidationError

# Runtime types accepted as property values
VALID_PROPERTY_TYPES: tuple[type, ...] = (
    str,
    bool,
    int,
    float,
    Decimal,
    datetime,
    bytes,
    bytearray,
    type,
    UUID,
)

# Covers the 8/16/32/64-bit signed and unsigned integer family
INT_MIN = -(2**63)
INT_MAX = 2**64 - 1


# --- DEVICE RECORD -----------------------------------------------------------

@dataclass(frozen=True)
class DeviceRecord:
    """
    A single device snapshot: identity, optional timestamp and properties.

    Records are validated on construction, so an instance that exists is
    always safe to send.
    """

    id: str
    properties: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if self.properties is None:
            raise DeviceValidationError("The device properties cannot be None")
        # Take a private copy so later changes to the caller's dict are not seen
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        self.validate()

    def validate(self) -> None:
        """Raise DeviceValidationError if the record cannot be ingested."""
        if self.id is None:
            raise DeviceValidationError("The device id cannot be None")
        if not isinstance(self.id, str):
            raise DeviceValidationError(
                f"The device id must be a string, got {type(self.id).__name__}"
            )
        if not self.id:
            raise DeviceValidationError("The device id cannot be empty")

        if self.timestamp is not None:
            if not isinstance(self.timestamp, datetime):
                raise DeviceValidationError(
                    f"The timestamp must be a datetime, got {type(self.timestamp).__name__}"
                )
            if as_utc(self.timestamp) > datetime.now(timezone.utc):
                raise DeviceValidationError("The timestamp cannot be in the future")

        for key, value in self.properties.items():
            if not isinstance(key, str) or not key:
                raise DeviceValidationError("The device property name cannot be empty or None")
            if key in RESERVED_KEYS:
                raise DeviceValidationError(f"The device property name `{key}` is reserved")
            validate_property_value(key, value)

    def as_payload(self) -> dict[str, Any]:
        """Render the JSON object sent to the ingestion endpoint."""
        payload: dict[str, Any] = {KEY_ID: self.id}

        if self.timestamp is not None:
            payload[KEY_TIMESTAMP] = format_timestamp(self.timestamp)

        for key, value in self.properties.items():
            payload[key] = to_json_value(value)

        return payload


# --- HELPERS -----------------------------------------------------------------

def validate_property_value(key: str, value: Any) -> None:
    """Check that a property value has a supported runtime type."""
    if not isinstance(value, VALID_PROPERTY_TYPES):
        raise DeviceValidationError(
            f"The type {_type_name(type(value))} is not supported for device property `{key}`"
        )
    if isinstance(value, int) and not isinstance(value, bool):
        if not INT_MIN <= value <= INT_MAX:
            raise DeviceValidationError(
                f"The integer value of device property `{key}` does not fit in 64 bits"
            )
    if isinstance(value, (float, Decimal)) and not _is_finite(value):
        raise DeviceValidationError(
            f"The value of device property `{key}` must be a finite number"
        )


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be local time."""
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")


def to_json_value(value: Any) -> Any:
    """Convert a supported property value to its JSON-native form."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, Decimal):
        # Text keeps every digit
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, type):
        return _type_name(value)
    return value


def _is_finite(value: float | Decimal) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    return math.isfinite(value)


def _type_name(cls: type) -> str:
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"
