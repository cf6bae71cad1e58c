"""
Map typed objects to device records.

Mark the members of a dataclass with ``device_id()``, ``device_timestamp()``
and ``device_property()``::

    @dataclass
    class OutletDevice:
        id: str = device_id()
        latitude: float = device_property(default=0.0)
        is_on: bool = device_property("isOn", default=False)
        timestamp: datetime | None = device_timestamp(default=None)

Any other class can declare its members explicitly and register the result
with ``register_mapping()``. Member discovery runs once per type; the
resulting ``DeviceMapping`` is reused for every instance.
"""
from __future__ import annotations

import dataclasses
import logging
import types
import typing
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from .exceptions import DeviceMappingError
from .models import DeviceRecord

_LOGGER = logging.getLogger(__name__)

METADATA_KEY = "devicepilot"

ROLE_ID = "id"
ROLE_TIMESTAMP = "timestamp"
ROLE_PROPERTY = "property"

_MAPPINGS: dict[type, DeviceMapping] = {}


# --- FIELD MARKERS -----------------------------------------------------------

@dataclass(frozen=True)
class DeviceMember:
    """Marker stored in the metadata of a dataclass field."""

    role: str
    name: str | None = None


def _marked_field(marker: DeviceMember, kwargs: dict[str, Any]) -> Any:
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = marker
    return dataclasses.field(metadata=metadata, **kwargs)


def device_id(**kwargs: Any) -> Any:
    """Mark a dataclass field as the device identity."""
    return _marked_field(DeviceMember(ROLE_ID), kwargs)


def device_timestamp(**kwargs: Any) -> Any:
    """Mark a dataclass field (typed ``datetime | None``) as the device timestamp."""
    return _marked_field(DeviceMember(ROLE_TIMESTAMP), kwargs)


def device_property(name: str | None = None, **kwargs: Any) -> Any:
    """Mark a dataclass field as a device property, optionally under another name."""
    return _marked_field(DeviceMember(ROLE_PROPERTY, name), kwargs)


# --- DEVICE MAPPING ----------------------------------------------------------

@dataclass(frozen=True)
class DeviceMapping:
    """Where to find the identity, timestamp and properties on an object."""

    id_member: str
    timestamp_member: str | None = None
    # (member name, property key) in discovery order
    property_members: tuple[tuple[str, str], ...] = ()

    @classmethod
    def declare(
        cls,
        id: str,
        timestamp: str | None = None,
        properties: Iterable[str] | Mapping[str, str] = (),
    ) -> DeviceMapping:
        """
        Build a mapping from member names.

        ``properties`` is either a list of member names, used verbatim as
        property keys, or a dict of member name -> property key.
        """
        if not id:
            raise DeviceMappingError("The device object must have an identity member")

        if isinstance(properties, Mapping):
            members = tuple((member, key or member) for member, key in properties.items())
        else:
            members = tuple((member, member) for member in properties)

        return cls(id, timestamp, members)

    def to_record(self, obj: Any) -> DeviceRecord:
        """Extract a validated record from one instance."""
        identity = getattr(obj, self.id_member)
        if identity is None:
            raise DeviceMappingError(
                f"The identity member `{self.id_member}` of {type(obj).__name__} is None"
            )

        timestamp = None
        if self.timestamp_member is not None:
            timestamp = getattr(obj, self.timestamp_member)
            if timestamp is not None and not isinstance(timestamp, datetime):
                raise DeviceMappingError(
                    f"The timestamp member `{self.timestamp_member}` must hold a datetime or None"
                )

        properties = {key: getattr(obj, member) for member, key in self.property_members}

        return DeviceRecord(id=str(identity), properties=properties, timestamp=timestamp)

    def to_records(self, objs: Iterable[Any], cls: type | None = None) -> list[DeviceRecord]:
        """Extract records from a homogeneous sequence of instances."""
        records = []
        for obj in objs:
            if cls is not None and not isinstance(obj, cls):
                raise DeviceMappingError(
                    f"Expected an instance of {cls.__name__}, got {type(obj).__name__}"
                )
            records.append(self.to_record(obj))
        return records


# --- REGISTRY ----------------------------------------------------------------

def register_mapping(cls: type, mapping: DeviceMapping) -> DeviceMapping:
    """Register an explicit mapping for a type, replacing any discovered one."""
    _check_timestamp_type(cls, mapping.timestamp_member)
    _MAPPINGS[cls] = mapping
    return mapping


def mapping_for(cls: type) -> DeviceMapping:
    """Return the mapping for a type, discovering it on first use."""
    mapping = _MAPPINGS.get(cls)
    if mapping is None:
        mapping = _discover(cls)
        _MAPPINGS[cls] = mapping
        _LOGGER.debug("Discovered device mapping for %s: %s", cls.__qualname__, mapping)
    return mapping


def _discover(cls: type) -> DeviceMapping:
    if not dataclasses.is_dataclass(cls):
        raise DeviceMappingError(
            f"{cls.__name__} is not a dataclass; declare its members with register_mapping()"
        )

    id_members: list[str] = []
    timestamp_members: list[str] = []
    property_members: list[tuple[str, str]] = []

    for f in dataclasses.fields(cls):
        marker = f.metadata.get(METADATA_KEY)
        if marker is None:
            continue
        if marker.role == ROLE_ID:
            id_members.append(f.name)
        elif marker.role == ROLE_TIMESTAMP:
            timestamp_members.append(f.name)
        elif marker.role == ROLE_PROPERTY:
            property_members.append((f.name, marker.name or f.name))

    if not id_members:
        raise DeviceMappingError("The device object must have an identity member")
    if len(id_members) > 1:
        raise DeviceMappingError(
            f"The device object must have exactly one identity member, found {id_members}"
        )
    if len(timestamp_members) > 1:
        raise DeviceMappingError(
            f"The device object can have at most one timestamp member, found {timestamp_members}"
        )

    timestamp_member = timestamp_members[0] if timestamp_members else None
    _check_timestamp_type(cls, timestamp_member)

    return DeviceMapping(id_members[0], timestamp_member, tuple(property_members))


def _check_timestamp_type(cls: type, member: str | None) -> None:
    """The declared type of the timestamp member must be ``datetime | None``."""
    if member is None:
        return

    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError) as err:
        raise DeviceMappingError(
            f"Cannot resolve the type annotations of {cls.__name__}: {err}"
        ) from err

    if member not in hints:
        # Unannotated members are checked per instance in to_record()
        return

    if not _is_optional_datetime(hints[member]):
        raise DeviceMappingError(
            "The device timestamp member must be typed `datetime | None`"
        )


def _is_optional_datetime(hint: Any) -> bool:
    if typing.get_origin(hint) not in (typing.Union, types.UnionType):
        return False
    return set(typing.get_args(hint)) == {datetime, type(None)}
