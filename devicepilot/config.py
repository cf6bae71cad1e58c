"""Client configuration for DevicePilot."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

import voluptuous as vol

from .const import (
    CONF_API_URL,
    CONF_RETRY_COUNT,
    CONF_RETRY_DELAY,
    CONF_TIMEOUT,
    CONF_TOKEN,
    DEFAULT_API_URL,
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
)
from .exceptions import ConfigurationError


def _seconds(value: Any) -> float:
    """Accept a number of seconds or a timedelta."""
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bool):
        raise vol.Invalid("expected a duration")
    return vol.Coerce(float)(value)


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise vol.Invalid("expected an integer")
    return value


CLIENT_CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_TOKEN): str,
        vol.Optional(CONF_API_URL, default=DEFAULT_API_URL): vol.All(str, vol.Url()),
        vol.Optional(CONF_TIMEOUT, default=DEFAULT_TIMEOUT): vol.All(
            _seconds, vol.Range(min=0, min_included=False)
        ),
        vol.Optional(CONF_RETRY_COUNT, default=DEFAULT_RETRY_COUNT): vol.All(
            _count, vol.Range(min=1)
        ),
        vol.Optional(CONF_RETRY_DELAY, default=DEFAULT_RETRY_DELAY): vol.All(
            _seconds, vol.Range(min=0)
        ),
    }
)


# --- CLIENT CONFIG -----------------------------------------------------------

@dataclass
class ClientConfig:
    """
    Options shared by the client and all of its sub-APIs.

    The instance is mutable and not synchronized: changing it while requests
    are in flight is up to the caller.
    """

    token: str
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    retry_count: int = DEFAULT_RETRY_COUNT
    retry_delay: float = DEFAULT_RETRY_DELAY

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Validate raw options and build a config."""
        # None means "use the default" for everything except the token
        options = {k: v for k, v in data.items() if v is not None or k == CONF_TOKEN}
        return cls(**_validate(options))

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def update(self, **changes: Any) -> None:
        """Validate and apply changes in place."""
        validated = _validate({**self.as_dict(), **changes})
        for key in changes:
            setattr(self, key, validated[key])

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")


def _validate(options: dict[str, Any]) -> dict[str, Any]:
    try:
        return CLIENT_CONFIG_SCHEMA(options)
    except vol.Invalid as err:
        path = ".".join(str(p) for p in err.path) or "config"
        raise ConfigurationError(f"Invalid option '{path}': {err.msg}") from err
