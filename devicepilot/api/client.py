"""Main API Client for DevicePilot."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping

import aiohttp

from ..config import ClientConfig
from ..const import CONF_API_URL, CONF_RETRY_COUNT, CONF_RETRY_DELAY, CONF_TIMEOUT, CONF_TOKEN
from ..models import DeviceRecord
from .base_api import DevicePilotBaseApi
from .device_api import DeviceApi


class DevicePilotClient:
    """
    Main container for DevicePilot API sub-clients.

    The token, base URL, timeout and retry policy can be changed between
    calls. The client does not synchronize these settings, so changing them
    while requests are in flight is the caller's responsibility.
    """

    def __init__(
        self,
        token: str,
        api_url: str | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float | timedelta | None = None,
        retry_count: int | None = None,
        retry_delay: float | timedelta | None = None,
    ) -> None:
        """Initialize the client and its sub-components."""
        self._config = ClientConfig.from_dict(
            {
                CONF_TOKEN: token,
                CONF_API_URL: api_url,
                CONF_TIMEOUT: timeout,
                CONF_RETRY_COUNT: retry_count,
                CONF_RETRY_DELAY: retry_delay,
            }
        )

        # Only close the session if we created it
        self._owns_session = session is None
        self._session = session if session is not None else aiohttp.ClientSession()

        # Instantiate sub-clients
        self.devices = DeviceApi(self._session, self._config)
        self._raw = DevicePilotBaseApi(self._session, self._config)

    async def __aenter__(self) -> DevicePilotClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and not self._session.closed:
            await self._session.close()


    # --- SETTINGS ---------------------------------------------------------------

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def token(self) -> str:
        return self._config.token

    @token.setter
    def token(self, value: str) -> None:
        self._config.update(token=value)

    @property
    def api_url(self) -> str:
        return self._config.api_url

    @api_url.setter
    def api_url(self, value: str) -> None:
        self._config.update(api_url=value)

    @property
    def timeout(self) -> float:
        """Total seconds allowed per attempt."""
        return self._config.timeout

    @timeout.setter
    def timeout(self, value: float | timedelta) -> None:
        self._config.update(timeout=value)

    @property
    def retry_count(self) -> int:
        return self._config.retry_count

    @retry_count.setter
    def retry_count(self, value: int) -> None:
        self._config.update(retry_count=value)

    @property
    def retry_delay(self) -> float:
        """Seconds to wait before the first retry."""
        return self._config.retry_delay

    @retry_delay.setter
    def retry_delay(self, value: float | timedelta) -> None:
        self._config.update(retry_delay=value)


    # --- INGESTION HELPERS ----------------------------------------------------

    async def async_ingest(
        self,
        device_id: str,
        properties: Mapping[str, Any],
        timestamp: datetime | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Helper to build and ingest a single device snapshot."""
        record = DeviceRecord(id=device_id, properties=properties, timestamp=timestamp)
        await self.devices.ingest(record, cancel_event)

    async def async_ingest_record(
        self, record: DeviceRecord, cancel_event: asyncio.Event | None = None
    ) -> None:
        await self.devices.ingest(record, cancel_event)

    async def async_bulk_ingest(
        self, records: Iterable[DeviceRecord], cancel_event: asyncio.Event | None = None
    ) -> None:
        await self.devices.bulk_ingest(records, cancel_event)

    async def async_ingest_object(self, obj: Any, cancel_event: asyncio.Event | None = None) -> None:
        await self.devices.ingest_object(obj, cancel_event)

    async def async_bulk_ingest_objects(
        self,
        objs: Iterable[Any],
        cancel_event: asyncio.Event | None = None,
        cls: type | None = None,
    ) -> None:
        await self.devices.bulk_ingest_objects(objs, cancel_event, cls)


    # --- RAW JSON REQUEST -------------------------------------------------------

    async def async_request_json(
        self,
        method: str,
        endpoint: str,
        data: Any = None,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Call an endpoint that is not wrapped by a sub-client and decode its JSON object."""
        return await self._raw._request_json_object(method, endpoint, data, cancel_event)
