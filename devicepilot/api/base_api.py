"""Base class for DevicePilot API sub-clients."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Mapping

import aiohttp
from multidict import CIMultiDict

from ..config import ClientConfig
from ..const import AUTH_SCHEME, CLIENT_HEADER, CLIENT_NAME, JSON_MEDIA_TYPE, TRANSIENT_STATUSES
from ..exceptions import (
    DevicePilotApiError,
    DevicePilotConnectionError,
    InvalidResponseError,
    RequestCancelledError,
    TransientServiceError,
)

_LOGGER = logging.getLogger(__name__)


# --- API RESPONSE ------------------------------------------------------------

@dataclass(frozen=True)
class ApiResponse:
    """Status, headers and raw body of a completed HTTP exchange."""

    status: int
    reason: str | None
    content_type: str
    body: bytes
    headers: Mapping[str, str] = field(default_factory=CIMultiDict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


# --- CANCELLATION ------------------------------------------------------------

def raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RequestCancelledError("The request was cancelled")


async def _async_wait(delay: float, cancel_event: asyncio.Event | None) -> None:
    """Sleep for the backoff delay, waking early if the cancel event is set."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return

    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise_if_cancelled(cancel_event)


# --- DEVICEPILOT BASE API ----------------------------------------------------

class DevicePilotBaseApi:
    """Base class handling HTTP requests, authentication and retries."""

    def __init__(self, session: aiohttp.ClientSession, config: ClientConfig) -> None:
        """Initialize the base API."""
        self._session = session
        # Shared with the owning client, changes apply to the next request
        self._config = config

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"{AUTH_SCHEME} {self._config.token}",
            "Accept": JSON_MEDIA_TYPE,
            "Content-Type": JSON_MEDIA_TYPE,
            CLIENT_HEADER: CLIENT_NAME,
        }


    # --- REQUEST (WITH RETRY) -------------------------------------------------

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Any = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ApiResponse:
        """
        Execute an HTTP request, retrying on 502, 503 and 504.

        After each transient failure the delay grows by half of itself
        (3s, 4.5s, 6.75s, ...). Any other failure, or a transient failure on
        the last attempt, is raised immediately.
        """
        delay = self._config.retry_delay
        attempt = 1

        while True:
            try:
                return await self._raw_request(method, endpoint, data, cancel_event)
            except TransientServiceError as err:
                if attempt >= self._config.retry_count:
                    _LOGGER.error(
                        "%s %s failed after %d attempts: %s", method, endpoint, attempt, err
                    )
                    raise

                _LOGGER.warning(
                    "%s %s returned %d (attempt %d/%d), retrying in %.2fs",
                    method,
                    endpoint,
                    err.status,
                    attempt,
                    self._config.retry_count,
                    delay,
                )

            await _async_wait(delay, cancel_event)
            delay += delay / 2
            attempt += 1


    # --- RAW REQUEST ------------------------------------------------------------

    async def _raw_request(
        self,
        method: str,
        endpoint: str,
        data: Any = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ApiResponse:
        """Execute a single HTTP request with error translation but no retry."""
        raise_if_cancelled(cancel_event)

        url = f"{self._config.base_url}{endpoint}"
        # GET requests never carry a body
        body = None if method.upper() == "GET" else data

        _LOGGER.debug("%s %s", method, url)

        try:
            async with self._session.request(
                method,
                url,
                headers=self._headers(),
                json=body,
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
            ) as response:
                result = ApiResponse(
                    status=response.status,
                    reason=response.reason,
                    content_type=response.content_type,
                    body=await response.read(),
                    # CIMultiDict copy, repeated header names are kept
                    headers=response.headers.copy(),
                )

        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            # DNS, Timeout, Connection Refused
            _LOGGER.error("DevicePilot Connection Error: %s", err)
            raise DevicePilotConnectionError(
                f"Cannot connect to server: {type(err).__name__} {err}".rstrip()
            ) from err

        if result.ok:
            return result

        raise_if_cancelled(cancel_event)
        raise _error_for(result)


    # --- JSON HELPERS -----------------------------------------------------------

    async def _request_json(
        self,
        method: str,
        endpoint: str,
        data: Any,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Send a JSON body, ignoring the response body."""
        await self._request(method, endpoint, data, cancel_event)

    async def _request_json_object(
        self,
        method: str,
        endpoint: str,
        data: Any = None,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Send a JSON body and decode a JSON object response."""
        response = await self._request(method, endpoint, data, cancel_event)

        if not response.content_type.lower().startswith(JSON_MEDIA_TYPE):
            raise InvalidResponseError("Invalid server response", response)

        try:
            payload = json.loads(response.body)
        except ValueError as err:
            raise InvalidResponseError("Invalid server response", response) from err

        if not isinstance(payload, dict):
            raise InvalidResponseError("Invalid server response", response)

        return payload


# --- ERROR TRANSLATION ---------------------------------------------------------

def _error_for(response: ApiResponse) -> DevicePilotApiError:
    """Build the exception for a non-2xx response."""
    message = _error_message(response)
    if message is None:
        message = f"Invalid server response - {response.status} {_status_phrase(response)}"

    if response.status in TRANSIENT_STATUSES:
        return TransientServiceError(message, response)
    return DevicePilotApiError(message, response)


def _error_message(response: ApiResponse) -> str | None:
    """Read the `message` field of a JSON error object, if there is one."""
    try:
        body = json.loads(response.body)
    except ValueError:
        return None

    if not isinstance(body, dict) or not isinstance(body.get("message"), str):
        return None
    return body["message"]


def _status_phrase(response: ApiResponse) -> str:
    if response.reason:
        return response.reason
    try:
        return HTTPStatus(response.status).phrase
    except ValueError:
        return "Unknown"
