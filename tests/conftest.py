"""Test configuration and fixtures."""
from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import pytest
from multidict import CIMultiDict

from devicepilot import DevicePilotClient
from devicepilot.api import base_api


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(
        self,
        status: int = 200,
        body: bytes = b"",
        content_type: str = "application/json",
        reason: str | None = None,
        headers: list[tuple[str, str]] | None = None,
    ) -> None:
        self.status = status
        self.reason = reason
        self.content_type = content_type
        self.headers = CIMultiDict([("Content-Type", content_type), *(headers or [])])
        self._body = body

    async def read(self) -> bytes:
        return self._body


def json_response(status: int = 200, payload: Any = None, **kwargs: Any) -> FakeResponse:
    body = b"" if payload is None else json.dumps(payload).encode()
    return FakeResponse(status, body, **kwargs)


class _FakeRequestContext:
    def __init__(self, response: FakeResponse | BaseException) -> None:
        self._response = response

    async def __aenter__(self) -> FakeResponse:
        if isinstance(self._response, BaseException):
            raise self._response
        return self._response

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class FakeSession:
    """
    In-memory aiohttp.ClientSession replacement.
    Queued responses are served in order; once empty every request gets 200.
    """

    def __init__(self) -> None:
        self.responses: list[FakeResponse | BaseException] = []
        self.requests: list[SimpleNamespace] = []
        self.closed = False

    def queue(self, *responses: FakeResponse | BaseException) -> None:
        self.responses.extend(responses)

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeRequestContext:
        self.requests.append(SimpleNamespace(method=method, url=url, **kwargs))
        response = self.responses.pop(0) if self.responses else FakeResponse(200)
        return _FakeRequestContext(response)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(session: FakeSession) -> DevicePilotClient:
    """Client with the default retry policy bound to the fake session."""
    return DevicePilotClient("test-token", session=session)


@pytest.fixture
def waits(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record backoff delays instead of sleeping."""
    recorded: list[float] = []

    async def _fake_wait(delay: float, cancel_event: Any) -> None:
        recorded.append(delay)
        base_api.raise_if_cancelled(cancel_event)

    monkeypatch.setattr(base_api, "_async_wait", _fake_wait)
    return recorded
