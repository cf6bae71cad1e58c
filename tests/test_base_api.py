"""Tests for the retrying request dispatcher."""
import asyncio

import aiohttp
import pytest
from conftest import FakeResponse, json_response

from devicepilot import (
    DevicePilotApiError,
    DevicePilotConnectionError,
    InvalidResponseError,
    RequestCancelledError,
    TransientServiceError,
)
from devicepilot.api.base_api import DevicePilotBaseApi
from devicepilot.config import ClientConfig


@pytest.fixture
def api(session):
    return DevicePilotBaseApi(session, ClientConfig.from_dict({"token": "test-token"}))


@pytest.mark.asyncio
async def test_success_is_returned_without_reading_json(api, session):
    session.queue(FakeResponse(201, b"not json", content_type="text/plain"))

    response = await api._request("POST", "/devices", {"$id": "a"})

    assert response.status == 201
    assert response.body == b"not json"
    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_repeated_response_headers_are_kept(api, session):
    session.queue(FakeResponse(200, headers=[("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")]))

    response = await api._request("GET", "/devices")

    assert response.headers.getall("set-cookie") == ["a=1", "b=2"]


@pytest.mark.asyncio
async def test_request_headers_and_url(api, session):
    await api._request("POST", "/devices", {"$id": "a"})

    request = session.requests[0]
    assert request.method == "POST"
    assert request.url == "https://api.devicepilot.com/devices"
    assert request.headers["Authorization"] == "Token test-token"
    assert request.headers["X-API-Client"].startswith("devicepilot-api-client/")
    assert request.json == {"$id": "a"}
    assert request.timeout.total == 100.0


@pytest.mark.asyncio
async def test_get_requests_carry_no_body(api, session):
    await api._request("GET", "/devices", {"ignored": True})

    assert session.requests[0].json is None


@pytest.mark.asyncio
async def test_retries_transient_failures_with_growing_delay(api, session, waits):
    """Test two 503s then success: two backoff periods of 3s and 4.5s."""
    session.queue(json_response(503), json_response(503), json_response(200))

    response = await api._request("POST", "/devices", [])

    assert response.status == 200
    assert len(session.requests) == 3
    assert waits == [3.0, 4.5]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [502, 503, 504])
async def test_gives_up_after_retry_count(api, session, waits, status):
    session.queue(*[json_response(status) for _ in range(5)])

    with pytest.raises(TransientServiceError) as excinfo:
        await api._request("POST", "/devices", [])

    assert excinfo.value.status == status
    assert len(session.requests) == 3
    assert waits == [3.0, 4.5]


@pytest.mark.asyncio
async def test_retry_count_of_one_never_waits(session, waits):
    api = DevicePilotBaseApi(session, ClientConfig.from_dict({"token": "t", "retry_count": 1}))
    session.queue(json_response(502))

    with pytest.raises(TransientServiceError):
        await api._request("POST", "/devices", [])

    assert len(session.requests) == 1
    assert waits == []


@pytest.mark.asyncio
async def test_non_transient_failure_is_not_retried(api, session, waits):
    session.queue(json_response(400, {"message": "Bad device"}))

    with pytest.raises(DevicePilotApiError) as excinfo:
        await api._request("POST", "/devices", [])

    err = excinfo.value
    assert not isinstance(err, TransientServiceError)
    assert err.status == 400
    assert err.message == "Bad device"
    assert str(err) == "Bad device"
    assert err.response.status == 400
    assert len(session.requests) == 1
    assert waits == []


@pytest.mark.asyncio
async def test_unparseable_error_body_synthesizes_message(api, session):
    session.queue(FakeResponse(401, b"<html>nope</html>", content_type="text/html"))

    with pytest.raises(DevicePilotApiError, match="Invalid server response - 401 Unauthorized"):
        await api._request("GET", "/devices")


@pytest.mark.asyncio
async def test_error_reason_from_server_is_used(api, session):
    session.queue(FakeResponse(418, b"", reason="Short And Stout"))

    with pytest.raises(DevicePilotApiError, match="418 Short And Stout"):
        await api._request("GET", "/devices")


@pytest.mark.asyncio
async def test_connection_errors_are_wrapped(api, session):
    session.queue(aiohttp.ClientConnectionError("refused"))

    with pytest.raises(DevicePilotConnectionError) as excinfo:
        await api._request("GET", "/devices")

    assert excinfo.value.status == 0
    assert excinfo.value.response is None
    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_cancelled_before_send(api, session):
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(RequestCancelledError):
        await api._request("POST", "/devices", [], cancel)

    assert session.requests == []


@pytest.mark.asyncio
async def test_cancellation_takes_precedence_over_retry(api, session, waits):
    """Test that a cancel during the request wins over a transient retry."""
    cancel = asyncio.Event()

    class CancellingResponse(FakeResponse):
        async def read(self):
            cancel.set()
            return await super().read()

    session.queue(CancellingResponse(503))

    with pytest.raises(RequestCancelledError):
        await api._request("POST", "/devices", [], cancel)

    assert len(session.requests) == 1
    assert waits == []


@pytest.mark.asyncio
async def test_cancel_during_backoff_stops_waiting(session):
    api = DevicePilotBaseApi(session, ClientConfig.from_dict({"token": "t", "retry_delay": 30}))
    cancel = asyncio.Event()
    session.queue(json_response(503), json_response(200))

    task = asyncio.ensure_future(api._request("POST", "/devices", [], cancel))
    await asyncio.sleep(0.01)
    cancel.set()

    with pytest.raises(RequestCancelledError):
        await asyncio.wait_for(task, timeout=1)

    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_real_backoff_sleeps(session):
    api = DevicePilotBaseApi(session, ClientConfig.from_dict({"token": "t", "retry_delay": 0.01}))
    session.queue(json_response(504), json_response(204))

    response = await api._request("POST", "/devices", [], asyncio.Event())

    assert response.status == 204
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_request_json_object(api, session):
    session.queue(json_response(200, {"id": "a"}, content_type="application/json; charset=utf-8"))

    assert await api._request_json_object("GET", "/devices/a") == {"id": "a"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(200, b'{"id": "a"}', content_type="text/plain"),
        FakeResponse(200, b"{broken", content_type="application/json"),
        FakeResponse(200, b"[1, 2]", content_type="application/json"),
    ],
)
async def test_request_json_object_rejects_invalid_responses(api, session, response):
    session.queue(response)

    with pytest.raises(InvalidResponseError, match="Invalid server response"):
        await api._request_json_object("GET", "/devices/a")
