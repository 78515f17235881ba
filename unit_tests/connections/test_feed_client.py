"""Tests for AsyncFeedClient request building and error handling."""

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from livechart.common.exceptions import (
    FeedConnectionError,
    FeedResponseParsingError,
    FeedServerError,
)
from livechart.config.enumerations import StreamKind
from livechart.connections.requests import (
    AsyncFeedClient,
    clamp_since_param,
    clamp_snapshot_seconds,
    clean_params,
)
from livechart.utils.validators import HTML_ERROR_HINT


def make_session(
    status: int = 200,
    body: Any = None,
    content_type: str = "application/json",
    text: str = "",
) -> tuple[MagicMock, MagicMock]:
    """Mock ClientSession whose ``get`` yields one canned response."""
    response = MagicMock()
    response.status = status
    response.headers = {"content-type": content_type}
    response.json = AsyncMock(return_value={"rows": []} if body is None else body)
    response.text = AsyncMock(return_value=text)

    request_ctx = MagicMock()
    request_ctx.__aenter__ = AsyncMock(return_value=response)
    request_ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.get = MagicMock(return_value=request_ctx)
    session.close = AsyncMock()
    return session, response


def requested(session: MagicMock) -> tuple[str, dict[str, str]]:
    args, kwargs = session.get.call_args
    return args[0], kwargs["params"]


def test_clean_params_drops_none_and_empty() -> None:
    assert clean_params({"symbol": "ES", "profile": None, "n": 0, "x": ""}) == {
        "symbol": "ES",
        "n": "0",
    }
    assert clean_params(None) == {}


@pytest.mark.parametrize(
    "seconds,expected", [(30, 30), (500, 120), (0, 120), (None, 120), ("abc", 120), (-5, 1)]
)
def test_snapshot_seconds_clamped(seconds: Any, expected: int) -> None:
    assert clamp_snapshot_seconds(seconds) == expected


@pytest.mark.parametrize("since,expected", [(5000, 5000), (-1, 0), (None, 0), ("nan", 0)])
def test_since_param_floored_at_zero(since: Any, expected: int) -> None:
    assert clamp_since_param(since) == expected


def test_base_url_trailing_slashes_stripped() -> None:
    client = AsyncFeedClient("http://feed.local:5050///", session=MagicMock())
    assert client.base_url == "http://feed.local:5050"


@pytest.mark.asyncio
async def test_pred_delta_request() -> None:
    session, _ = make_session(body={"rows": [{"epoch_ms": 1}], "max_epoch_ms": 9})
    client = AsyncFeedClient("http://feed", session=session)

    payload = await client.fetch_delta(StreamKind.IDT, "ES", -20)

    url, params = requested(session)
    assert url == "http://feed/pred/delta"
    assert params == {"symbol": "ES", "since_ms": "0", "profile": "idt"}
    assert payload.rows == [{"epoch_ms": 1}]
    assert payload.max_epoch_ms == 9


@pytest.mark.asyncio
async def test_snapshot_delta_request_has_no_profile() -> None:
    session, _ = make_session()
    client = AsyncFeedClient("http://feed", session=session)

    await client.fetch_delta(StreamKind.SNAPSHOT, "ES", 1234)

    url, params = requested(session)
    assert url == "http://feed/snapshot/delta"
    assert params == {"symbol": "ES", "since_ms": "1234"}


@pytest.mark.asyncio
async def test_latest_requests() -> None:
    session, _ = make_session()
    client = AsyncFeedClient("http://feed", session=session)

    await client.fetch_latest(StreamKind.HFT, "ES", n=2000)
    assert requested(session) == (
        "http://feed/pred/latest",
        {"symbol": "ES", "profile": "hft", "n": "2000"},
    )

    await client.fetch_latest(StreamKind.SNAPSHOT, "ES", seconds=600)
    assert requested(session) == (
        "http://feed/snapshot",
        {"symbol": "ES", "seconds": "120", "profile": "hft"},
    )


@pytest.mark.asyncio
async def test_requests_disable_caching() -> None:
    session, _ = make_session()
    client = AsyncFeedClient("http://feed", session=session)

    await client.fetch_delta(StreamKind.HFT, "ES", 0)

    _, kwargs = session.get.call_args
    assert kwargs["headers"]["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_non_2xx_raises_with_hint() -> None:
    session, _ = make_session(status=502, content_type="text/html", text="<html>oops</html>")
    client = AsyncFeedClient("http://feed", session=session)

    with pytest.raises(FeedServerError) as exc_info:
        await client.fetch_delta(StreamKind.HFT, "ES", 0)

    assert exc_info.value.detail == HTML_ERROR_HINT
    assert exc_info.value.url == "http://feed/pred/delta"


@pytest.mark.asyncio
async def test_non_object_body_is_a_parsing_error() -> None:
    session, _ = make_session(body=[1, 2, 3])
    client = AsyncFeedClient("http://feed", session=session)

    with pytest.raises(FeedResponseParsingError):
        await client.fetch_latest(StreamKind.HFT, "ES")


@pytest.mark.asyncio
async def test_invalid_json_is_a_parsing_error() -> None:
    session, response = make_session()
    response.json = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "<", 0))
    client = AsyncFeedClient("http://feed", session=session)

    with pytest.raises(FeedResponseParsingError):
        await client.fetch_latest(StreamKind.SNAPSHOT, "ES")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()]
)
async def test_transport_failures_become_connection_errors(error: Exception) -> None:
    session, _ = make_session()
    session.get = MagicMock(side_effect=error)
    client = AsyncFeedClient("http://feed", session=session)

    with pytest.raises(FeedConnectionError) as exc_info:
        await client.fetch_delta(StreamKind.HFT, "ES", 0)

    assert exc_info.value.original_exception is error


@pytest.mark.asyncio
async def test_close_leaves_injected_session_open() -> None:
    session, _ = make_session()
    client = AsyncFeedClient("http://feed", session=session)

    await client.close()

    session.close.assert_not_awaited()
    assert client.session is None


@pytest.mark.asyncio
async def test_context_manager_owns_and_closes_its_session() -> None:
    async with AsyncFeedClient("http://feed") as client:
        session = client.session
        assert isinstance(session, aiohttp.ClientSession)
        assert not session.closed

    assert session.closed
    assert client.session is None
