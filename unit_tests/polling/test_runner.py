from typing import Any
from unittest.mock import patch

import pytest

from livechart.config.enumerations import StreamKind
from livechart.config.settings import Settings
from livechart.polling.runner import describe, fetch_once, format_uptime, poll_config_from
from livechart.streams.context import FeedContext
from livechart.streams.models import FeedPayload

T0 = 1_700_000_000_000


class StubClient:
    """Stands in for AsyncFeedClient inside ``async with``."""

    instances: list["StubClient"] = []

    def __init__(self, base_url: str, timeout: float = 10.0) -> None:
        self.base_url = base_url
        self.closed = False
        StubClient.instances.append(self)

    async def __aenter__(self) -> "StubClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.closed = True

    async def fetch_latest(self, kind: StreamKind, symbol: str, n: int = 2000, seconds: Any = 120) -> FeedPayload:
        if kind is StreamKind.SNAPSHOT:
            return FeedPayload(rows=[{"epoch_ms": T0, "mid": 1.0}, {"epoch_ms": T0 + 5, "mid": 2.0}])
        return FeedPayload(rows=[{"epoch_ms": T0, "pred_bps_250": 0.5}])

    async def fetch_delta(self, kind: StreamKind, symbol: str, since_ms: Any) -> FeedPayload:
        return FeedPayload()


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "0s"), (59.9, "59s"), (61, "1m 01s"), (3723, "1h 02m 03s")],
)
def test_format_uptime(seconds: float, expected: str) -> None:
    assert format_uptime(seconds) == expected


def test_poll_config_from_settings() -> None:
    settings = Settings(_env_file=None, poll_ms=500, use_delta=False, latest_rows=100)

    config = poll_config_from(settings)

    assert config.poll_ms == 500
    assert config.use_delta is False
    assert config.latest_rows == 100


def test_describe_empty_context() -> None:
    line = describe(FeedContext("ES"))
    assert line.startswith("t = 0 / 0")
    assert "hft=0 idt=0 snapshot=0" in line


def test_describe_reports_newest_instant() -> None:
    context = FeedContext("ES")
    context.ingest(
        StreamKind.SNAPSHOT,
        FeedPayload(rows=[{"epoch_ms": T0}, {"epoch_ms": T0 + 5}]),
        delta=False,
    )
    context.on_data()

    line = describe(context)

    assert line.startswith("t = 2 / 2")
    assert "2023-11-14 22:13:20.005 UTC" in line
    assert "snapshot=2" in line


@pytest.mark.asyncio
async def test_fetch_once_bootstraps_and_closes_client() -> None:
    StubClient.instances.clear()
    settings = Settings(_env_file=None, symbol="NQ", base_url="http://feed/")

    with patch("livechart.polling.runner.AsyncFeedClient", StubClient):
        context = await fetch_once(settings)

    client = StubClient.instances[0]
    assert client.base_url == "http://feed"
    assert client.closed
    assert context.symbol == "NQ"
    assert len(context[StreamKind.SNAPSHOT]) == 2
    assert context.cursors[StreamKind.HFT] == T0
