import logging
import math

import pytest

from livechart.config.enumerations import StreamKind
from livechart.streams.cursors import CursorRegistry


def test_cursors_start_at_zero() -> None:
    cursors = CursorRegistry()
    assert all(cursors[kind] == 0 for kind in StreamKind)


def test_advance_only_moves_forward() -> None:
    cursors = CursorRegistry()
    cursors.advance(StreamKind.HFT, 5000)
    cursors.advance(StreamKind.HFT, 3000)
    assert cursors[StreamKind.HFT] == 5000
    assert cursors[StreamKind.IDT] == 0


@pytest.mark.parametrize("candidate", [None, 0, -10, math.nan, "x"])
def test_advance_ignores_invalid_candidates(candidate: object) -> None:
    cursors = CursorRegistry()
    cursors.advance(StreamKind.SNAPSHOT, 1000)
    assert cursors.advance(StreamKind.SNAPSHOT, candidate) == 1000


def test_reset_returns_every_cursor_to_zero() -> None:
    cursors = CursorRegistry()
    for kind in StreamKind:
        cursors.advance(kind, 42)
    cursors.reset()
    assert cursors.snapshot() == {kind: 0 for kind in StreamKind}


@pytest.mark.parametrize("requested", [-5, math.nan, math.inf, None, "abc"])
def test_clamp_since_floors_invalid_requests_at_zero(requested: object) -> None:
    cursors = CursorRegistry()
    cursors.advance(StreamKind.HFT, 1000)
    assert cursors.clamp_since(StreamKind.HFT, requested) == 0


def test_clamp_since_caps_at_cursor() -> None:
    cursors = CursorRegistry()
    cursors.advance(StreamKind.HFT, 5000)
    assert cursors.clamp_since(StreamKind.HFT, 9_999_999) == 5000
    assert cursors.clamp_since(StreamKind.HFT, 4000) == 4000


def test_clamp_since_caps_at_newest_stored_row() -> None:
    cursors = CursorRegistry()
    assert cursors.clamp_since(StreamKind.IDT, 9000, known_last_ms=7000) == 7000


def test_clamp_since_with_nothing_known_is_zero() -> None:
    cursors = CursorRegistry()
    assert cursors.clamp_since(StreamKind.SNAPSHOT, 12345) == 0


def test_clamp_since_logs_when_it_clamps(caplog: pytest.LogCaptureFixture) -> None:
    cursors = CursorRegistry()
    cursors.advance(StreamKind.HFT, 100)

    with caplog.at_level(logging.DEBUG, logger="livechart.streams.cursors"):
        cursors.clamp_since(StreamKind.HFT, 500)

    assert "clamp_since(hft)" in caplog.text
