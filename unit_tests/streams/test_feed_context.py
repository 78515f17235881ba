"""Tests for FeedContext: the owner of all per-symbol state."""

import polars as pl

from livechart.config.enumerations import ChartName, StreamKind
from livechart.streams.context import FeedContext
from livechart.streams.models import FeedPayload

T0 = 1_700_000_000_000


def hft_payload(offsets: list[int]) -> FeedPayload:
    return FeedPayload(
        rows=[{"epoch_ms": T0 + o, "pred_bps_100": 1.0, "pred_bps_300": 3.0} for o in offsets]
    )


def idt_payload(offsets: list[int]) -> FeedPayload:
    return FeedPayload(
        rows=[{"epoch_ms": T0 + o, "pred_bps_1200000": -1.0, "pred_bps_3600000": 2.0} for o in offsets]
    )


def snapshot_payload(offsets: list[int]) -> FeedPayload:
    return FeedPayload(
        rows=[{"epoch_ms": T0 + o, "bid_px1": 100.0, "ask_px1": 101.0} for o in offsets]
    )


def test_ingest_routes_to_merge_and_selects_default_horizons() -> None:
    context = FeedContext("ES")

    context.ingest(StreamKind.HFT, hft_payload([0, 1]), delta=False)
    context.ingest(StreamKind.IDT, idt_payload([1]), delta=True)

    assert len(context[StreamKind.HFT]) == 2
    assert len(context[StreamKind.IDT]) == 1
    assert context.horizons[StreamKind.HFT] == [300]
    assert context.horizons[StreamKind.IDT] == [3600000, 1200000]


def test_row_at_and_timeline() -> None:
    context = FeedContext("ES")
    context.ingest(StreamKind.HFT, hft_payload([0, 2]), delta=False)
    context.ingest(StreamKind.SNAPSHOT, snapshot_payload([1, 2]), delta=False)

    assert context.timeline().ms == [T0, T0 + 1, T0 + 2]
    assert context.row_at(StreamKind.HFT, T0 + 1) is None
    assert context.row_at(StreamKind.SNAPSHOT, T0 + 1) is not None


def test_since_is_bounded_by_cursor() -> None:
    context = FeedContext("ES")
    assert context.since(StreamKind.HFT) == 0

    context.ingest(StreamKind.HFT, hft_payload([5]), delta=True)
    assert context.since(StreamKind.HFT) == T0 + 5


def test_on_data_right_anchors_views() -> None:
    context = FeedContext("ES", view_span=40)
    context.ingest(StreamKind.SNAPSHOT, snapshot_payload(list(range(100))), delta=False)

    assert context.on_data() is True
    assert context.views.index == 99
    window = context.views[ChartName.PRICE]
    assert (window.i0, window.i1) == (59, 99)


def test_reset_wipes_state_and_switches_symbol() -> None:
    context = FeedContext("ES")
    context.ingest(StreamKind.HFT, hft_payload([0, 1]), delta=True)
    context.views.auto_follow = False

    context.reset("NQ")

    assert context.symbol == "NQ"
    assert all(len(store) == 0 for store in context.stores.values())
    assert context.cursors.snapshot() == {kind: 0 for kind in StreamKind}
    assert context.views.auto_follow is True
    assert context.horizons[StreamKind.HFT] == []


def test_series_frame_uses_selected_horizons() -> None:
    context = FeedContext("ES")
    context.ingest(StreamKind.HFT, hft_payload([0]), delta=False)
    context.ingest(StreamKind.SNAPSHOT, snapshot_payload([1]), delta=False)

    frame = context.series_frame()

    assert isinstance(frame, pl.DataFrame)
    assert frame.columns == [
        "epoch_ms",
        "mid",
        "microprice",
        "micro_mid",
        "spread",
        "imbalance",
        "hft_300",
    ]
    assert frame["hft_300"].to_list() == [3.0, None]
    assert frame["mid"].to_list() == [None, 100.5]
