"""Series extraction for renderers.

Field names vary between feeds, so every logical quantity is read through an
ordered candidate list from :mod:`livechart.config.configurations`. Values
are never interpolated: a stream with no row at a timestamp yields a null.
"""

import logging
from typing import Any, Mapping, Optional, Sequence, Union

import polars as pl

from livechart.config.configurations import (
    ASK_PRICE_FIELDS,
    BID_PRICE_FIELDS,
    DEPTH_ASK_PRICE_FIELDS,
    DEPTH_ASK_SIZE_FIELDS,
    DEPTH_BID_PRICE_FIELDS,
    DEPTH_BID_SIZE_FIELDS,
    L1_ASK_SIZE_FIELDS,
    L1_BID_SIZE_FIELDS,
    MICROPRICE_FIELDS,
    MID_FIELDS,
    SIGNAL_SEARCH_MAX_LOOK,
)
from livechart.config.enumerations import StreamKind
from livechart.streams.models import StreamRow
from livechart.streams.store import StreamStore
from livechart.streams.timeline import Timeline
from livechart.timing.epochs import first_present, to_finite

logger = logging.getLogger(__name__)

RowLike = Union[StreamRow, Mapping[str, Any], None]

SPREAD_EPSILON = 1e-9


def _fields(row: RowLike) -> Mapping[str, Any]:
    if row is None:
        return {}
    if isinstance(row, StreamRow):
        return row.fields
    return row


def pick_number(row: RowLike, candidates: Sequence[str]) -> Optional[float]:
    """First present candidate converted to a finite float.

    Later candidates are not consulted when the first present one is not
    numeric.
    """
    return to_finite(first_present(_fields(row), tuple(candidates)))


def bid_ask(row: RowLike) -> tuple[Optional[float], Optional[float]]:
    return pick_number(row, BID_PRICE_FIELDS), pick_number(row, ASK_PRICE_FIELDS)


def depth_bid_ask(row: RowLike) -> tuple[Optional[float], Optional[float]]:
    return pick_number(row, DEPTH_BID_PRICE_FIELDS), pick_number(row, DEPTH_ASK_PRICE_FIELDS)


def depth_sizes(row: RowLike) -> tuple[Optional[float], Optional[float]]:
    return pick_number(row, DEPTH_BID_SIZE_FIELDS), pick_number(row, DEPTH_ASK_SIZE_FIELDS)


def mid_price(row: RowLike) -> Optional[float]:
    mid = pick_number(row, MID_FIELDS)
    if mid is not None:
        return mid
    bid, ask = bid_ask(row)
    if bid is not None and ask is not None:
        return 0.5 * (bid + ask)
    return None


def microprice(row: RowLike) -> Optional[float]:
    value = pick_number(row, MICROPRICE_FIELDS)
    if value is not None:
        return value
    bid, ask = bid_ask(row)
    bid_size = pick_number(row, L1_BID_SIZE_FIELDS)
    ask_size = pick_number(row, L1_ASK_SIZE_FIELDS)
    if None in (bid, ask, bid_size, ask_size) or bid_size + ask_size <= 0:
        return None
    return (bid * ask_size + ask * bid_size) / (bid_size + ask_size)


def micro_mid(row: RowLike) -> Optional[float]:
    """Microprice minus mid."""
    mid = mid_price(row)
    micro = microprice(row)
    if mid is None or micro is None:
        return None
    return micro - mid


def spread(row: RowLike) -> Optional[float]:
    bid, ask = depth_bid_ask(row)
    if bid is not None and ask is not None:
        return ask - bid
    mid = mid_price(row)
    micro = microprice(row)
    if mid is not None and micro is not None:
        return 2 * abs(micro - mid)
    return None


def imbalance(row: RowLike) -> Optional[float]:
    """Book imbalance in ``[-1, 1]``; positive means more size on the bid."""
    bid_size, ask_size = depth_sizes(row)
    if bid_size is not None and ask_size is not None and bid_size + ask_size > 0:
        return (bid_size - ask_size) / (bid_size + ask_size)

    mid = mid_price(row)
    micro = microprice(row)
    width = spread(row)
    if mid is None or micro is None or width is None or width <= SPREAD_EPSILON:
        return None
    return max(-1.0, min(1.0, (micro - mid) / width))


def has_signal(row: RowLike) -> bool:
    return row is not None and (spread(row) is not None or imbalance(row) is not None)


def nearest_signal_row(
    timeline: Timeline,
    store: StreamStore,
    center: int,
    max_look: int = SIGNAL_SEARCH_MAX_LOOK,
) -> Optional[StreamRow]:
    """Closest snapshot row to ``center`` carrying a spread or imbalance.

    Searches outward, earlier side first; falls back to the row at ``center``.
    """
    origin = timeline.row_at(store, center)
    if has_signal(origin):
        return origin
    for distance in range(1, max_look + 1):
        for idx in (center - distance, center + distance):
            if 0 <= idx < timeline.n:
                row = timeline.row_at(store, idx)
                if has_signal(row):
                    return row
    return origin


def series_columns(hft_horizons: Sequence[int], idt_horizons: Sequence[int]) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "epoch_ms": pl.Int64,
        "mid": pl.Float64,
        "microprice": pl.Float64,
        "micro_mid": pl.Float64,
        "spread": pl.Float64,
        "imbalance": pl.Float64,
    }
    for h in hft_horizons:
        schema[f"hft_{h}"] = pl.Float64
    for h in idt_horizons:
        schema[f"idt_{h}"] = pl.Float64
    return schema


def build_series_frame(
    timeline: Timeline,
    stores: Mapping[StreamKind, StreamStore],
    i0: int = 0,
    i1: Optional[int] = None,
    hft_horizons: Sequence[int] = (),
    idt_horizons: Sequence[int] = (),
    fill_forward: bool = False,
) -> pl.DataFrame:
    """Aligned frame for timeline indices ``i0..i1`` inclusive.

    ``fill_forward`` carries the last known value across gaps; it is a display
    choice and off by default.
    """
    schema = series_columns(hft_horizons, idt_horizons)
    if timeline.n == 0:
        return pl.DataFrame(schema=schema)

    start = max(0, i0)
    stop = timeline.n - 1 if i1 is None else min(i1, timeline.n - 1)

    snapshot = stores[StreamKind.SNAPSHOT]
    hft = stores[StreamKind.HFT]
    idt = stores[StreamKind.IDT]

    records = []
    for idx in range(start, stop + 1):
        epoch_ms = timeline.ms[idx]
        book = snapshot.get(epoch_ms)
        record: dict[str, Any] = {
            "epoch_ms": epoch_ms,
            "mid": mid_price(book) if book else None,
            "microprice": microprice(book) if book else None,
            "micro_mid": micro_mid(book) if book else None,
            "spread": spread(book) if book else None,
            "imbalance": imbalance(book) if book else None,
        }
        hft_row = hft.get(epoch_ms)
        for h in hft_horizons:
            record[f"hft_{h}"] = hft_row.prediction(h) if hft_row else None
        idt_row = idt.get(epoch_ms)
        for h in idt_horizons:
            record[f"idt_{h}"] = idt_row.prediction(h) if idt_row else None
        records.append(record)

    frame = pl.DataFrame(records, schema=schema)
    if fill_forward:
        frame = frame.with_columns(pl.exclude("epoch_ms").forward_fill())
    return frame
