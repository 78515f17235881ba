"""Merge engine: the single writer of stream stores and cursors.

Two ingestion paths exist per stream:

* full replace, used at bootstrap and in non-delta mode, discards the store
  and rebuilds it from the payload;
* delta merge upserts rows by timestamp, evicts the oldest keys beyond the
  store capacity and advances the cursor.
"""

import logging
import re
from typing import Any, Mapping, Optional, Sequence

from livechart.config.configurations import DEC_TO_BPS, HORIZON_SCAN_ROWS
from livechart.config.enumerations import StreamKind
from livechart.streams.cursors import CursorRegistry
from livechart.streams.models import FeedPayload, StreamRow
from livechart.streams.store import StreamStore
from livechart.timing.epochs import row_epoch_ms, to_finite

logger = logging.getLogger(__name__)

PRED_KEY = re.compile(r"^pred_(?:bps|dec)_(\d+)$", re.IGNORECASE)
PRED_DEC_KEY = re.compile(r"^pred_dec_\d+$", re.IGNORECASE)


def infer_horizons(rows: Sequence[Any]) -> list[int]:
    """Collect horizons from ``pred_bps_<h>``/``pred_dec_<h>`` keys of the first rows."""
    found: set[int] = set()
    for row in rows[:HORIZON_SCAN_ROWS]:
        if not isinstance(row, Mapping):
            continue
        for key in row:
            match = PRED_KEY.match(str(key))
            if match:
                found.add(int(match.group(1)))
    return sorted(found)


def derive_bps(rows: Sequence[dict[str, Any]], horizons: Sequence[int], unit: Optional[str]) -> str:
    """Add ``pred_bps_<h>`` to rows delivered in decimal units.

    Decimal units are signalled either by ``unit == "dec"`` or by a
    ``pred_dec_<h>`` key on the first row. Returns the resulting unit tag.
    """
    tag = (unit or "").lower()
    has_dec = bool(rows) and any(PRED_DEC_KEY.match(str(key)) for key in rows[0])
    if tag != "dec" and not has_dec:
        return tag

    for row in rows:
        for horizon in horizons:
            value = to_finite(row.get(f"pred_dec_{horizon}"))
            if value is not None:
                row[f"pred_bps_{horizon}"] = value * DEC_TO_BPS
    return "bps"


def _copy_rows(rows: Sequence[Any]) -> list[dict[str, Any]]:
    return [dict(row) for row in rows if isinstance(row, Mapping)]


def _admit(rows: Sequence[dict[str, Any]]) -> list[StreamRow]:
    admitted = []
    for fields in rows:
        epoch_ms = row_epoch_ms(fields)
        if epoch_ms is None:
            continue
        admitted.append(StreamRow.from_fields(epoch_ms, fields))
    return admitted


class MergeEngine:
    """Applies full and delta payloads to a set of stores and their cursors."""

    def __init__(self, stores: Mapping[StreamKind, StreamStore], cursors: CursorRegistry) -> None:
        self.stores = stores
        self.cursors = cursors

    def ingest_full(
        self,
        kind: StreamKind,
        rows: Sequence[Any],
        horizons: Optional[Sequence[int]] = None,
        unit: Optional[str] = None,
    ) -> int:
        """Replace the store for ``kind``; returns the number of rows retained."""
        store = self.stores[kind]
        rows = list(rows or [])

        if not rows:
            store.clear()
            logger.info("ingest_full(%s): empty", kind.value)
            return 0

        copies = _copy_rows(rows)
        if kind.is_prediction:
            known = list(horizons) if horizons else infer_horizons(rows)
            store.unit = derive_bps(copies, known, unit)
            store.horizons = sorted(set(known))
        store.replace(_admit(copies))

        # the cursor follows the last row as delivered, not the largest key
        last_ms = row_epoch_ms(rows[-1])
        self.cursors.advance(kind, last_ms)

        logger.info(
            "ingest_full(%s): rows=%d horizons=%s unit=%s cursor=%d",
            kind.value,
            len(store),
            store.horizons,
            store.unit or "?",
            self.cursors[kind],
        )
        return len(store)

    def ingest_delta(
        self,
        kind: StreamKind,
        rows: Sequence[Any],
        payload_max_ms: Optional[float] = None,
        horizons: Optional[Sequence[int]] = None,
        unit: Optional[str] = None,
    ) -> int:
        """Upsert a delta batch; returns the number of rows admitted."""
        store = self.stores[kind]
        rows = list(rows or [])
        payload_max = to_finite(payload_max_ms)
        has_payload_max = payload_max is not None and payload_max > 0

        if not rows:
            if has_payload_max:
                self.cursors.advance(kind, payload_max)
            return 0

        copies = _copy_rows(rows)
        merged_horizons = store.horizons
        derived_unit = store.unit
        if kind.is_prediction:
            batch_horizons = list(horizons) if horizons else infer_horizons(rows)
            merged_horizons = sorted(set(store.horizons) | set(batch_horizons))
            derived_unit = derive_bps(copies, merged_horizons, unit or store.unit)

        admitted = _admit(copies)
        if not admitted:
            if has_payload_max:
                self.cursors.advance(kind, payload_max)
            return 0

        local_max = max(row.epoch_ms for row in admitted)
        store.upsert(admitted)
        if kind.is_prediction:
            store.horizons = merged_horizons
            store.unit = derived_unit or store.unit

        new_cursor = payload_max if has_payload_max else max(local_max, store.last_ms)
        self.cursors.advance(kind, new_cursor)
        return len(admitted)

    def apply(self, kind: StreamKind, payload: FeedPayload, delta: bool) -> int:
        """Route a parsed payload to the full or delta path."""
        if delta:
            return self.ingest_delta(
                kind,
                payload.rows,
                payload_max_ms=payload.max_epoch_ms,
                horizons=payload.horizons,
                unit=payload.unit,
            )
        return self.ingest_full(kind, payload.rows, horizons=payload.horizons, unit=payload.unit)
