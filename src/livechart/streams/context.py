import logging
from typing import Optional

import polars as pl

from livechart.config.configurations import DEFAULT_VIEW_SPAN, MAX_ROWS_PER_STREAM
from livechart.config.enumerations import StreamKind
from livechart.streams.cursors import CursorRegistry
from livechart.streams.merge import MergeEngine
from livechart.streams.models import FeedPayload, StreamRow
from livechart.streams.store import StreamStore, make_stores
from livechart.streams.timeline import Timeline, build_timeline
from livechart.views.controller import ViewController
from livechart.views.horizons import HorizonSelection
from livechart.views.series import build_series_frame

logger = logging.getLogger(__name__)


class FeedContext:
    """All live state for one tracked symbol.

    Stores and cursors are written only through :attr:`merge`; views and the
    horizon selection belong to the interaction layer. A change of symbol goes
    through :meth:`reset`, which wipes everything at once.
    """

    def __init__(
        self,
        symbol: str,
        capacity: int = MAX_ROWS_PER_STREAM,
        view_span: int = DEFAULT_VIEW_SPAN,
    ) -> None:
        self.symbol = symbol
        self.capacity = capacity
        self.stores: dict[StreamKind, StreamStore] = make_stores(capacity)
        self.cursors = CursorRegistry()
        self.merge = MergeEngine(self.stores, self.cursors)
        self.views = ViewController(view_span=view_span)
        self.horizons = HorizonSelection()

    def __getitem__(self, kind: StreamKind) -> StreamStore:
        return self.stores[kind]

    def timeline(self) -> Timeline:
        return build_timeline(self.stores)

    def row_at(self, kind: StreamKind, epoch_ms: int) -> Optional[StreamRow]:
        return self.stores[kind].get(epoch_ms)

    def since(self, kind: StreamKind) -> int:
        """Bounded ``since`` for the next delta request of ``kind``."""
        return self.cursors.clamp_since(kind, self.cursors[kind], self.stores[kind].last_ms)

    def ingest(self, kind: StreamKind, payload: FeedPayload, delta: bool) -> int:
        added = self.merge.apply(kind, payload, delta)
        if kind.is_prediction:
            self.horizons.ensure_defaults(kind, self.stores[kind].horizons)
        return added

    def on_data(self) -> bool:
        """Hook for the scheduler after new rows land; returns the follow state."""
        return self.views.follow_right_if_allowed(self.timeline().n)

    def series_frame(self, i0: int = 0, i1: Optional[int] = None, fill_forward: bool = False) -> pl.DataFrame:
        return build_series_frame(
            self.timeline(),
            self.stores,
            i0,
            i1,
            hft_horizons=self.horizons[StreamKind.HFT],
            idt_horizons=self.horizons[StreamKind.IDT],
            fill_forward=fill_forward,
        )

    def reset(self, symbol: Optional[str] = None) -> None:
        """Wipe stores, cursors, views and selections, optionally switching symbol."""
        if symbol:
            self.symbol = symbol
        for store in self.stores.values():
            store.clear()
        self.cursors.reset()
        self.views.reset()
        self.horizons.clear()
        logger.info("Context reset for %s", self.symbol)
