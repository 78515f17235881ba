import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from livechart.config.configurations import MAX_ROWS_PER_STREAM
from livechart.config.enumerations import StreamKind
from livechart.streams.models import StreamRow

logger = logging.getLogger(__name__)


@dataclass
class StreamStore:
    """Bounded, timestamp-keyed row set for one stream.

    ``rows`` (ascending by ``epoch_ms``) and ``index`` always hold the same
    keys; both are swapped in together by :meth:`replace`.
    """

    kind: StreamKind
    capacity: int = MAX_ROWS_PER_STREAM
    rows: list[StreamRow] = field(default_factory=list)
    index: dict[int, StreamRow] = field(default_factory=dict)
    horizons: list[int] = field(default_factory=list)
    unit: str = ""

    def __len__(self) -> int:
        return len(self.rows)

    def __contains__(self, epoch_ms: int) -> bool:
        return epoch_ms in self.index

    def get(self, epoch_ms: int) -> Optional[StreamRow]:
        return self.index.get(epoch_ms)

    @property
    def last_ms(self) -> int:
        """Timestamp of the newest retained row, 0 when empty."""
        return self.rows[-1].epoch_ms if self.rows else 0

    def replace(self, rows: Iterable[StreamRow]) -> None:
        """Swap in a new row set, keeping the newest ``capacity`` distinct keys.

        Later rows win for duplicate keys.
        """
        merged: dict[int, StreamRow] = {}
        for row in rows:
            merged[row.epoch_ms] = row
        keep = sorted(merged)[-self.capacity :] if merged else []
        self.rows = [merged[key] for key in keep]
        self.index = {row.epoch_ms: row for row in self.rows}

    def upsert(self, rows: Iterable[StreamRow]) -> None:
        """Overwrite-by-key merge followed by eviction of the oldest keys."""
        merged = dict(self.index)
        for row in rows:
            merged[row.epoch_ms] = row
        self.replace(merged[key] for key in sorted(merged))

    def clear(self) -> None:
        self.rows = []
        self.index = {}
        self.horizons = []
        self.unit = ""


def make_stores(capacity: int = MAX_ROWS_PER_STREAM) -> dict[StreamKind, StreamStore]:
    return {kind: StreamStore(kind=kind, capacity=capacity) for kind in StreamKind}
