from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Mapping, Optional

from livechart.config.enumerations import StreamKind
from livechart.streams.models import StreamRow
from livechart.streams.store import StreamStore


@dataclass(frozen=True)
class Timeline:
    """Sorted distinct timestamps across all streams; the shared x-axis."""

    ms: list[int] = field(default_factory=list)

    @property
    def n(self) -> int:
        return len(self.ms)

    def __len__(self) -> int:
        return len(self.ms)

    def at(self, index: int) -> Optional[int]:
        if 0 <= index < len(self.ms):
            return self.ms[index]
        return None

    def index_of(self, epoch_ms: int) -> Optional[int]:
        pos = bisect_left(self.ms, epoch_ms)
        if pos < len(self.ms) and self.ms[pos] == epoch_ms:
            return pos
        return None

    def row_at(self, store: StreamStore, index: int) -> Optional[StreamRow]:
        """Row of ``store`` at timeline position ``index``; never interpolated."""
        epoch_ms = self.at(index)
        if epoch_ms is None:
            return None
        return store.get(epoch_ms)


def build_timeline(stores: Mapping[StreamKind, StreamStore]) -> Timeline:
    keys: set[int] = set()
    for store in stores.values():
        keys.update(store.index)
    return Timeline(ms=sorted(keys))
