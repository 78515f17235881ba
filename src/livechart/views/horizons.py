"""Selected prediction horizons per profile.

Horizons are milliseconds. The fast profile defaults to the single horizon
closest to 250 ms; the slow profile to the horizons closest to one hour,
thirty minutes and twenty minutes.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from livechart.config.configurations import DEFAULT_HFT_HORIZON_MS, DEFAULT_IDT_HORIZONS_MS
from livechart.config.enumerations import StreamKind
from livechart.timing.epochs import round_half_up

logger = logging.getLogger(__name__)


def closest(available: Sequence[int], target: int) -> int:
    return min(available, key=lambda h: (abs(h - target), h))


def horizon_label(kind: StreamKind, horizon: int) -> str:
    if kind is StreamKind.IDT:
        return f"{round_half_up(horizon / 1000)}s"
    return f"{horizon}ms"


@dataclass
class HorizonSelection:
    selected: dict[StreamKind, list[int]] = field(
        default_factory=lambda: {StreamKind.HFT: [], StreamKind.IDT: []}
    )

    def __getitem__(self, kind: StreamKind) -> list[int]:
        return self.selected.get(kind, [])

    def select(self, kind: StreamKind, horizons: Iterable[int], available: Sequence[int]) -> list[int]:
        """Replace the selection, keeping only horizons the stream publishes."""
        allowed = set(available)
        self.selected[kind] = sorted({h for h in horizons if h in allowed})
        return self.selected[kind]

    def clamp_to_available(self, kind: StreamKind, available: Sequence[int]) -> None:
        allowed = set(available)
        self.selected[kind] = [h for h in self.selected.get(kind, []) if h in allowed]

    def ensure_defaults(self, kind: StreamKind, available: Sequence[int]) -> list[int]:
        """Fill an empty selection with the profile defaults."""
        available = sorted(set(available))
        self.clamp_to_available(kind, available)
        if self.selected[kind] or not available:
            return self.selected[kind]

        if kind is StreamKind.HFT:
            picks = [closest(available, DEFAULT_HFT_HORIZON_MS)]
        else:
            picks = []
            for target in DEFAULT_IDT_HORIZONS_MS:
                pick = closest(available, target)
                if pick not in picks:
                    picks.append(pick)
        self.selected[kind] = picks
        logger.debug("Default %s horizons: %s", kind.value, self.selected[kind])
        return self.selected[kind]

    def labels(self, kind: StreamKind) -> list[str]:
        return [horizon_label(kind, h) for h in self[kind]]

    def clear(self) -> None:
        for kind in self.selected:
            self.selected[kind] = []
