"""Per-chart view window over the shared timeline.

A window is a pair of timeline indices ``[i0, i1]`` plus pointer state. It is
recomputed against the current timeline length on every use, since the
timeline grows while the window was computed against a shorter one.
"""

import logging
from dataclasses import dataclass

from livechart.config.configurations import (
    DEFAULT_VIEW_SPAN,
    MIN_VIEW_SPAN,
    ZOOM_IN_FACTOR,
    ZOOM_OUT_FACTOR,
)
from livechart.config.enumerations import InteractionState
from livechart.timing.epochs import round_half_up

logger = logging.getLogger(__name__)

NO_HOVER = -1


@dataclass
class PlotGeometry:
    """Horizontal layout of a chart canvas in pixels."""

    width: float
    pad_left: float = 56
    pad_right: float = 12

    @property
    def x0(self) -> float:
        return self.pad_left

    @property
    def x1(self) -> float:
        return self.width - self.pad_right

    def fraction(self, x: float) -> float:
        """Position of ``x`` across the plot area; not clamped."""
        return (x - self.x0) / max(1, self.x1 - self.x0)


@dataclass
class ViewWindow:
    i0: int = 0
    i1: int = 0
    dragging: bool = False
    drag_start_x: float = 0.0
    drag_start_i0: int = 0
    drag_start_i1: int = 0
    hover_index: int = NO_HOVER

    @property
    def span(self) -> int:
        return self.i1 - self.i0

    @property
    def state(self) -> InteractionState:
        if self.dragging:
            return InteractionState.DRAGGING
        if self.hover_index >= 0:
            return InteractionState.HOVERING
        return InteractionState.IDLE

    @property
    def is_initialized(self) -> bool:
        return not (self.i1 <= self.i0 or self.i1 <= 0)

    # --- Bounds ---

    def clamp(self, n: int, span_min: int = MIN_VIEW_SPAN) -> "ViewWindow":
        """Force the window into ``[0, n-1]`` with at least ``span_min`` indices.

        For ``n >= 2`` the result satisfies ``0 <= i0 < i1 <= n-1`` and
        ``i1 - i0 >= min(span_min, n-1)``; ``n == 1`` collapses to ``(0, 0)``.
        """
        max_i = max(0, n - 1)
        self.i0 = max(0, min(self.i0, max(0, max_i - span_min)))
        self.i1 = max(min(self.i1, max_i), self.i0 + min(span_min, max_i - self.i0))
        if self.i1 > max_i:
            self.i1 = max_i
        if self.i0 < 0:
            self.i0 = 0
        if self.i1 <= self.i0:
            self.i0 = 0
            self.i1 = max_i
        return self

    def snap_right(self, n: int, span: int = DEFAULT_VIEW_SPAN) -> None:
        """Anchor the window on the newest index."""
        if n <= 0:
            return
        self.i1 = n - 1
        self.i0 = max(0, self.i1 - max(MIN_VIEW_SPAN, span))

    def ensure_initialized(
        self, n: int, force_right: bool = False, span: int = DEFAULT_VIEW_SPAN
    ) -> None:
        if n <= 0:
            return
        if force_right or not self.is_initialized:
            self.snap_right(n, span)
        else:
            self.i0 = max(0, min(self.i0, n - 2))
            self.i1 = max(self.i0 + 1, min(self.i1, n - 1))

    # --- Hover ---

    def hover_at(self, x: float, geometry: PlotGeometry, n: int) -> int:
        """Set and return the timeline index under pixel ``x``."""
        if n <= 0:
            self.hover_index = NO_HOVER
            return self.hover_index
        frac = min(1.0, max(0.0, geometry.fraction(x)))
        idx = round_half_up(self.i0 + frac * (self.i1 - self.i0))
        self.hover_index = max(0, min(idx, n - 1))
        return self.hover_index

    def leave(self) -> None:
        self.hover_index = NO_HOVER

    # --- Pan ---

    def begin_drag(self, x: float) -> None:
        self.dragging = True
        self.drag_start_x = x
        self.drag_start_i0 = self.i0
        self.drag_start_i1 = self.i1

    def drag_to(self, x: float, width: float, n: int) -> None:
        """Translate the window by the pixel distance from the drag start."""
        if not self.dragging or n <= 0:
            return
        span = self.drag_start_i1 - self.drag_start_i0
        delta_idx = round_half_up(-(x - self.drag_start_x) * span / max(1, width))
        self.i0 = self.drag_start_i0 + delta_idx
        self.i1 = self.drag_start_i1 + delta_idx
        self.clamp(n)

    def end_drag(self) -> None:
        self.dragging = False

    def cancel(self) -> None:
        self.dragging = False
        self.hover_index = NO_HOVER

    # --- Zoom ---

    def zoom(
        self,
        x: float,
        geometry: PlotGeometry,
        delta_y: float,
        n: int,
        invert: bool = False,
    ) -> None:
        """Rescale the span about the index under the pointer.

        Negative ``delta_y`` zooms in unless ``invert`` is set.
        """
        if n <= 0:
            return
        focus_idx = round_half_up(self.i0 + geometry.fraction(x) * (self.i1 - self.i0))

        zoom_in = delta_y > 0 if invert else delta_y < 0
        factor = ZOOM_IN_FACTOR if zoom_in else ZOOM_OUT_FACTOR

        cur_span = max(MIN_VIEW_SPAN, self.i1 - self.i0)
        new_span = max(MIN_VIEW_SPAN, round_half_up(cur_span * factor))

        local_frac = (focus_idx - self.i0) / max(1, self.i1 - self.i0)
        self.i0 = round_half_up(focus_idx - local_frac * new_span)
        self.i1 = self.i0 + new_span
        self.clamp(n)
