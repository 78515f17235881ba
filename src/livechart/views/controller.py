import asyncio
import logging
import time
from typing import Callable, Optional

from livechart.config.configurations import (
    DEFAULT_VIEW_SPAN,
    PLAYBACK_INTERVAL_SECONDS,
    WHEEL_THROTTLE_SECONDS,
)
from livechart.config.enumerations import ChartName
from livechart.views.window import PlotGeometry, ViewWindow

logger = logging.getLogger(__name__)

DEFAULT_GEOMETRY = {
    ChartName.PRICE: (56, 12),
    ChartName.PRED: (56, 12),
    ChartName.MICRO: (56, 12),
    ChartName.DEPTH: (56, 56),
}


class ViewController:
    """Owns the per-chart view windows, the shared auto-follow flag and the
    slider / playback index.

    Pointer handlers return True when the chart needs a redraw. Any manual
    wheel, drag, scrub or playback turns auto-follow off until :meth:`reset`.
    """

    def __init__(
        self,
        view_span: int = DEFAULT_VIEW_SPAN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.view_span = view_span
        self._clock = clock
        self.windows: dict[ChartName, ViewWindow] = {}
        self.auto_follow = True
        self.index = 0
        self.playing = False
        self.speed = 1
        self._last_wheel_at: dict[ChartName, float] = {}
        self.reset()

    def __getitem__(self, chart: ChartName) -> ViewWindow:
        return self.windows[chart]

    def geometry(self, chart: ChartName, width: float) -> PlotGeometry:
        pad_left, pad_right = DEFAULT_GEOMETRY[chart]
        return PlotGeometry(width=width, pad_left=pad_left, pad_right=pad_right)

    def reset(self) -> None:
        self.windows = {chart: ViewWindow() for chart in ChartName}
        self.auto_follow = True
        self.index = 0
        self.playing = False
        self._last_wheel_at.clear()

    # --- Data arrival ---

    def ensure_initialized(self, n: int, force_right: bool = False) -> None:
        for window in self.windows.values():
            window.ensure_initialized(n, force_right=force_right, span=self.view_span)

    def follow_right_if_allowed(self, n: int) -> bool:
        """Right-anchor every chart on new data unless the user took over."""
        if n <= 0:
            return False
        if self.auto_follow:
            self.index = n - 1
            self.ensure_initialized(n, force_right=True)
        else:
            self.ensure_initialized(n)
            self.clamp_index(n)
        return self.auto_follow

    def clamp_index(self, n: int) -> int:
        self.index = max(0, min(self.index, max(0, n - 1)))
        return self.index

    # --- Pointer input ---

    def wheel(
        self,
        chart: ChartName,
        x: float,
        width: float,
        delta_y: float,
        n: int,
        invert: bool = False,
    ) -> bool:
        self.auto_follow = False
        now = self._clock()
        last = self._last_wheel_at.get(chart)
        if last is not None and now - last < WHEEL_THROTTLE_SECONDS:
            return False
        self._last_wheel_at[chart] = now

        if n <= 0:
            return False
        self.ensure_initialized(n)

        window = self.windows[chart]
        geometry = self.geometry(chart, width)
        window.hover_at(x, geometry, n)
        window.zoom(x, geometry, delta_y, n, invert=invert)
        return True

    def pointer_down(self, chart: ChartName, x: float, n: int) -> bool:
        self.auto_follow = False
        if n <= 0:
            return False
        self.ensure_initialized(n)
        self.windows[chart].begin_drag(x)
        return True

    def pointer_move(self, chart: ChartName, x: float, width: float, n: int) -> bool:
        window = self.windows[chart]
        if not window.dragging:
            window.hover_at(x, self.geometry(chart, width), n)
            return True
        if n <= 0:
            return False
        window.drag_to(x, width, n)
        return True

    def pointer_up(self, chart: ChartName) -> bool:
        self.windows[chart].end_drag()
        return False

    def pointer_leave(self, chart: ChartName) -> bool:
        self.windows[chart].leave()
        return True

    def pointer_cancel(self, chart: ChartName) -> bool:
        self.windows[chart].cancel()
        return True

    # --- Slider and playback ---

    def scrub(self, index: int, n: int) -> int:
        self.auto_follow = False
        self.index = index
        return self.clamp_index(n)

    def start_playback(self, speed: int = 1) -> None:
        self.auto_follow = False
        self.speed = speed or 1
        self.playing = True
        logger.info("Playback start speed=%sx", self.speed)

    def stop_playback(self) -> None:
        if self.playing:
            logger.info("Playback stop at index=%d", self.index)
        self.playing = False

    def step_playback(self, n: int) -> bool:
        """Advance the index by one playback tick; stops at the newest index."""
        if not self.playing or n <= 0:
            return False
        self.index = min(n - 1, self.index + max(1, self.speed))
        if self.index >= n - 1:
            self.stop_playback()
        return True

    async def play(
        self,
        timeline_length: Callable[[], int],
        speed: int = 1,
        interval: float = PLAYBACK_INTERVAL_SECONDS,
        on_step: Optional[Callable[[int], None]] = None,
    ) -> None:
        """Drive :meth:`step_playback` on a fixed interval until it stops."""
        self.start_playback(speed)
        try:
            while self.playing:
                await asyncio.sleep(interval)
                if self.step_playback(timeline_length()) and on_step is not None:
                    on_step(self.index)
        finally:
            self.playing = False
