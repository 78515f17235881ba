"""Self-rescheduling poll loop.

One cycle fetches every stream once and merges the results. The next cycle is
armed only after the current one settles, so cycles never overlap regardless
of how slow the feed is. ``stop()`` cancels the pending timer immediately but
lets an in-flight cycle finish; that cycle sees the scheduler stopped and does
not re-arm.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

from livechart.common.exceptions import FeedError
from livechart.config.configurations import DEFAULT_POLL_MS, MIN_POLL_MS, PollConfig
from livechart.config.enumerations import ConnectionState, PollMode, SchedulerState, StreamKind
from livechart.streams.context import FeedContext
from livechart.streams.models import FeedPayload

logger = logging.getLogger(__name__)


class FeedSource(Protocol):
    async def fetch_latest(
        self, kind: StreamKind, symbol: str, n: int = ..., seconds: Any = ...
    ) -> FeedPayload: ...

    async def fetch_delta(self, kind: StreamKind, symbol: str, since_ms: Any) -> FeedPayload: ...


def effective_cadence(value: Any) -> int:
    """Poll interval in ms: floored at 250, 1000 when unparseable."""
    try:
        cadence = int(value)
    except (TypeError, ValueError):
        cadence = DEFAULT_POLL_MS
    return max(MIN_POLL_MS, cadence)


@dataclass
class StreamResult:
    kind: StreamKind
    ok: bool
    added: int = 0
    error: Optional[str] = None


@dataclass
class CycleReport:
    mode: PollMode
    symbol: str
    results: dict[StreamKind, StreamResult] = field(default_factory=dict)
    cursors_before: dict[StreamKind, int] = field(default_factory=dict)
    cursors_after: dict[StreamKind, int] = field(default_factory=dict)
    duration: float = 0.0
    stale: bool = False

    @property
    def ok(self) -> bool:
        return any(result.ok for result in self.results.values())

    @property
    def added(self) -> int:
        return sum(result.added for result in self.results.values())

    @property
    def added_any(self) -> bool:
        return self.added > 0

    def failed(self) -> list[StreamKind]:
        return [kind for kind, result in self.results.items() if not result.ok]


UpdateCallback = Callable[[CycleReport], Optional[Awaitable[None]]]


def _fmt_cursors(cursors: dict[StreamKind, int]) -> str:
    return ",".join(str(value) for value in cursors.values())


class PollScheduler:
    """Drives bootstrap and the recurring delta (or full) poll for one context."""

    def __init__(
        self,
        context: FeedContext,
        client: FeedSource,
        config: Optional[PollConfig] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> None:
        self.context = context
        self.client = client
        self.config = config or PollConfig()
        self.on_update = on_update

        self.poll_ms = effective_cadence(self.config.poll_ms)
        self.running = False
        self.in_flight = False
        self.connection_state = ConnectionState.OFFLINE
        self.last_report: Optional[CycleReport] = None
        self.cycles = 0

        self._handle: Optional[asyncio.TimerHandle] = None
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> SchedulerState:
        if not self.running:
            return SchedulerState.STOPPED
        return SchedulerState.FETCHING if self.in_flight else SchedulerState.IDLE

    @property
    def mode(self) -> PollMode:
        return PollMode.DELTA if self.config.use_delta else PollMode.FULL

    # --- Public API ---

    async def start(self) -> None:
        """Bootstrap every stream with a full fetch, then arm the loop."""
        if self.running:
            return
        self.running = True
        self.in_flight = False
        self._generation += 1
        generation = self._generation

        self.context.views.stop_playback()
        self.context.views.auto_follow = True
        self.connection_state = ConnectionState.CONNECTING
        logger.info(
            "Live start for %s (delta=%s, cadence=%dms) -> bootstrap then loop",
            self.context.symbol,
            self.config.use_delta,
            self.poll_ms,
        )

        try:
            # a cycle from the previous start may still be settling
            await self.wait_idle()
            await self.bootstrap()
        finally:
            if self._is_current(generation):
                self._arm(0, generation)

    def stop(self) -> None:
        """Cancel the pending timer; an in-flight cycle finishes but never re-arms."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self.running:
            logger.info("Live stopped")
        self.running = False
        self.in_flight = False
        self.connection_state = ConnectionState.OFFLINE

    async def bootstrap(self) -> CycleReport:
        return await self.poll_once(PollMode.FULL)

    def set_cadence(self, poll_ms: Any) -> int:
        """Apply a new cadence; an idle running loop is re-armed immediately."""
        self.poll_ms = effective_cadence(poll_ms)
        logger.info("Poll cadence=%dms", self.poll_ms)
        if self.running and self._handle is not None:
            self._handle.cancel()
            self._arm(0, self._generation)
            logger.info("Loop rescheduled with new cadence")
        return self.poll_ms

    async def reset_symbol(self, symbol: str) -> None:
        """Stop, wipe all state for the new symbol and start again."""
        self.stop()
        self.context.reset(symbol)
        await self.start()

    async def wait_idle(self) -> None:
        """Wait for cycles already started to settle."""
        current = asyncio.current_task()
        while True:
            pending = [task for task in self._tasks if task is not current and not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # --- Cycle ---

    async def poll_once(self, mode: Optional[PollMode] = None) -> CycleReport:
        """Fetch and merge every stream once.

        Payloads that arrive after a restart or a change of symbol are
        dropped; the report is marked ``stale`` and nobody is notified.
        """
        mode = mode or self.mode
        delta = mode is PollMode.DELTA
        started = time.monotonic()
        symbol = self.context.symbol
        generation = self._generation
        streams = self.config.streams

        since = {kind: self.context.since(kind) for kind in streams} if delta else {}
        report = CycleReport(mode=mode, symbol=symbol, cursors_before=self.context.cursors.snapshot())

        if delta:
            logger.debug(
                "Delta poll: sym=%s since(%s)=%s",
                symbol,
                ",".join(kind.value for kind in streams),
                ",".join(str(since[kind]) for kind in streams),
            )
        else:
            logger.debug("Full poll: sym=%s", symbol)

        self.connection_state = ConnectionState.CONNECTING
        results = await asyncio.gather(
            *(self._poll_stream(kind, symbol, since.get(kind), generation) for kind in streams)
        )
        report.results = {result.kind: result for result in results}
        report.duration = time.monotonic() - started

        if not self._owns(generation, symbol):
            report.stale = True
            report.cursors_after = report.cursors_before
            logger.info("Discarded %s poll for %s after restart", mode.value, symbol)
            return report

        report.cursors_after = self.context.cursors.snapshot()
        self.connection_state = ConnectionState.LIVE if report.ok else ConnectionState.OFFLINE
        if report.cursors_before != report.cursors_after:
            logger.debug(
                "Cursor: BEFORE=%s AFTER=%s",
                _fmt_cursors(report.cursors_before),
                _fmt_cursors(report.cursors_after),
            )

        self.cycles += 1
        self.last_report = report

        if not delta or report.added_any:
            await self._notify(report)
        return report

    async def _poll_stream(
        self, kind: StreamKind, symbol: str, since: Optional[int], generation: int
    ) -> StreamResult:
        try:
            if since is None:
                payload = await self.client.fetch_latest(
                    kind, symbol, n=self.config.latest_rows, seconds=self.config.snapshot_seconds
                )
            else:
                payload = await self.client.fetch_delta(kind, symbol, since)
        except FeedError as e:
            logger.error("%s fetch failed: %s", kind.value, e)
            return StreamResult(kind=kind, ok=False, error=str(e))

        if not self._owns(generation, symbol):
            logger.debug("Dropping %s payload for %s", kind.value, symbol)
            return StreamResult(kind=kind, ok=True)

        added = self.context.ingest(kind, payload, delta=since is not None)
        return StreamResult(kind=kind, ok=True, added=added)

    async def _notify(self, report: CycleReport) -> None:
        self.context.on_data()
        if self.on_update is None:
            return
        result = self.on_update(report)
        if inspect.isawaitable(result):
            await result

    # --- Timer ---

    def _owns(self, generation: int, symbol: str) -> bool:
        """Whether results fetched under ``generation`` for ``symbol`` may still land."""
        return generation == self._generation and symbol == self.context.symbol

    def _is_current(self, generation: int) -> bool:
        return self.running and generation == self._generation

    def _arm(self, delay_ms: int, generation: int) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay_ms / 1000, self._fire, generation)

    def _fire(self, generation: int) -> None:
        self._handle = None
        if not self._is_current(generation) or self.in_flight:
            return
        task = asyncio.create_task(self._run_cycle(generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_cycle(self, generation: int) -> None:
        if not self._is_current(generation) or self.in_flight:
            return
        self.in_flight = True
        try:
            await self.poll_once()
        except Exception as e:
            logger.error("Poll cycle failed: %s", e)
        finally:
            if generation == self._generation:
                self.in_flight = False
            if self._is_current(generation):
                self._arm(self.poll_ms, generation)
