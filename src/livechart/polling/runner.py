import asyncio
import logging
import time
from typing import Optional

from livechart.config.configurations import PollConfig
from livechart.config.settings import Settings
from livechart.connections.requests import AsyncFeedClient
from livechart.polling.scheduler import CycleReport, PollScheduler
from livechart.streams.context import FeedContext
from livechart.timing.epochs import datetime_label

logger = logging.getLogger(__name__)


def format_uptime(seconds: float) -> str:
    """Format seconds as ``1h 02m 03s``."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def poll_config_from(settings: Settings) -> PollConfig:
    return PollConfig(
        poll_ms=settings.poll_ms,
        use_delta=settings.use_delta,
        latest_rows=settings.latest_rows,
        snapshot_seconds=settings.snapshot_seconds,
    )


def context_from(settings: Settings) -> FeedContext:
    return FeedContext(settings.symbol, capacity=settings.capacity, view_span=settings.view_span)


def describe(context: FeedContext) -> str:
    """One-line status: timeline position, newest instant and rows per stream."""
    timeline = context.timeline()
    newest = timeline.at(timeline.n - 1) if timeline.n else None
    counts = " ".join(f"{kind.value}={len(store)}" for kind, store in context.stores.items())
    return (
        f"t = {context.views.index + 1 if timeline.n else 0} / {timeline.n} · "
        f"{datetime_label(newest)} UTC · {counts}"
    )


def log_cycle(context: FeedContext, report: CycleReport) -> None:
    failed = ", ".join(kind.value for kind in report.failed()) or "none"
    logger.info(
        "%s %s: added=%d failed=%s (%.0fms) · %s",
        report.mode.value,
        report.symbol,
        report.added,
        failed,
        report.duration * 1000,
        describe(context),
    )


async def fetch_once(settings: Settings) -> FeedContext:
    """Run a single bootstrap round and return the populated context."""
    context = context_from(settings)
    async with AsyncFeedClient(settings.base_url, timeout=settings.request_timeout) as client:
        scheduler = PollScheduler(context, client, poll_config_from(settings))
        report = await scheduler.bootstrap()
        log_cycle(context, report)
    return context


async def run_live(settings: Settings, duration: Optional[float] = None) -> FeedContext:
    """Poll until cancelled, or for ``duration`` seconds."""
    context = context_from(settings)
    started = time.monotonic()

    async with AsyncFeedClient(settings.base_url, timeout=settings.request_timeout) as client:
        scheduler = PollScheduler(
            context,
            client,
            poll_config_from(settings),
            on_update=lambda report: log_cycle(context, report),
        )
        try:
            await scheduler.start()
            if duration is not None:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            scheduler.stop()
            await scheduler.wait_idle()
            logger.info(
                "Stopped after %s, %d cycles · %s",
                format_uptime(time.monotonic() - started),
                scheduler.cycles,
                describe(context),
            )
    return context
