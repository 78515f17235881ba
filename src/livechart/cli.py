"""
Click CLI for the live chart feed.

``livechart run`` keeps the three streams synchronized and logs each cycle;
``livechart snapshot`` performs one bootstrap round and prints what it got.
"""

import asyncio
import logging
import sys
from typing import Any, Optional

import click
from pydantic import ValidationError

from livechart.common.logging import log_level_from_name, setup_logging
from livechart.config.configurations import MIN_POLL_MS
from livechart.config.settings import Settings
from livechart.polling.runner import fetch_once, run_live

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def validate_symbol(_ctx: click.Context, _param: click.Parameter, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    symbol = value.strip()
    if not symbol:
        raise click.BadParameter("Symbol cannot be empty")
    return symbol


def validate_poll_ms(_ctx: click.Context, _param: click.Parameter, value: Optional[int]) -> Optional[int]:
    if value is not None and value < MIN_POLL_MS:
        raise click.BadParameter(f"Poll interval must be at least {MIN_POLL_MS}ms")
    return value


def validate_log_level(_ctx: click.Context, _param: click.Parameter, value: str) -> str:
    value_upper = value.upper()
    if value_upper not in VALID_LOG_LEVELS:
        raise click.BadParameter(
            f"Invalid log level: '{value}'. Valid levels: {', '.join(VALID_LOG_LEVELS)}"
        )
    return value_upper


def build_settings(**overrides: Any) -> Settings:
    """Settings from the environment with CLI values taking precedence."""
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Settings(**values)
    except ValidationError as e:
        raise click.UsageError(str(e)) from None


@click.group()
@click.version_option(version="0.1.0", prog_name="livechart")
def cli() -> None:
    """Live prediction and order book feed synchronizer.

    \b
    Commands:
      run       Poll the feed continuously
      snapshot  Fetch one full round and print a summary
    """
    pass


@cli.command()
@click.option("--symbol", callback=validate_symbol, help="Instrument symbol (default from LIVECHART_SYMBOL)")
@click.option("--base-url", help="Feed base URL (default http://localhost:5050)")
@click.option("--poll-ms", type=int, callback=validate_poll_ms, help="Cadence in milliseconds, minimum 250")
@click.option("--delta/--full", "use_delta", default=None, help="Incremental or full polling")
@click.option("--duration", type=float, default=None, help="Stop after this many seconds")
@click.option("--log-level", default="INFO", callback=validate_log_level, help="DEBUG, INFO, WARNING or ERROR")
@click.option("--log-json", is_flag=True, default=False, help="Emit JSON log records")
def run(
    symbol: Optional[str],
    base_url: Optional[str],
    poll_ms: Optional[int],
    use_delta: Optional[bool],
    duration: Optional[float],
    log_level: str,
    log_json: bool,
) -> None:
    """Bootstrap every stream, then poll until interrupted.

    \b
    Example:
      livechart run --symbol ES --poll-ms 500
    """
    settings = build_settings(symbol=symbol, base_url=base_url, poll_ms=poll_ms, use_delta=use_delta)
    setup_logging(level=log_level_from_name(log_level), json_format=log_json or settings.log_json)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("Live chart feed - Starting")
    logger.info("  Symbol:    %s", settings.symbol)
    logger.info("  Base URL:  %s", settings.base_url)
    logger.info("  Cadence:   %sms (%s)", settings.poll_ms, "delta" if settings.use_delta else "full")
    logger.info("=" * 60)

    try:
        asyncio.run(run_live(settings, duration=duration))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal - shutting down")
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        sys.exit(1)


@cli.command()
@click.option("--symbol", callback=validate_symbol, help="Instrument symbol")
@click.option("--base-url", help="Feed base URL")
@click.option("--seconds", type=int, default=None, help="Snapshot lookback, clamped to 1..120")
@click.option("--log-level", default="WARNING", callback=validate_log_level)
def snapshot(symbol: Optional[str], base_url: Optional[str], seconds: Optional[int], log_level: str) -> None:
    """Fetch one full round for SYMBOL and print rows, cursors and horizons."""
    settings = build_settings(symbol=symbol, base_url=base_url, snapshot_seconds=seconds)
    setup_logging(level=log_level_from_name(log_level))

    context = asyncio.run(fetch_once(settings))
    for kind, store in context.stores.items():
        horizons = ",".join(str(h) for h in store.horizons) or "-"
        click.echo(
            f"{kind.value:<9} rows={len(store):<5} cursor={context.cursors[kind]} "
            f"unit={store.unit or '-'} horizons={horizons}"
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
