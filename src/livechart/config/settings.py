from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from livechart.config.configurations import (
    DEFAULT_POLL_MS,
    DEFAULT_VIEW_SPAN,
    LATEST_ROWS,
    MAX_ROWS_PER_STREAM,
    SNAPSHOT_SECONDS,
)

DEFAULT_BASE_URL = "http://localhost:5050"


def normalize_base_url(value: str) -> str:
    """Strip whitespace and trailing slashes so paths can be appended directly."""
    cleaned = (value or "").strip().rstrip("/")
    return cleaned or DEFAULT_BASE_URL


class Settings(BaseSettings):
    """Runtime settings, read from ``LIVECHART_*`` variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="LIVECHART_", env_file=".env", extra="ignore"
    )

    base_url: str = DEFAULT_BASE_URL
    symbol: str = "ES"
    poll_ms: int = DEFAULT_POLL_MS
    use_delta: bool = True
    latest_rows: int = Field(default=LATEST_ROWS, gt=0)
    snapshot_seconds: int = SNAPSHOT_SECONDS
    capacity: int = Field(default=MAX_ROWS_PER_STREAM, gt=0)
    view_span: int = DEFAULT_VIEW_SPAN
    request_timeout: float = 10.0
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        return normalize_base_url(value)

    @field_validator("symbol")
    @classmethod
    def _clean_symbol(cls, value: str) -> str:
        symbol = value.strip()
        if not symbol:
            raise ValueError("symbol cannot be empty")
        return symbol
