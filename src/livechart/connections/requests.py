import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from livechart.common.exceptions import FeedConnectionError, FeedResponseParsingError
from livechart.config.configurations import (
    LATEST_ROWS,
    SNAPSHOT_SECONDS,
    SNAPSHOT_SECONDS_MAX,
    SNAPSHOT_SECONDS_MIN,
    STREAM_ENDPOINTS,
)
from livechart.config.enumerations import StreamKind
from livechart.config.settings import DEFAULT_BASE_URL, normalize_base_url
from livechart.streams.models import FeedPayload
from livechart.timing.epochs import to_finite
from livechart.utils.validators import validate_async_response

QueryParams = Optional[dict[str, Any]]

logger = logging.getLogger(__name__)


def clean_params(params: QueryParams) -> dict[str, str]:
    """Drop None and empty values; stringify the rest for the query string."""
    if not params:
        return {}
    return {key: str(value) for key, value in params.items() if value is not None and value != ""}


def clamp_snapshot_seconds(seconds: Any) -> int:
    number = to_finite(seconds)
    if not number:
        number = SNAPSHOT_SECONDS
    return int(max(SNAPSHOT_SECONDS_MIN, min(SNAPSHOT_SECONDS_MAX, number)))


def clamp_since_param(since_ms: Any) -> int:
    number = to_finite(since_ms)
    return max(0, int(number)) if number is not None else 0


class AsyncFeedClient:
    """aiohttp client for the prediction and snapshot endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url: str = normalize_base_url(base_url)
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._owns_session = session is None
        self.session: Optional[aiohttp.ClientSession] = session

    async def __aenter__(self) -> "AsyncFeedClient":
        self._ensure_session()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={"Accept": "application/json", "Cache-Control": "no-store"},
                timeout=self.timeout,
            )
            self._owns_session = True
        return self.session

    async def fetch_json(self, path: str, params: QueryParams = None) -> FeedPayload:
        """GET ``path`` and parse the body as a feed payload.

        Raises:
            FeedHTTPError: non-2xx status
            FeedResponseParsingError: 2xx with a body that is not a JSON object
            FeedConnectionError: no response at all
        """
        session = self._ensure_session()
        url = f"{self.base_url}{path}"
        query = clean_params(params)

        try:
            async with session.get(
                url, params=query, headers={"Cache-Control": "no-store"}
            ) as response:
                await validate_async_response(response, url)
                try:
                    body = await response.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError, UnicodeDecodeError) as e:
                    logger.error("Failed to parse JSON from %s: %s", url, e)
                    raise FeedResponseParsingError(response, url) from e
                if not isinstance(body, dict):
                    raise FeedResponseParsingError(response, url)
                try:
                    return FeedPayload.model_validate(body)
                except ValidationError as e:
                    logger.error("Unexpected payload shape from %s: %s", url, e)
                    raise FeedResponseParsingError(response, url) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FeedConnectionError(e, url) from e

    # --- Endpoints ---

    async def fetch_latest(
        self,
        kind: StreamKind,
        symbol: str,
        n: int = LATEST_ROWS,
        seconds: Any = SNAPSHOT_SECONDS,
    ) -> FeedPayload:
        """Full payload for one stream: ``/pred/latest`` or ``/snapshot``."""
        endpoint = STREAM_ENDPOINTS[kind]
        if kind is StreamKind.SNAPSHOT:
            params = {
                "symbol": symbol,
                "seconds": clamp_snapshot_seconds(seconds),
                "profile": endpoint.profile,
            }
        else:
            params = {"symbol": symbol, "profile": endpoint.profile, "n": n}
        return await self.fetch_json(endpoint.latest_path, params)

    async def fetch_delta(self, kind: StreamKind, symbol: str, since_ms: Any) -> FeedPayload:
        """Rows newer than ``since_ms``: ``/pred/delta`` or ``/snapshot/delta``."""
        endpoint = STREAM_ENDPOINTS[kind]
        params: dict[str, Any] = {"symbol": symbol, "since_ms": clamp_since_param(since_ms)}
        if kind.is_prediction:
            params["profile"] = endpoint.profile
        return await self.fetch_json(endpoint.delta_path, params)

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self.session is not None and self._owns_session and not self.session.closed:
            await self.session.close()
            logger.info("Feed session closed")
        self.session = None
