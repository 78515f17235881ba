import logging
from typing import Optional

import aiohttp

from livechart.common.exceptions import (
    FeedBadRequestError,
    FeedHTTPError,
    FeedServerError,
    FeedUnauthorizedError,
    FeedUnknownError,
)

logger = logging.getLogger(__name__)

JSON_EXCERPT_CHARS = 500
TEXT_EXCERPT_CHARS = 300
HTML_ERROR_HINT = "(HTML error page from upstream; check the feed server logs)"

ERROR_MAP: dict[int, type[FeedHTTPError]] = {
    400: FeedBadRequestError,
    401: FeedUnauthorizedError,
    403: FeedUnauthorizedError,
    404: FeedBadRequestError,
    429: FeedServerError,  # Rate limiting
    500: FeedServerError,
    502: FeedServerError,
    503: FeedServerError,
    504: FeedServerError,
}


def body_hint(content_type: Optional[str], body: str) -> str:
    """Condense an error body into a short diagnostic string.

    JSON bodies keep their first 500 characters, HTML error pages are replaced
    by a fixed hint, and anything else keeps its first 300 characters.
    """
    ctype = content_type.lower() if isinstance(content_type, str) else ""
    if "application/json" in ctype:
        return body[:JSON_EXCERPT_CHARS]
    if "text/html" in ctype:
        return HTML_ERROR_HINT
    return body[:TEXT_EXCERPT_CHARS]


async def validate_async_response(
    response: aiohttp.ClientResponse, url: Optional[str] = None
) -> bool:
    """Validate a feed response.

    Args:
        response: The aiohttp response object
        url: Request URL, carried on the raised error for diagnostics

    Raises:
        FeedHTTPError subclass for any non-2xx status
    """
    if response.status in range(200, 300):
        return True

    try:
        body = await response.text()
    except (aiohttp.ClientError, UnicodeDecodeError) as e:
        logger.debug("Could not read error body: %s", e)
        body = ""

    content_type = response.headers.get("content-type") if response.headers else None
    error_class = ERROR_MAP.get(response.status, FeedUnknownError)
    error = error_class(response, url)
    error._error_message = body_hint(content_type, body)

    logger.debug("Feed error: %s - %s", response.status, error._error_message)
    raise error
