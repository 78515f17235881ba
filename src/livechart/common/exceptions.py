from abc import ABC
from typing import Optional

import aiohttp


class LivechartError(Exception, ABC):
    """Base exception for the live chart feed client."""


class FeedError(LivechartError, ABC):
    """Base exception for a failed feed fetch.

    Every subclass is handled the same way by the poll scheduler: the stream
    that raised it is skipped for the cycle and its store and cursor are left
    untouched.
    """

    def __init__(
        self,
        message: str,
        response: Optional[aiohttp.ClientResponse] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.response = response
        self.url = url
        self._error_message: Optional[str] = None

    @property
    def status(self) -> Optional[int]:
        return self.response.status if self.response is not None else None

    @property
    def detail(self) -> Optional[str]:
        """Diagnostic excerpt of the error body, shaped by its content type."""
        return self._error_message

    def __str__(self) -> str:
        base_message = super().__str__()
        if self.url:
            base_message = f"{base_message} [{self.url}]"
        if self.response is not None and self._error_message:
            return (
                f"{base_message} (Status: {self.response.status}, Message: {self._error_message})"
            )
        if self.response is not None:
            return f"{base_message} (Status: {self.response.status})"
        return base_message


class FeedHTTPError(FeedError):
    """Raised for any non-2xx response from the feed."""


class FeedBadRequestError(FeedHTTPError):
    """Raised on 400/404 responses."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, url: Optional[str] = None):
        super().__init__("Bad request - Please check symbol and query parameters", response, url)


class FeedUnauthorizedError(FeedHTTPError):
    """Raised on 401/403 responses."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, url: Optional[str] = None):
        super().__init__("Unauthorized - Feed rejected the request", response, url)


class FeedServerError(FeedHTTPError):
    """Raised on 429 and 5XX responses."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, url: Optional[str] = None):
        super().__init__("Server error - Feed upstream unavailable", response, url)


class FeedUnknownError(FeedHTTPError):
    """Raised for unexpected status codes."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, url: Optional[str] = None):
        super().__init__("An unexpected error occurred", response, url)


class FeedResponseParsingError(FeedError):
    """Raised when a 2xx body cannot be parsed into a feed payload."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, url: Optional[str] = None):
        super().__init__("Failed to parse feed payload", response, url)


class FeedConnectionError(FeedError):
    """Raised when the request never produced a response (DNS, refused, timeout)."""

    def __init__(self, original_exception: BaseException, url: Optional[str] = None):
        super().__init__(f"Connection failed: {original_exception!r}", None, url)
        self.original_exception = original_exception


__all__ = [
    "LivechartError",
    "FeedError",
    "FeedHTTPError",
    "FeedBadRequestError",
    "FeedUnauthorizedError",
    "FeedServerError",
    "FeedUnknownError",
    "FeedResponseParsingError",
    "FeedConnectionError",
]
