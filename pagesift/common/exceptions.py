"""Exception types for scrape errors.

This module defines the exception hierarchy used between the browser
session boundary, the extractors and the driver. Each type maps to one
failure scope: a single element, a single page, a whole worker, or a
single collected item.
"""

from typing import Any


class ScrapeException(Exception):
    """Base class for scrape failures.

    Every failure carries the URL it happened on (the page being scraped or
    the resource being fetched) plus an optional context dict that is
    rendered into the message for diagnosis.
    """

    def __init__(
        self,
        message: str,
        url: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the failure.
            url: The URL being processed when the failure happened.
            context: Optional dict of additional context (tag, attribute, etc).
        """
        self.message = message
        self.url = url
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context.

        Returns:
            Formatted error message string.
        """
        parts = [self.message]
        if self.url:
            parts.append(f"URL: {self.url}")

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class SessionUnavailableException(ScrapeException):
    """Raised when a browser session cannot be opened.

    The backend process failed to start, the browser type is unknown, or the
    platform is unsupported. Fatal to the worker that tried to open it;
    sibling workers are unaffected.
    """


class PageException(ScrapeException):
    """Raised when a single page cannot be processed.

    Navigation failures and DOM query failures. The worker logs the page and
    moves on to the next URL of its batch.
    """


class ElementException(ScrapeException):
    """Raised when a single element cannot be processed.

    Unreadable rendered size, failed in-page fetch, or a result of an
    unexpected shape. The extractor skips the element.
    """


class CollectorClosedException(ScrapeException):
    """Raised when the receiving side of the result channel is gone.

    Fatal to the producing worker: it stops early, but still closes its
    browser session.
    """

    def __init__(self, url: str = "") -> None:
        super().__init__("Result collector is no longer receiving", url)


class SinkException(ScrapeException):
    """Raised when the collector fails to persist one item.

    The collector logs it and keeps draining the channel.
    """
