"""Browser session boundary used by the extractors.

Extractors only talk to a browser through this Protocol; the Playwright
implementation lives in ``pagesift.driver.playwright_session`` and tests use
an in-memory fake. Every operation may suspend the calling task. Backend
errors are translated at this boundary into the types in
``pagesift.common.exceptions``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, TypeAlias

# Backend-specific handle to one DOM element.
ElementRef: TypeAlias = Any


class BrowserSession(Protocol):
    """One live browser automation connection, driving one page.

    A session is opened by exactly one extractor, never shared, and closed
    exactly once when that extractor finishes (on success and failure).
    """

    async def navigate(self, url: str) -> None:
        """Load ``url``.

        Raises:
            PageException: If navigation fails or times out.
        """
        ...

    async def page_title(self, fallback: str) -> str:
        """Return the current page title, or ``fallback`` if it can't be read."""
        ...

    async def find_by_tag(self, tag_name: str) -> Sequence[ElementRef]:
        """Return all elements with ``tag_name`` in DOM order.

        Raises:
            PageException: If the DOM query fails.
        """
        ...

    async def get_attribute(self, element: ElementRef, name: str) -> str | None:
        """Return the attribute value, or None if absent.

        Raises:
            ElementException: If the element can no longer be read.
        """
        ...

    async def read_rendered_size(self, element: ElementRef) -> tuple[int, int]:
        """Return the element's rendered ``(width, height)``.

        Raises:
            ElementException: If the size can't be read or has an
                unexpected shape.
        """
        ...

    async def fetch_as_data_url(self, resource_url: str) -> str:
        """Fetch ``resource_url`` from inside the page as a data URL.

        The fetch runs in the page so it reuses the page's cookies and
        origin.

        Raises:
            ElementException: If the fetch fails or returns no string.
        """
        ...

    async def close(self) -> None:
        """Release the session. Safe to call more than once."""
        ...


SessionFactory: TypeAlias = Callable[[], Awaitable[BrowserSession]]
"""Opens a fresh BrowserSession; raises SessionUnavailableException."""
