"""Extractor capability and the per-worker session lifecycle.

An extractor turns one batch of page URLs into scraped items pushed into the
result channel. Both extractors share the same lifecycle, provided here by
visit_pages():

1. Open one browser session for the whole batch (failure ends the worker).
2. For each URL, in order: navigate, then let the extractor read the page.
   A PageException skips to the next URL.
3. Close the session, whatever happened.

A CollectorClosedException (or anything unexpected) propagates out of
visit_pages() after the session is closed, ending the worker.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, TypeVar

from pagesift.common.channel import Sender
from pagesift.common.exceptions import PageException
from pagesift.driver.session import BrowserSession, SessionFactory

logger = logging.getLogger(__name__)

T_contra = TypeVar("T_contra", contravariant=True)

PageVisitor = Callable[[BrowserSession, str], Awaitable[None]]


class Extractor(Protocol[T_contra]):
    """Scrapes a batch of pages into a result channel."""

    async def run(
        self,
        open_session: SessionFactory,
        urls: Sequence[str],
        sender: Sender[T_contra],
    ) -> int:
        """Scrape ``urls`` in order, sending every kept item to ``sender``.

        Returns:
            Number of pages that loaded and were read.

        Raises:
            SessionUnavailableException: If no session could be opened.
            CollectorClosedException: If the collector stopped receiving.
        """
        ...


async def visit_pages(
    open_session: SessionFactory,
    urls: Sequence[str],
    visit: PageVisitor,
) -> int:
    """Navigate to each URL with one session and call ``visit`` on it.

    Args:
        open_session: Opens the session used for the whole batch.
        urls: Page URLs, visited in order.
        visit: Reads the loaded page. Receives the session and the URL.

    Returns:
        Number of pages that were visited without a PageException.
    """
    session = await open_session()
    visited = 0
    try:
        for url in urls:
            try:
                await session.navigate(url)
                await visit(session, url)
            except PageException as e:
                logger.warning(
                    f"Skipping page {url}: {e.message}",
                    extra={"url": url, **e.context},
                )
                continue
            visited += 1
    finally:
        await session.close()
    return visited
