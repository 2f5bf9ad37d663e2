"""Link extraction from rendered pages."""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Sequence
from functools import partial
from urllib.parse import urljoin, urlsplit

from pagesift.common.channel import Sender
from pagesift.common.exceptions import ElementException
from pagesift.data_types import ScrapedUrl, UrlFilter
from pagesift.driver.session import BrowserSession, SessionFactory
from pagesift.extractors.base import visit_pages

logger = logging.getLogger(__name__)

ABSOLUTE_URL_RE = re.compile(r"^https?://[\w.-]+(?:\.[\w.-]+)+.*$")


def to_absolute(page_url: str, value: str) -> str | None:
    """Resolve a ``src``/``href`` value found on ``page_url``.

    Values that already look like ``http(s)://host.tld/...`` are kept as is.
    Root-relative values (``/path``) are resolved against the page origin;
    anything else is appended to the page's scheme and host. This is a
    best-effort join, not full RFC 3986 resolution: ``../`` and page-relative
    directories are not taken into account.

    Args:
        page_url: URL of the page the value was found on.
        value: Raw attribute value.

    Returns:
        The absolute URL, or None if ``page_url`` has no host.

    Example:
        >>> to_absolute("https://x.test/dir/page", "/a")
        'https://x.test/a'
        >>> to_absolute("https://x.test/dir/page", "b.html")
        'https://x.test/b.html'
        >>> to_absolute("https://x.test/", "https://y.test/c")
        'https://y.test/c'
    """
    if ABSOLUTE_URL_RE.match(value):
        return value

    parts = urlsplit(page_url)
    if not parts.hostname:
        return None
    if value.startswith("/"):
        return urljoin(page_url, value)
    return f"{parts.scheme}://{parts.netloc}/{value}"


class UrlExtractor:
    """Collects links from the tags allowed by a UrlFilter.

    Each extractor keeps its own ``seen`` table, so one worker never emits
    the same URL twice. Workers do not share it: the same link found by two
    workers is emitted by both.

    Example:
        extractor = UrlExtractor(UrlFilter().with_tag(SourceTag.IMG))
        async with channel.sender() as sender:
            await extractor.run(open_session, urls, sender)
    """

    def __init__(self, url_filter: UrlFilter | None = None) -> None:
        self.filter = url_filter or UrlFilter()
        self.seen: Counter[str] = Counter()

    @property
    def emitted(self) -> int:
        return len(self.seen)

    def is_valid(self, url: str) -> bool:
        return self.filter.matches(url) and url not in self.seen

    async def run(
        self,
        open_session: SessionFactory,
        urls: Sequence[str],
        sender: Sender[ScrapedUrl],
    ) -> int:
        return await visit_pages(
            open_session, urls, partial(self._scrape_page, sender=sender)
        )

    async def _scrape_page(
        self,
        session: BrowserSession,
        url: str,
        *,
        sender: Sender[ScrapedUrl],
    ) -> None:
        if not urlsplit(url).hostname:
            logger.warning(f"Page URL has no host, skipping: {url}")
            return

        for tag in self.filter.allowed_source_tags:
            for element in await session.find_by_tag(tag.value):
                try:
                    value = await session.get_attribute(
                        element, tag.source_attribute
                    )
                except ElementException as e:
                    logger.debug(
                        f"Skipping <{tag.value}> on {url}: {e.message}",
                        extra={"url": url, "tag": tag.value},
                    )
                    continue
                await self._accept(url, value, sender)

    async def _accept(
        self, page_url: str, value: str | None, sender: Sender[ScrapedUrl]
    ) -> None:
        if not value:
            return
        absolute = to_absolute(page_url, value.strip())
        if absolute is None or not self.is_valid(absolute):
            return
        self.seen[absolute] += 1
        await sender.send(absolute)
