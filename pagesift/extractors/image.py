"""Image extraction from rendered pages."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import partial

from pagesift.common.channel import Sender
from pagesift.common.data_url import parse_data_url
from pagesift.common.exceptions import ElementException
from pagesift.data_types import ImageFilter, ScrapedImage
from pagesift.driver.session import BrowserSession, ElementRef, SessionFactory
from pagesift.extractors.base import visit_pages

logger = logging.getLogger(__name__)


class ImageExtractor:
    """Collects ``img`` elements that pass an ImageFilter.

    For each image, in DOM order: check the rendered size, read ``src``,
    fetch the resource from inside the page as a data URL, and keep it if
    its media type is allowed. Any failure on one image skips that image.

    Example:
        extractor = ImageExtractor(ImageFilter(min_width=0, min_height=0))
        async with channel.sender() as sender:
            await extractor.run(open_session, urls, sender)
    """

    def __init__(self, image_filter: ImageFilter | None = None) -> None:
        self.filter = image_filter or ImageFilter()
        self.emitted = 0

    async def run(
        self,
        open_session: SessionFactory,
        urls: Sequence[str],
        sender: Sender[ScrapedImage],
    ) -> int:
        return await visit_pages(
            open_session, urls, partial(self._scrape_page, sender=sender)
        )

    async def _scrape_page(
        self,
        session: BrowserSession,
        url: str,
        *,
        sender: Sender[ScrapedImage],
    ) -> None:
        title = await session.page_title(fallback=url)
        for element in await session.find_by_tag("img"):
            try:
                image = await self._extract(session, element, title)
            except ElementException as e:
                logger.debug(
                    f"Skipping image on {url}: {e.message}",
                    extra={"url": url},
                )
                continue

            if image is not None:
                await sender.send(image)
                self.emitted += 1

    async def is_valid_size(
        self, session: BrowserSession, element: ElementRef
    ) -> bool:
        """Whether the element is rendered at least at the minimum size.

        An unreadable size counts as too small.
        """
        try:
            width, height = await session.read_rendered_size(element)
        except ElementException:
            return False
        return self.filter.accepts_size(width, height)

    async def _extract(
        self, session: BrowserSession, element: ElementRef, title: str
    ) -> ScrapedImage | None:
        if not await self.is_valid_size(session, element):
            return None

        src = await session.get_attribute(element, "src")
        if not src:
            return None

        data_url = parse_data_url(await session.fetch_as_data_url(src))
        if data_url is None or not data_url.is_base64:
            logger.debug(f"Not a base64 data URL for {src}")
            return None

        if not self.filter.accepts_media_type(data_url.media_type):
            return None

        return ScrapedImage(
            page_title=title,
            encoding=data_url.media_type,
            payload=data_url.data,
        )
