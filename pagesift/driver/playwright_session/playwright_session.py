"""Playwright implementation of the BrowserSession boundary.

Each PlaywrightSession owns a whole backend: its own Playwright instance,
browser process, context and page. Workers never share one, so a crashed or
slow browser only affects the worker that opened it.

Backend quirks are normalized here:
- Playwright errors become PageException / ElementException /
  SessionUnavailableException.
- The rendered size probe returns a plain ``(width, height)`` or raises;
  callers never see raw script results.
- Resource bytes are fetched by the page itself (``fetch`` + ``FileReader``)
  so the page's cookies and origin apply.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from functools import partial
from typing import Any

from playwright.async_api import (
    ElementHandle,
    Page,
    async_playwright,
)
from playwright.async_api import (
    Error as PlaywrightError,
)
from playwright.async_api import (
    TimeoutError as PlaywrightTimeoutError,
)

from pagesift.common.exceptions import (
    ElementException,
    PageException,
    SessionUnavailableException,
)
from pagesift.data_types import SessionConfig
from pagesift.driver.session import SessionFactory

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    # Small /dev/shm in containers crashes Chromium.
    "--disable-dev-shm-usage",
]

DISABLE_WEB_SECURITY_ARGS = [
    "--disable-web-security",
    "--disable-site-isolation-trials",
]

FETCH_AS_DATA_URL_JS = """
async (src) => {
    const response = await fetch(src);
    const blob = await response.blob();
    return await new Promise((resolve, reject) => {
        const reader = new FileReader();
        reader.onload = () => resolve(reader.result);
        reader.onerror = () => reject(reader.error);
        reader.readAsDataURL(blob);
    });
}
"""

RENDERED_SIZE_JS = "(element) => [element.width, element.height]"


def _as_dimension(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class PlaywrightSession:
    """A BrowserSession backed by one Playwright browser.

    Use PlaywrightSession.open() (or playwright_session_factory()) rather
    than the constructor.

    Example:
        session = await PlaywrightSession.open(SessionConfig(headless=True))
        try:
            await session.navigate("https://example.com")
            images = await session.find_by_tag("img")
        finally:
            await session.close()
    """

    def __init__(
        self, page: Page, resources: AsyncExitStack, config: SessionConfig
    ) -> None:
        self._page = page
        self._resources = resources
        self.config = config
        self._closed = False

    @classmethod
    async def open(
        cls, config: SessionConfig | None = None
    ) -> PlaywrightSession:
        """Start Playwright, launch a browser and open one page.

        Args:
            config: Backend settings. Defaults to SessionConfig().

        Returns:
            The opened session.

        Raises:
            SessionUnavailableException: If any part of the backend fails to
                start. Whatever did start is shut down again.
        """
        config = config or SessionConfig()
        stack = AsyncExitStack()
        try:
            playwright = await async_playwright().start()
            stack.push_async_callback(playwright.stop)

            args: list[str] = []
            if config.browser_type == "chromium":
                args.extend(CHROMIUM_ARGS)
                if config.disable_web_security:
                    args.extend(DISABLE_WEB_SECURITY_ARGS)

            browser_launcher = getattr(playwright, config.browser_type)
            browser = await browser_launcher.launch(
                headless=config.headless, args=args
            )
            stack.push_async_callback(browser.close)

            context_kwargs: dict[str, Any] = {"viewport": config.viewport}
            if config.user_agent:
                context_kwargs["user_agent"] = config.user_agent
            if config.disable_web_security:
                context_kwargs["bypass_csp"] = True
            context = await browser.new_context(**context_kwargs)
            stack.push_async_callback(context.close)

            page = await context.new_page()
            page.set_default_timeout(config.navigation_timeout_ms)
            page.set_default_navigation_timeout(config.navigation_timeout_ms)
        except (PlaywrightError, OSError) as e:
            await stack.aclose()
            raise SessionUnavailableException(
                f"Could not start {config.browser_type} session: {e}",
                context={"headless": config.headless},
            ) from e

        logger.debug(f"Opened {config.browser_type} session")
        return cls(page, stack, config)

    async def navigate(self, url: str) -> None:
        try:
            await self._page.goto(url, wait_until="load")
        except PlaywrightTimeoutError as e:
            raise PageException(
                "Navigation timed out",
                url,
                {"timeout_ms": self.config.navigation_timeout_ms},
            ) from e
        except PlaywrightError as e:
            raise PageException(f"Navigation failed: {e.message}", url) from e

    async def page_title(self, fallback: str) -> str:
        try:
            return await self._page.title()
        except PlaywrightError as e:
            logger.debug(f"Could not read title, using {fallback}: {e}")
            return fallback

    async def find_by_tag(self, tag_name: str) -> list[ElementHandle]:
        try:
            return await self._page.query_selector_all(tag_name)
        except PlaywrightError as e:
            raise PageException(
                f"Element query failed: {e.message}",
                self._page.url,
                {"tag": tag_name},
            ) from e

    async def get_attribute(
        self, element: ElementHandle, name: str
    ) -> str | None:
        try:
            return await element.get_attribute(name)
        except PlaywrightError as e:
            raise ElementException(
                f"Could not read attribute: {e.message}",
                self._page.url,
                {"attribute": name},
            ) from e

    async def read_rendered_size(
        self, element: ElementHandle
    ) -> tuple[int, int]:
        try:
            value = await element.evaluate(RENDERED_SIZE_JS)
        except PlaywrightError as e:
            raise ElementException(
                f"Could not read rendered size: {e.message}", self._page.url
            ) from e

        if isinstance(value, list) and len(value) == 2:
            width, height = (_as_dimension(v) for v in value)
            if width is not None and height is not None:
                return width, height

        raise ElementException(
            "Unexpected rendered size value",
            self._page.url,
            {"value": value},
        )

    async def fetch_as_data_url(self, resource_url: str) -> str:
        try:
            result = await self._page.evaluate(
                FETCH_AS_DATA_URL_JS, resource_url
            )
        except PlaywrightError as e:
            raise ElementException(
                f"In-page fetch failed: {e.message}", resource_url
            ) from e

        if not isinstance(result, str):
            raise ElementException(
                "In-page fetch returned no data URL",
                resource_url,
                {"result_type": type(result).__name__},
            )
        return result

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._resources.aclose()
        except PlaywrightError as e:
            logger.warning(f"Error while closing browser session: {e}")


def playwright_session_factory(
    config: SessionConfig | None = None,
) -> SessionFactory:
    """Return a factory that opens a new PlaywrightSession per call."""
    return partial(PlaywrightSession.open, config)
