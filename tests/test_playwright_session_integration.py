"""Integration tests for PlaywrightSession against a local gallery site.

These tests launch a real headless Chromium and skip when none is installed
(``playwright install chromium``).
"""

import base64
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from pagesift.common.data_url import parse_data_url
from pagesift.common.exceptions import (
    ElementException,
    PageException,
    SessionUnavailableException,
)
from pagesift.data_types import (
    ImageFilter,
    ScrapeStrategy,
    SessionConfig,
    UrlFilter,
)
from pagesift.driver.async_driver import AsyncDriver
from pagesift.driver.playwright_session import (
    PlaywrightSession,
    playwright_session_factory,
)
from tests.mock_server import PIXEL_PNG
from tests.utils import CollectingSink

SESSION_CONFIG = SessionConfig(headless=True, navigation_timeout_ms=10_000)


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[PlaywrightSession, None]:
    """Open a headless Chromium session, or skip if none can start."""
    try:
        opened = await PlaywrightSession.open(SESSION_CONFIG)
    except SessionUnavailableException as e:
        pytest.skip(f"Chromium unavailable: {e.message}")
    try:
        yield opened
    finally:
        await opened.close()


class TestPlaywrightSession:
    """Tests for the BrowserSession operations on a real page."""

    @pytest.mark.asyncio
    async def test_reads_title_and_elements(
        self, session: PlaywrightSession, server_url: str
    ) -> None:
        """The session shall expose the page title and elements in DOM order."""
        await session.navigate(f"{server_url}/gallery")

        assert await session.page_title(fallback="x") == "Gallery"
        images = await session.find_by_tag("img")
        assert [await session.get_attribute(i, "alt") for i in images] == [
            "large",
            "icon",
        ]
        assert await session.get_attribute(images[0], "missing") is None

    @pytest.mark.asyncio
    async def test_rendered_size(
        self, session: PlaywrightSession, server_url: str
    ) -> None:
        """The size probe shall report the rendered dimensions."""
        await session.navigate(f"{server_url}/gallery")
        large, icon = await session.find_by_tag("img")

        assert await session.read_rendered_size(large) == (400, 320)
        assert await session.read_rendered_size(icon) == (16, 16)

    @pytest.mark.asyncio
    async def test_size_of_non_image_is_element_error(
        self, session: PlaywrightSession, server_url: str
    ) -> None:
        """Elements without a numeric width and height shall raise."""
        await session.navigate(f"{server_url}/gallery")
        [link, *_] = await session.find_by_tag("a")

        with pytest.raises(ElementException):
            await session.read_rendered_size(link)

    @pytest.mark.asyncio
    async def test_fetch_as_data_url(
        self, session: PlaywrightSession, server_url: str
    ) -> None:
        """Resources shall be fetched in-page and returned as data URLs."""
        await session.navigate(f"{server_url}/gallery")

        parsed = parse_data_url(await session.fetch_as_data_url("/pixel.png"))

        assert parsed is not None
        assert parsed.media_type == "image/png"
        assert parsed.is_base64
        assert base64.b64decode(parsed.data) == PIXEL_PNG

    @pytest.mark.asyncio
    async def test_navigation_failure_is_page_error(
        self, session: PlaywrightSession
    ) -> None:
        """An unreachable page shall raise PageException."""
        with pytest.raises(PageException):
            await session.navigate("http://127.0.0.1:1/unreachable")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, session: PlaywrightSession) -> None:
        """Closing twice shall not raise."""
        await session.close()
        await session.close()


class TestPlaywrightRun:
    """End-to-end runs with real browsers."""

    @pytest.mark.asyncio
    async def test_image_run(
        self,
        session: PlaywrightSession,
        server_url: str,
        tmp_path: Path,
    ) -> None:
        """Only the large PNG on the gallery page shall be saved."""
        driver = AsyncDriver.for_images(
            [f"{server_url}/gallery", f"{server_url}/empty"],
            ScrapeStrategy(worker_count=2, destination=str(tmp_path)),
            ImageFilter(min_width=100, min_height=100, allowed_encodings=["png"]),
            session_config=SESSION_CONFIG,
        )

        summary = await driver.run()

        assert summary.workers_failed == 0
        [saved] = list((tmp_path / "Gallery").iterdir())
        assert saved.suffix == ".png"
        assert saved.read_bytes() == PIXEL_PNG

    @pytest.mark.asyncio
    async def test_url_run(
        self, session: PlaywrightSession, server_url: str
    ) -> None:
        """Links shall be normalized and deduplicated within the worker."""
        sink = CollectingSink()
        driver = AsyncDriver.for_urls(
            [f"{server_url}/gallery", f"{server_url}/empty"],
            ScrapeStrategy(worker_count=1, destination=""),
            UrlFilter(),
            open_session=playwright_session_factory(SESSION_CONFIG),
        )
        driver.sink = sink

        await driver.run()

        assert sink.items == [
            f"{server_url}/about",
            f"{server_url}/contact.html",
            "https://example.com/outside",
        ]
