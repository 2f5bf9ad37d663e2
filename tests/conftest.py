"""Shared fixtures for pagesift tests."""

import asyncio
import socket
import threading
from collections.abc import Generator
from contextlib import closing

import pytest
from aiohttp import web

from tests.mock_server import create_app
from tests.utils import FakeBrowser, FakeElement, FakePage, png_data_url

# =============================================================================
# In-memory browser fixtures
# =============================================================================


@pytest.fixture
def gallery_pages() -> dict[str, FakePage]:
    """Two pages: one with a qualifying PNG and links, one with only a link.

    Returns:
        Mapping of page URL to fake page content.
    """
    return {
        "https://a.test": FakePage(
            title="Page A",
            elements=[
                FakeElement("img", {"src": "/big.png"}, size=(640, 480)),
                FakeElement("img", {"src": "/small.png"}, size=(10, 10)),
                FakeElement("a", {"href": "/about"}),
                FakeElement("a", {"href": "https://x.test/a"}),
            ],
        ),
        "https://b.test": FakePage(
            title="Page B",
            elements=[
                FakeElement("a", {"href": "https://x.test/a"}),
            ],
        ),
    }


@pytest.fixture
def gallery_browser(gallery_pages: dict[str, FakePage]) -> FakeBrowser:
    """A fake browser over gallery_pages that can fetch both images.

    Returns:
        FakeBrowser usable as a SessionFactory.
    """
    return FakeBrowser(
        gallery_pages,
        resources={
            "/big.png": png_data_url(),
            "/small.png": png_data_url(),
        },
    )


# =============================================================================
# aiohttp test server fixtures
# =============================================================================


def find_free_port() -> int:
    """Find a free port on localhost.

    Returns:
        An available port number.
    """
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class AioHttpTestServer:
    """Wrapper to run aiohttp server in a background thread."""

    def __init__(self, app: web.Application, port: int) -> None:
        self.app = app
        self.port = port
        self.host = "127.0.0.1"
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: web.AppRunner | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()

    @property
    def url(self) -> str:
        """Get the base URL of the server."""
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        """Start the server in a background thread."""
        self._thread = threading.Thread(target=self._run_server, daemon=True)
        self._thread.start()
        if not self._started.wait(timeout=5.0):
            raise RuntimeError("Test server did not start")

    def _run_server(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        async def start() -> None:
            self._runner = web.AppRunner(self.app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.host, self.port)
            await site.start()

        self._loop.run_until_complete(start())
        self._started.set()
        self._loop.run_forever()

    def stop(self) -> None:
        """Stop the server and clean up resources."""
        if self._loop and self._runner:
            future = asyncio.run_coroutine_threadsafe(
                self._runner.cleanup(), self._loop
            )
            future.result(timeout=2.0)

        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread:
            self._thread.join(timeout=2.0)


@pytest.fixture
def gallery_server() -> Generator[AioHttpTestServer, None, None]:
    """Start an aiohttp server running the mock gallery site.

    Yields:
        AioHttpTestServer instance with the gallery app running.
    """
    server = AioHttpTestServer(create_app(), find_free_port())
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_url(gallery_server: AioHttpTestServer) -> str:
    """Get the base URL of the test server.

    Returns:
        The base URL string (e.g., "http://127.0.0.1:8080").
    """
    return gallery_server.url
