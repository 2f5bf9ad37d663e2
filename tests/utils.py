"""Test utilities for pagesift tests.

This module provides an in-memory BrowserSession (FakeSession), a session
factory that records what it opened (FakeBrowser), and sinks that collect
what the driver hands them.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pagesift.common.exceptions import (
    CollectorClosedException,
    ElementException,
    PageException,
    SessionUnavailableException,
    SinkException,
)
from tests.mock_server import PIXEL_PNG_BASE64


def png_data_url(payload: str = PIXEL_PNG_BASE64) -> str:
    return f"data:image/png;base64,{payload}"


def jpeg_data_url(payload: str = "/9j/4AAQSkZJRg==") -> str:
    return f"data:image/jpeg;base64,{payload}"


@dataclass
class FakeElement:
    """One DOM element.

    ``size`` may be an exception instance, which read_rendered_size raises.
    """

    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    size: tuple[int, int] | Exception = (0, 0)


@dataclass
class FakePage:
    """Content of one page.

    Attributes:
        title: Page title, or None to make the title read fail.
        elements: Elements in DOM order.
        navigation_error: Raised by navigate() when set.
    """

    title: str | None = ""
    elements: list[FakeElement] = field(default_factory=list)
    navigation_error: Exception | None = None


class FakeSession:
    """In-memory BrowserSession over a fixed set of pages."""

    def __init__(
        self,
        pages: dict[str, FakePage],
        resources: dict[str, str],
        delay: float = 0,
    ) -> None:
        self.pages = pages
        self.resources = resources
        self.delay = delay
        self.current: FakePage | None = None
        self.visited: list[str] = []
        self.fetched: list[str] = []
        self.close_calls = 0

    async def navigate(self, url: str) -> None:
        await asyncio.sleep(self.delay)
        page = self.pages.get(url)
        if page is None:
            raise PageException("Navigation failed: 404", url)
        if page.navigation_error is not None:
            raise page.navigation_error
        self.current = page
        self.visited.append(url)

    async def page_title(self, fallback: str) -> str:
        if self.current is None or self.current.title is None:
            return fallback
        return self.current.title

    async def find_by_tag(self, tag_name: str) -> list[FakeElement]:
        if self.current is None:
            return []
        return [e for e in self.current.elements if e.tag == tag_name]

    async def get_attribute(self, element: FakeElement, name: str) -> str | None:
        return element.attributes.get(name)

    async def read_rendered_size(self, element: FakeElement) -> tuple[int, int]:
        if isinstance(element.size, Exception):
            raise element.size
        return element.size

    async def fetch_as_data_url(self, resource_url: str) -> str:
        self.fetched.append(resource_url)
        if resource_url not in self.resources:
            raise ElementException("In-page fetch failed", resource_url)
        return self.resources[resource_url]

    async def close(self) -> None:
        self.close_calls += 1


class FakeBrowser:
    """Session factory handing out FakeSessions and remembering them.

    Args:
        pages: Pages shared by every session.
        resources: Resource URL to data URL, for fetch_as_data_url().
        fail_opens: Number of initial open() calls that fail.
        delay: Seconds each navigation takes.
    """

    def __init__(
        self,
        pages: dict[str, FakePage],
        resources: dict[str, str] | None = None,
        fail_opens: int = 0,
        delay: float = 0,
    ) -> None:
        self.pages = pages
        self.resources = resources or {}
        self.fail_opens = fail_opens
        self.delay = delay
        self.sessions: list[FakeSession] = []
        self.open_attempts = 0

    async def __call__(self) -> FakeSession:
        self.open_attempts += 1
        if self.open_attempts <= self.fail_opens:
            raise SessionUnavailableException("Browser failed to start")
        session = FakeSession(self.pages, self.resources, self.delay)
        self.sessions.append(session)
        return session


class CollectingSink:
    """Sink that keeps every item it is given.

    Args:
        fail_when: Items for which this returns True raise SinkException.
        delay: Seconds spent on each item, to simulate a slow collector.
    """

    def __init__(
        self,
        fail_when: Callable[[Any], bool] | None = None,
        delay: float = 0,
    ) -> None:
        self.items: list[Any] = []
        self.fail_when = fail_when
        self.delay = delay
        self.closed = False

    async def __call__(self, item: Any) -> None:
        await asyncio.sleep(self.delay)
        if self.fail_when and self.fail_when(item):
            raise SinkException("Refusing item", context={"item": item})
        self.items.append(item)

    def close(self) -> None:
        self.closed = True


class RecordingSender:
    """Stand-in for a channel Sender that records what is sent."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.items: list[Any] = []
        self.fail_after = fail_after

    async def send(self, item: Any) -> None:
        if self.fail_after is not None and len(self.items) >= self.fail_after:
            raise CollectorClosedException()
        self.items.append(item)
