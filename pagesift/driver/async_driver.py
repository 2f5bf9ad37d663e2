"""Asynchronous worker pool with a fan-in collector.

The AsyncDriver splits the URL list into contiguous batches, one per worker,
and runs every worker as its own asyncio task. Each worker owns a fresh
extractor and browser session. All workers push into one bounded
ResultChannel; the driver itself drains it and hands every item to the sink.

Guarantees:
1. At most ``worker_count`` browser sessions are open at once.
2. A failing worker (no session, collector gone, unexpected error) is logged
   and counted; its siblings keep running.
3. A full channel suspends only the worker that is sending.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

from pagesift.common.channel import (
    DEFAULT_CAPACITY,
    Receiver,
    ResultChannel,
    Sender,
)
from pagesift.common.exceptions import SinkException
from pagesift.common.partition import iter_batches
from pagesift.data_types import (
    ImageFilter,
    ScrapedImage,
    ScrapedUrl,
    ScrapeStrategy,
    SessionConfig,
    UrlFilter,
)
from pagesift.driver.playwright_session import playwright_session_factory
from pagesift.driver.session import SessionFactory
from pagesift.extractors.base import Extractor
from pagesift.extractors.image import ImageExtractor
from pagesift.extractors.url import UrlExtractor
from pagesift.sinks import ImageSink, Sink, UrlSink

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")


@dataclass
class RunSummary:
    """Outcome of one AsyncDriver.run().

    Attributes:
        workers_launched: Workers that were given a non-empty batch.
        workers_failed: Workers that ended with an exception.
        items_collected: Items received from the channel.
        sink_failures: Items the sink could not persist.
        pages_visited: Pages loaded and read by workers that finished.
    """

    workers_launched: int = 0
    workers_failed: int = 0
    items_collected: int = 0
    sink_failures: int = 0
    pages_visited: int = 0


class AsyncDriver(Generic[ItemT]):
    """Runs one extractor per URL batch and collects the results.

    Use AsyncDriver.for_images() / AsyncDriver.for_urls() to get a driver
    wired to Playwright sessions and the matching sink, or pass the pieces
    directly (as the tests do with a fake session).

    Example usage:
        driver = AsyncDriver.for_urls(
            ["https://a.test", "https://b.test"],
            ScrapeStrategy(worker_count=2, destination=""),
            UrlFilter(),
        )
        summary = await driver.run()
    """

    def __init__(
        self,
        urls: Sequence[str],
        extractor_factory: Callable[[], Extractor[ItemT]],
        open_session: SessionFactory,
        sink: Sink[ItemT],
        strategy: ScrapeStrategy | None = None,
        channel_capacity: int = DEFAULT_CAPACITY,
        mode: str = "scrape",
        on_run_start: Callable[[str], Awaitable[None]] | None = None,
        on_run_complete: Callable[
            [str, str, Exception | None], Awaitable[None]
        ]
        | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            urls: Page URLs to scrape, in order.
            extractor_factory: Builds a fresh extractor for each worker.
            open_session: Opens a browser session; called once per worker.
            sink: Called by the collector once per received item.
            strategy: Worker count and destination. Defaults to
                ScrapeStrategy().
            channel_capacity: Maximum number of unread items before senders
                are suspended.
            mode: Name reported to the lifecycle callbacks.
            on_run_start: Optional async callback invoked when the run
                starts. Receives mode (str).
            on_run_complete: Optional async callback invoked when the run
                ends. Receives mode (str), status ("completed" | "error")
                and error (Exception | None).
        """
        self.urls = list(urls)
        self.extractor_factory = extractor_factory
        self.open_session = open_session
        self.sink = sink
        self.strategy = strategy or ScrapeStrategy()
        self.channel_capacity = channel_capacity
        self.mode = mode
        self.on_run_start = on_run_start
        self.on_run_complete = on_run_complete

    @classmethod
    def for_images(
        cls,
        urls: Sequence[str],
        strategy: ScrapeStrategy,
        image_filter: ImageFilter,
        session_config: SessionConfig | None = None,
        open_session: SessionFactory | None = None,
    ) -> AsyncDriver[ScrapedImage]:
        """Driver that saves images under ``strategy.destination``."""
        return cls(
            urls,
            lambda: ImageExtractor(image_filter),
            open_session or playwright_session_factory(session_config),
            ImageSink(Path(strategy.destination)),
            strategy=strategy,
            mode="images",
        )

    @classmethod
    def for_urls(
        cls,
        urls: Sequence[str],
        strategy: ScrapeStrategy,
        url_filter: UrlFilter,
        session_config: SessionConfig | None = None,
        open_session: SessionFactory | None = None,
    ) -> AsyncDriver[ScrapedUrl]:
        """Driver that appends links to a file, or prints them."""
        return cls(
            urls,
            lambda: UrlExtractor(url_filter),
            open_session or playwright_session_factory(session_config),
            UrlSink(strategy.destination),
            strategy=strategy,
            mode="urls",
        )

    async def run(self) -> RunSummary:
        """Scrape every URL and sink every result.

        Returns once all workers have finished and the channel is drained.
        Worker failures do not make run() raise; they are counted in the
        returned summary. Only an unexpected collector error propagates.
        """
        if self.on_run_start:
            await self.on_run_start(self.mode)

        status = "completed"
        error: Exception | None = None
        summary = RunSummary()

        try:
            channel: ResultChannel[ItemT] = ResultChannel(
                self.channel_capacity
            )
            sender = channel.sender()
            receiver = channel.receiver()

            workers = self._launch_workers(sender)
            summary.workers_launched = len(workers)
            # The channel ends once every worker has released its clone.
            await sender.aclose()

            try:
                await self._collect(receiver, summary)
            finally:
                # Wakes any worker still blocked on send if collection failed.
                receiver.close()
                results = await asyncio.gather(
                    *workers, return_exceptions=True
                )

            summary.workers_failed = sum(
                isinstance(result, BaseException) for result in results
            )
            summary.pages_visited = sum(
                result for result in results if isinstance(result, int)
            )
            logger.info(
                f"Run finished: {summary.items_collected} items from "
                f"{summary.pages_visited} pages and "
                f"{summary.workers_launched} workers "
                f"({summary.workers_failed} failed, "
                f"{summary.sink_failures} sink failures)"
            )
        except Exception as e:
            status = "error"
            error = e
            raise
        finally:
            self.sink.close()
            if self.on_run_complete:
                await self.on_run_complete(self.mode, status, error)

        return summary

    def _launch_workers(
        self, sender: Sender[ItemT]
    ) -> list[asyncio.Task[int]]:
        return [
            asyncio.create_task(
                self._worker(worker_id, batch, sender.clone())
            )
            for worker_id, batch in iter_batches(
                self.urls, self.strategy.worker_count
            )
        ]

    async def _worker(
        self, worker_id: int, batch: Sequence[str], sender: Sender[ItemT]
    ) -> int:
        """Run one extractor over one batch.

        Args:
            worker_id: Index of this worker (for logging).
            batch: The worker's contiguous slice of the URL list.
            sender: This worker's own handle on the result channel.

        Returns:
            Number of pages the extractor visited.
        """
        extractor = self.extractor_factory()
        logger.info(
            f"Worker {worker_id} starting on {len(batch)} URLs",
            extra={"worker_id": worker_id},
        )
        async with sender:
            try:
                visited = await extractor.run(
                    self.open_session, batch, sender
                )
            except Exception:
                logger.exception(f"Worker {worker_id} failed")
                raise
        logger.info(
            f"Worker {worker_id} finished after {visited} pages",
            extra={"worker_id": worker_id},
        )
        return visited

    async def _collect(
        self, receiver: Receiver[ItemT], summary: RunSummary
    ) -> None:
        async for item in receiver:
            summary.items_collected += 1
            try:
                await self.sink(item)
            except SinkException as e:
                summary.sink_failures += 1
                logger.error(
                    f"Could not persist item: {e.message}",
                    extra={"url": e.url, **e.context},
                )
