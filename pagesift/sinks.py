"""Collector-side persistence for scraped items.

A sink is called by the collector once per item it receives. Sinks raise
SinkException when one item can't be persisted; the collector logs it and
keeps draining the channel.

File layout:
- images: ``<destination>/<page title>/<epoch millis>.<subtype>``
- URLs: ``<destination>/<run start epoch millis>.txt``, one URL per line,
  or ``Url: <value>`` lines on stdout when the destination is empty.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import sys
import time
from pathlib import Path
from typing import IO, Protocol, TypeVar

from pagesift.common.data_url import DataUrl
from pagesift.common.exceptions import SinkException
from pagesift.data_types import ScrapedImage, ScrapedUrl

logger = logging.getLogger(__name__)

T_contra = TypeVar("T_contra", contravariant=True)

UNTITLED = "untitled"
UNSAFE_DIR_CHARS = re.compile(r"[/\\\x00-\x1f\x7f]")


class Sink(Protocol[T_contra]):
    async def __call__(self, item: T_contra) -> None: ...

    def close(self) -> None: ...


class MillisecondClock:
    """Epoch milliseconds that never repeat within one clock.

    If called twice within the same millisecond (or the wall clock goes
    backwards), the previous value plus one is returned instead.

    Example:
        >>> clock = MillisecondClock()
        >>> first, second = clock(), clock()
        >>> second > first
        True
    """

    def __init__(self) -> None:
        self._last = -1

    def __call__(self) -> int:
        now = int(time.time() * 1000)
        if now <= self._last:
            now = self._last + 1
        self._last = now
        return now


def safe_dir_name(title: str) -> str:
    """Turn a page title into a single path component.

    Path separators and control characters (NUL included) become ``_``.

    Example:
        >>> safe_dir_name("a/b\\x00c")
        'a_b_c'
    """
    name = UNSAFE_DIR_CHARS.sub("_", title.strip())
    if name in ("", ".", ".."):
        return UNTITLED
    return name


class ImageSink:
    """Decodes ScrapedImages and writes them under ``destination``.

    Example:
        sink = ImageSink(Path("download"))
        await sink(ScrapedImage("Gallery", "image/png", "iVBORw0K..."))
        # -> download/Gallery/1700000000000.png
    """

    def __init__(
        self, destination: Path | str, clock: MillisecondClock | None = None
    ) -> None:
        self.destination = Path(destination)
        self.clock = clock or MillisecondClock()
        self.written: list[Path] = []

    async def __call__(self, item: ScrapedImage) -> None:
        """Write one image.

        Raises:
            SinkException: If the payload is not valid base64 or the file
                can't be written.
        """
        try:
            content = base64.b64decode(item.payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SinkException(
                "Base64 decode failed",
                context={"page_title": item.page_title, "encoding": item.encoding},
            ) from e

        extension = DataUrl(item.encoding, True, "").subtype or "bin"
        directory = self.destination / safe_dir_name(item.page_title)
        file_path = directory / f"{self.clock()}.{extension}"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        except (OSError, ValueError) as e:
            raise SinkException(
                f"Could not write image: {e}",
                context={"path": str(file_path)},
            ) from e

        logger.debug(f"Saved image to {file_path}")
        self.written.append(file_path)

    def close(self) -> None:
        pass


class UrlSink:
    """Appends ScrapedUrls to a per-run file, or prints them.

    The file is named after the sink's creation time and is only created
    when the first URL arrives. An empty ``destination`` prints each URL to
    ``stream`` (stdout by default) as ``Url: <value>``.

    Example:
        sink = UrlSink("")
        await sink("https://example.com/a")  # prints "Url: https://..."
    """

    def __init__(
        self,
        destination: Path | str,
        clock: MillisecondClock | None = None,
        stream: IO[str] | None = None,
    ) -> None:
        self.destination = Path(destination) if str(destination) else None
        self.stream = stream or sys.stdout
        self.started_at = (clock or MillisecondClock())()
        self._file: IO[str] | None = None

    @property
    def file_path(self) -> Path | None:
        if self.destination is None:
            return None
        return self.destination / f"{self.started_at}.txt"

    async def __call__(self, item: ScrapedUrl) -> None:
        """Record one URL.

        Raises:
            SinkException: If the output file can't be opened or written.
        """
        if self.file_path is None:
            print(f"Url: {item}", file=self.stream)
            return

        try:
            if self._file is None:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
                self._file = self.file_path.open("a", encoding="utf-8")
            self._file.write(f"{item}\n")
        except OSError as e:
            raise SinkException(
                f"Could not write URL: {e}",
                item,
                {"path": str(self.file_path)},
            ) from e

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
