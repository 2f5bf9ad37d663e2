"""Data types shared by the driver, extractors and sinks.

Configuration objects (ScrapeStrategy, ImageFilter, UrlFilter,
SessionConfig) are frozen Pydantic models: they are validated once when a
run is configured and then handed, unchanged, to every worker. The
``with_*``/``without_*`` helpers return modified copies instead of mutating.

Scraped results (ScrapedImage, ScrapedUrl) are created by an extractor,
pass through the result channel, and are consumed once by a sink.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import assert_never

DEFAULT_DESTINATION = "download/"
DEFAULT_MIN_SIZE = 300
MATCH_EVERYTHING = "(.*?)"


class ImageEncoding(Enum):
    """Image encodings an ImageFilter can allow."""

    JPEG = "jpeg"
    PNG = "png"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @classmethod
    def from_mime_type(cls, media_type: str) -> ImageEncoding | None:
        """Look up the encoding for a MIME type, or None if unsupported."""
        normalized = media_type.strip().lower()
        for encoding in cls:
            if encoding.mime_type == normalized:
                return encoding
        return None


class SourceTag(Enum):
    """HTML tags a UrlFilter can collect links from."""

    IMG = "img"
    IFRAME = "iframe"
    ANCHOR = "a"
    LINK = "link"
    SCRIPT = "script"
    SOURCE = "source"

    @property
    def source_attribute(self) -> str:
        """The attribute holding this tag's URL."""
        match self:
            case (
                SourceTag.IMG
                | SourceTag.IFRAME
                | SourceTag.SCRIPT
                | SourceTag.SOURCE
            ):
                return "src"
            case SourceTag.ANCHOR | SourceTag.LINK:
                return "href"
            case _:
                assert_never(self)


class ScrapeStrategy(BaseModel):
    """How a run is executed: parallelism and where results go.

    Attributes:
        worker_count: Number of concurrent workers (browser sessions).
        destination: Output directory. For URL runs, the empty string means
            print to stdout instead of writing a file.
    """

    model_config = ConfigDict(frozen=True)

    worker_count: int = Field(default=1, ge=1)
    destination: str = DEFAULT_DESTINATION


class ImageFilter(BaseModel):
    """Which images an ImageExtractor keeps.

    Attributes:
        min_width: Minimum rendered width in pixels.
        min_height: Minimum rendered height in pixels.
        allowed_encodings: Encodings to keep; anything else is skipped.
    """

    model_config = ConfigDict(frozen=True)

    min_width: int = Field(default=DEFAULT_MIN_SIZE, ge=0)
    min_height: int = Field(default=DEFAULT_MIN_SIZE, ge=0)
    allowed_encodings: frozenset[ImageEncoding] = frozenset(
        {ImageEncoding.JPEG}
    )

    @field_validator("allowed_encodings", mode="before")
    @classmethod
    def _accept_mime_types(cls, value: Any) -> Any:
        # Allow "image/png" as well as "png".
        if isinstance(value, (list, tuple, set, frozenset)):
            return [
                (ImageEncoding.from_mime_type(v) or v)
                if isinstance(v, str)
                else v
                for v in value
            ]
        return value

    def accepts_size(self, width: int, height: int) -> bool:
        return width >= self.min_width and height >= self.min_height

    def accepts_media_type(self, media_type: str) -> bool:
        encoding = ImageEncoding.from_mime_type(media_type)
        return encoding is not None and encoding in self.allowed_encodings

    def with_min_size(self, width: int, height: int) -> ImageFilter:
        return self.model_copy(
            update={"min_width": width, "min_height": height}
        )

    def with_encoding(self, encoding: ImageEncoding) -> ImageFilter:
        return self.model_copy(
            update={"allowed_encodings": self.allowed_encodings | {encoding}}
        )

    def without_encoding(self, encoding: ImageEncoding) -> ImageFilter:
        return self.model_copy(
            update={"allowed_encodings": self.allowed_encodings - {encoding}}
        )


class UrlFilter(BaseModel):
    """Which discovered links a UrlExtractor keeps.

    Attributes:
        allowed_source_tags: Tags whose ``src``/``href`` is collected, in
            the order pages are searched. Duplicates are dropped.
        inclusion_pattern: A link must match this (``re.search``) to be kept.
    """

    model_config = ConfigDict(frozen=True)

    allowed_source_tags: tuple[SourceTag, ...] = (SourceTag.ANCHOR,)
    inclusion_pattern: re.Pattern[str] = re.compile(MATCH_EVERYTHING)

    @field_validator("allowed_source_tags", mode="after")
    @classmethod
    def _drop_duplicate_tags(
        cls, value: tuple[SourceTag, ...]
    ) -> tuple[SourceTag, ...]:
        return tuple(dict.fromkeys(value))

    def matches(self, url: str) -> bool:
        return self.inclusion_pattern.search(url) is not None

    def with_tag(self, tag: SourceTag) -> UrlFilter:
        """Return a copy that also searches ``tag``, after the current tags."""
        if tag in self.allowed_source_tags:
            return self
        return self.model_copy(
            update={"allowed_source_tags": (*self.allowed_source_tags, tag)}
        )

    def without_tag(self, tag: SourceTag) -> UrlFilter:
        return self.model_copy(
            update={
                "allowed_source_tags": tuple(
                    t for t in self.allowed_source_tags if t != tag
                )
            }
        )

    def with_pattern(self, pattern: str) -> UrlFilter:
        """Return a copy using ``pattern``.

        Raises:
            pydantic.ValidationError: If the pattern does not compile.
        """
        return UrlFilter(
            allowed_source_tags=self.allowed_source_tags,
            inclusion_pattern=pattern,
        )


class SessionConfig(BaseModel):
    """Browser backend settings used to open each worker's session.

    Attributes:
        browser_type: Playwright browser type.
        headless: Run without a visible window.
        viewport: Page viewport size.
        user_agent: Custom user agent (None = browser default).
        navigation_timeout_ms: Timeout applied to navigations and in-page
            script execution.
        disable_web_security: Launch Chromium without same-origin
            enforcement so in-page fetches of cross-origin images succeed.
    """

    model_config = ConfigDict(frozen=True)

    browser_type: Literal["chromium", "firefox", "webkit"] = "chromium"
    headless: bool = True
    viewport: dict[str, int] = Field(
        default_factory=lambda: {"width": 1280, "height": 720}
    )
    user_agent: str | None = None
    navigation_timeout_ms: int = Field(default=30_000, ge=0)
    disable_web_security: bool = True


@dataclass(frozen=True)
class ScrapedImage:
    """An image found on a page, still base64-encoded.

    Attributes:
        page_title: Title of the page the image was found on.
        encoding: MIME type of the image (``"image/png"``).
        payload: Base64-encoded image bytes.
    """

    page_title: str
    encoding: str
    payload: str


ScrapedUrl: TypeAlias = str
