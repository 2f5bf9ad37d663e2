"""Parsing for ``data:`` URLs returned by in-page fetches.

Format: ``data:[<mediatype>][;base64],<data>``. Only the header (between
``data:`` and the first comma) is interpreted; the payload is returned
verbatim so it can be decoded once, by the sink that writes it.
"""

from __future__ import annotations

from dataclasses import dataclass

DATA_URL_PREFIX = "data:"
BASE64_MARKER = ";base64"


@dataclass(frozen=True)
class DataUrl:
    """A parsed data URL.

    Attributes:
        media_type: MIME essence, lower-cased, parameters dropped
            (``"image/png"``). Empty when the URL declares none.
        is_base64: Whether the header carried the ``;base64`` marker.
        data: Everything after the first comma, untouched.
    """

    media_type: str
    is_base64: bool
    data: str

    @property
    def subtype(self) -> str:
        """The part of the media type after ``/`` (``"png"``)."""
        _, _, subtype = self.media_type.partition("/")
        return subtype


def parse_data_url(text: str) -> DataUrl | None:
    """Parse a data URL into its media type and payload.

    Args:
        text: The candidate data URL.

    Returns:
        The parsed DataUrl, or None if ``text`` is not a data URL.

    Examples:
        >>> parse_data_url("data:image/png;base64,iVBORw0K")
        DataUrl(media_type='image/png', is_base64=True, data='iVBORw0K')
        >>> parse_data_url("https://example.com/a.png") is None
        True
    """
    if not text.lower().startswith(DATA_URL_PREFIX):
        return None

    header, comma, data = text[len(DATA_URL_PREFIX) :].partition(",")
    if not comma:
        return None

    is_base64 = header.lower().endswith(BASE64_MARKER)
    if is_base64:
        header = header[: -len(BASE64_MARKER)]

    media_type = header.split(";", 1)[0].strip().lower()
    return DataUrl(media_type=media_type, is_base64=is_base64, data=data)
