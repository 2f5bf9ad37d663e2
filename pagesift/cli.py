"""pagesift CLI: scrape images or links from a list of pages.

Usage:
    pagesift images https://a.test https://b.test --workers 2
    pagesift images -i urls.txt --encoding png --min-width 100
    pagesift urls -i url_dir/ --tag a --tag img --pattern 'example\\.com'
    pagesift urls https://a.test --dest links/
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

import click
from pydantic import ValidationError

from pagesift.data_types import (
    DEFAULT_DESTINATION,
    DEFAULT_MIN_SIZE,
    MATCH_EVERYTHING,
    ImageEncoding,
    ImageFilter,
    ScrapeStrategy,
    SessionConfig,
    SourceTag,
    UrlFilter,
)
from pagesift.driver.async_driver import AsyncDriver, RunSummary

F = TypeVar("F", bound=Callable[..., Any])


def read_url_file(path: Path) -> list[str]:
    """Read one URL per line, skipping blank lines and ``#`` comments."""
    urls = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            urls.append(line)
    return urls


def gather_urls(urls: Iterable[str], inputs: Iterable[str]) -> list[str]:
    """Combine positional URLs with URLs read from input files.

    Args:
        urls: URLs given on the command line.
        inputs: Files, or directories whose ``*.txt`` files are read in
            name order.

    Returns:
        All URLs, command-line ones first.

    Raises:
        click.BadParameter: If an input path does not exist.
    """
    collected = list(urls)
    for raw in inputs:
        path = Path(raw)
        if path.is_dir():
            for file_path in sorted(path.glob("*.txt")):
                collected.extend(read_url_file(file_path))
        elif path.is_file():
            collected.extend(read_url_file(path))
        else:
            raise click.BadParameter(
                f"No such file or directory: {raw}", param_hint="--input"
            )
    return collected


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build(factory: Callable[..., Any], **kwargs: Any) -> Any:
    """Construct a config model, turning validation errors into usage errors."""
    try:
        return factory(**kwargs)
    except ValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise click.BadParameter(messages) from e


def _report(summary: RunSummary) -> None:
    click.echo(
        f"Collected {summary.items_collected} items with "
        f"{summary.workers_launched} workers."
    )
    if summary.workers_failed or summary.sink_failures:
        click.echo(
            f"{summary.workers_failed} workers failed, "
            f"{summary.sink_failures} items could not be saved.",
            err=True,
        )


def common_options(default_dest: str) -> Callable[[F], F]:
    """Options shared by every scrape command."""

    def decorator(func: F) -> F:
        options = [
            click.argument("urls", nargs=-1),
            click.option(
                "-i",
                "--input",
                "inputs",
                multiple=True,
                type=click.Path(),
                help="File with one URL per line, or a directory of *.txt files.",
            ),
            click.option(
                "--workers",
                type=int,
                default=1,
                show_default=True,
                help="Number of concurrent browser sessions.",
            ),
            click.option(
                "--dest",
                default=default_dest,
                show_default=True,
                help="Output directory.",
            ),
            click.option(
                "--headless/--headed",
                default=True,
                show_default=True,
                help="Run the browser without a window.",
            ),
            click.option(
                "--browser",
                type=click.Choice(["chromium", "firefox", "webkit"]),
                default="chromium",
                show_default=True,
                help="Playwright browser type.",
            ),
            click.option("-v", "--verbose", is_flag=True, help="Verbose logging."),
        ]
        for option in reversed(options):
            func = option(func)
        return func

    return decorator


@click.group()
@click.version_option(package_name="pagesift")
def cli() -> None:
    """Scrape images or links from web pages with a real browser."""


@cli.command()
@common_options(DEFAULT_DESTINATION)
@click.option(
    "--min-width",
    type=int,
    default=DEFAULT_MIN_SIZE,
    show_default=True,
    help="Minimum rendered width in pixels.",
)
@click.option(
    "--min-height",
    type=int,
    default=DEFAULT_MIN_SIZE,
    show_default=True,
    help="Minimum rendered height in pixels.",
)
@click.option(
    "--encoding",
    "encodings",
    multiple=True,
    type=click.Choice([e.value for e in ImageEncoding]),
    default=[ImageEncoding.JPEG.value],
    show_default=True,
    help="Image encoding to keep (repeatable).",
)
def images(
    urls: tuple[str, ...],
    inputs: tuple[str, ...],
    workers: int,
    dest: str,
    headless: bool,
    browser: str,
    verbose: bool,
    min_width: int,
    min_height: int,
    encodings: tuple[str, ...],
) -> None:
    """Save images found on each page to DEST/<page title>/.

    \b
    Examples:
        pagesift images https://example.com
        pagesift images -i urls.txt --workers 4 --encoding png
    """
    _configure_logging(verbose)
    strategy = _build(ScrapeStrategy, worker_count=workers, destination=dest)
    image_filter = _build(
        ImageFilter,
        min_width=min_width,
        min_height=min_height,
        allowed_encodings=frozenset(ImageEncoding(e) for e in encodings),
    )
    session_config = SessionConfig(browser_type=browser, headless=headless)

    driver = AsyncDriver.for_images(
        gather_urls(urls, inputs), strategy, image_filter, session_config
    )
    _report(asyncio.run(driver.run()))


@cli.command()
@common_options("")
@click.option(
    "--tag",
    "tags",
    multiple=True,
    type=click.Choice([t.value for t in SourceTag]),
    default=[SourceTag.ANCHOR.value],
    show_default=True,
    help="Tag to collect links from (repeatable).",
)
@click.option(
    "--pattern",
    default=MATCH_EVERYTHING,
    show_default=True,
    help="Regular expression a link must match.",
)
def urls(
    urls: tuple[str, ...],
    inputs: tuple[str, ...],
    workers: int,
    dest: str,
    headless: bool,
    browser: str,
    verbose: bool,
    tags: tuple[str, ...],
    pattern: str,
) -> None:
    """Collect links found on each page.

    Links are written to DEST/<timestamp>.txt, or printed when DEST is
    empty (the default).

    \b
    Examples:
        pagesift urls https://example.com
        pagesift urls -i urls.txt --tag a --tag img --dest links/
    """
    _configure_logging(verbose)
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise click.BadParameter(
            f"Invalid regular expression: {e}", param_hint="--pattern"
        ) from e

    strategy = _build(ScrapeStrategy, worker_count=workers, destination=dest)
    url_filter = _build(
        UrlFilter,
        allowed_source_tags=tuple(SourceTag(t) for t in tags),
        inclusion_pattern=compiled,
    )
    session_config = SessionConfig(browser_type=browser, headless=headless)

    driver = AsyncDriver.for_urls(
        gather_urls(urls, inputs), strategy, url_filter, session_config
    )
    _report(asyncio.run(driver.run()))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
