"""Playwright-backed browser sessions.

This module provides the BrowserSession implementation used for real runs:
one Playwright browser per worker, with in-page fetching of image bytes.
"""

from pagesift.driver.playwright_session.playwright_session import (
    PlaywrightSession,
    playwright_session_factory,
)

__all__ = ["PlaywrightSession", "playwright_session_factory"]
