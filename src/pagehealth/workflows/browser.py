"""Browser session capability and its Playwright implementation.

Everything that needs a live rendering engine goes through two small
interfaces: a ``BrowserLauncher`` that opens isolated sessions, and the
``BrowserSession`` it returns (navigate / evaluate / content / title / close).
The page fetcher and the link resolver only see these, so tests can drive
them with a fake launcher instead of a real browser.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Protocol

from .checker_config import DEFAULT_USER_AGENT, PAGE_VIEWPORT
from .errors import BrowserUnavailableError

logger = logging.getLogger(__name__)

try:  # Playwright is optional; fallback gracefully if unavailable
    from playwright.async_api import async_playwright  # type: ignore
except Exception:  # pragma: no cover - handled at runtime
    async_playwright = None  # type: ignore


@dataclass
class NavigationResponse:
    """The main-document response of a browser navigation."""

    status: int
    url: str
    headers: Dict[str, str] = field(default_factory=dict)


class BrowserSession(Protocol):
    async def navigate(self, url: str, *, wait_until: str, timeout: float) -> Optional[NavigationResponse]:
        ...

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    async def content(self) -> str:
        ...

    async def title(self) -> str:
        ...

    async def close(self) -> None:
        ...


class BrowserLauncher(Protocol):
    async def open(self, *, viewport: Optional[Dict[str, int]] = None) -> BrowserSession:
        ...


def describe_browser_error(exc: BaseException) -> str:
    """Return the first line of a browser error (Playwright appends call logs)."""

    text = str(exc).strip()
    if not text:
        return type(exc).__name__
    return text.splitlines()[0].strip()


class PlaywrightSession:
    """One isolated Playwright browser, context, and page."""

    def __init__(self, playwright: Any, browser: Any, context: Any, page: Any) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    async def navigate(self, url: str, *, wait_until: str, timeout: float) -> Optional[NavigationResponse]:
        response = await self._page.goto(url, timeout=int(timeout * 1000), wait_until=wait_until)
        if response is None:
            return None
        return NavigationResponse(
            status=response.status,
            url=response.url,
            headers=dict(response.headers or {}),
        )

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return await self._page.evaluate(script)
        return await self._page.evaluate(script, arg)

    async def content(self) -> str:
        return await self._page.content()

    async def title(self) -> str:
        return (await self._page.title()) or ""

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._context.close()
        finally:
            try:
                await self._browser.close()
            finally:
                await self._playwright.stop()


class PlaywrightLauncher:
    """Launch a fresh headless Chromium per session."""

    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
        browser_type: str = "chromium",
        locale: str = "en-US",
    ) -> None:
        self.headless = headless
        self.user_agent = user_agent
        self.browser_type = browser_type
        self.locale = locale

    async def open(self, *, viewport: Optional[Dict[str, int]] = None) -> PlaywrightSession:
        if async_playwright is None:
            raise BrowserUnavailableError("Playwright is not installed")
        playwright = None
        browser = None
        try:
            playwright = await async_playwright().start()
            launcher = getattr(playwright, self.browser_type)
            browser = await launcher.launch(headless=self.headless)
            context = await browser.new_context(
                user_agent=self.user_agent,
                viewport=viewport or dict(PAGE_VIEWPORT),
                locale=self.locale,
                java_script_enabled=True,
            )
            page = await context.new_page()
        except Exception as exc:
            try:
                if browser is not None:
                    await browser.close()
            finally:
                if playwright is not None:
                    await playwright.stop()
            raise BrowserUnavailableError(describe_browser_error(exc)) from exc
        return PlaywrightSession(playwright, browser, context, page)


def launcher_from_env(user_agent: str = DEFAULT_USER_AGENT) -> PlaywrightLauncher:
    headed = os.getenv("PAGEHEALTH_PLAYWRIGHT_HEADED", "0") == "1"
    browser_type = os.getenv("PAGEHEALTH_PLAYWRIGHT_BROWSER", "chromium").strip() or "chromium"
    return PlaywrightLauncher(headless=not headed, user_agent=user_agent, browser_type=browser_type)


@asynccontextmanager
async def open_session(
    launcher: BrowserLauncher,
    *,
    viewport: Optional[Dict[str, int]] = None,
) -> AsyncIterator[BrowserSession]:
    """Open a session and guarantee it is closed on every exit path."""

    session = await launcher.open(viewport=viewport)
    try:
        yield session
    finally:
        try:
            await session.close()
        except Exception as exc:
            logger.warning("browser session close failed: %s", describe_browser_error(exc))


__all__ = [
    "NavigationResponse",
    "BrowserSession",
    "BrowserLauncher",
    "PlaywrightSession",
    "PlaywrightLauncher",
    "launcher_from_env",
    "open_session",
    "describe_browser_error",
]
