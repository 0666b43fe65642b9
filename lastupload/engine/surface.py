"""Navigation surface: an isolated browser page pointed at one URL at a time.

:func:`navigate` turns a surface load into a discriminated result::

    Settled(html) | LoadFailed(error) | TimedOut()

The load is raced against a timer task; whichever loses is cancelled.
After load completion a fixed settle delay lets client-side rendering
populate the page before the content is read.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

log = logging.getLogger(__name__)


class NavigationFailed(Exception):
    """Raised by a surface when the target page reports a load error."""


class NavigationSurface(Protocol):
    async def goto(self, url: str) -> None:
        """Load *url*; return on load completion, raise NavigationFailed on error."""

    async def content(self) -> str:
        """Return the currently rendered document as HTML."""


@dataclass(frozen=True)
class Settled:
    html: str


@dataclass(frozen=True)
class LoadFailed:
    error: str


@dataclass(frozen=True)
class TimedOut:
    timeout: float


NavigationResult = Settled | LoadFailed | TimedOut


async def navigate(
    surface: NavigationSurface,
    url: str,
    timeout: float,
    settle_delay: float,
) -> NavigationResult:
    """Point *surface* at *url* and wait for it to load and settle.

    Exceptions other than NavigationFailed propagate to the caller.
    """
    load = asyncio.ensure_future(surface.goto(url))
    timer = asyncio.ensure_future(asyncio.sleep(timeout))
    try:
        await asyncio.wait({load, timer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (load, timer):
            if not task.done():
                task.cancel()
        await asyncio.gather(load, timer, return_exceptions=True)

    if not load.done() or load.cancelled():
        log.debug("Navigation to %s timed out after %.1fs", url, timeout)
        return TimedOut(timeout)

    exc = load.exception()
    if isinstance(exc, NavigationFailed):
        log.debug("Navigation to %s failed: %s", url, exc)
        return LoadFailed(str(exc) or "navigation_error")
    if exc is not None:
        raise exc

    # Load completion means document ready, not application rendered
    await asyncio.sleep(settle_delay)
    return Settled(await surface.content())


class PlaywrightSurface:
    """Headless Chromium page in its own browser context.

    Use as an async context manager; the browser lives for the session.

    Parameters
    ----------
    headless:
        Run Chromium without a window.
    storage_state:
        Optional Playwright storage-state JSON (cookies) so the context
        shares the logged-in session of the listing page.
    user_agent:
        Optional user agent override.
    """

    def __init__(
        self,
        headless: bool = True,
        storage_state: str | Path | None = None,
        user_agent: str | None = None,
    ) -> None:
        self._headless = headless
        self._storage_state = storage_state
        self._user_agent = user_agent
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> PlaywrightSurface:
        browser_cfg = config.get("browser", {})
        return cls(
            headless=browser_cfg.get("headless", True),
            storage_state=browser_cfg.get("storage_state"),
            user_agent=browser_cfg.get("user_agent"),
        )

    async def __aenter__(self) -> PlaywrightSurface:
        try:
            await self.start()
        except BaseException:
            # __aexit__ never runs for a failed __aenter__
            await self.stop()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def start(self) -> None:
        """Launch the browser and open the single page used for navigation."""
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._headless)
        context_kwargs: dict[str, Any] = {}
        if self._storage_state:
            context_kwargs["storage_state"] = str(Path(self._storage_state).expanduser())
        if self._user_agent:
            context_kwargs["user_agent"] = self._user_agent
        self._context = await self._browser.new_context(**context_kwargs)
        self._page = await self._context.new_page()
        log.info("Browser surface started (headless=%s)", self._headless)

    async def stop(self) -> None:
        """Close page, context and browser. Safe to call more than once."""
        for attr in ("_context", "_browser"):
            handle = getattr(self, attr)
            if handle is not None:
                try:
                    await handle.close()
                except Exception as exc:
                    log.debug("Ignoring error closing %s: %s", attr, exc)
                setattr(self, attr, None)
        self._page = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def goto(self, url: str) -> None:
        from playwright.async_api import Error as PlaywrightError

        if self._page is None:
            raise RuntimeError("PlaywrightSurface used before start()")
        try:
            # Timeout is enforced by navigate(); 0 disables Playwright's own
            response = await self._page.goto(url, wait_until="load", timeout=0)
        except PlaywrightError as exc:
            raise NavigationFailed(str(exc)) from exc
        if response is not None and response.status >= 400:
            raise NavigationFailed(f"HTTP {response.status}")

    async def content(self) -> str:
        if self._page is None:
            raise RuntimeError("PlaywrightSurface used before start()")
        return await self._page.content()
