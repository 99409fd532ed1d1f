"""
Driver adapter boundary.

This module provides:
- `BrowserDriver` / `DriverSession` / `DriverPage` protocols, the contract the
  session core consumes.
- `PlaywrightDriver`, a concrete adapter over `playwright.async_api`.

Every failure crossing this boundary is raised as `DriverError`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .config import DEFAULT_NAVIGATION_TIMEOUT_MS, _parse_bool_env
from .exceptions import DriverError

logger = logging.getLogger(__name__)


class DriverPage(Protocol):
    async def open(self, url: str) -> str: ...

    async def evaluate(self, script: str, *args: Any) -> Any: ...

    async def upload_file(self, selector: str, path: str) -> None: ...


class DriverSession(Protocol):
    async def create_page(self) -> DriverPage: ...

    async def close(self) -> None: ...


class BrowserDriver(Protocol):
    async def create_session(self) -> DriverSession: ...


def _compact_exception_message(exc: BaseException) -> str:
    text = str(exc).strip().splitlines()
    first = text[0] if text else ""
    return first or type(exc).__name__


def _driver_error(operation: str, exc: BaseException) -> DriverError:
    error = DriverError(_compact_exception_message(exc), operation=operation)
    error.__cause__ = exc
    return error


class PlaywrightPage:
    """One Playwright page exposed through the `DriverPage` contract."""

    def __init__(self, page: Any, navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS) -> None:
        self._page = page
        self.navigation_timeout_ms = navigation_timeout_ms

    @property
    def url(self) -> str:
        return str(getattr(self._page, "url", "") or "")

    async def open(self, url: str) -> str:
        clean_url = (url or "").strip()
        if not clean_url:
            raise DriverError("URL required for open operation", operation="open")
        try:
            response = await self._page.goto(
                clean_url,
                timeout=self.navigation_timeout_ms,
                wait_until="load",
            )
        except Exception as exc:
            raise _driver_error("open", exc) from exc
        if response is None:
            # Same-document navigations (e.g. anchors) report no response.
            return "success"
        return "success" if getattr(response, "ok", True) else "fail"

    async def evaluate(self, script: str, *args: Any) -> Any:
        if not script:
            raise DriverError("script is required for evaluate operation", operation="evaluate")
        try:
            if args:
                return await self._page.evaluate(script, list(args))
            return await self._page.evaluate(script)
        except Exception as exc:
            raise _driver_error("evaluate", exc) from exc

    async def upload_file(self, selector: str, path: str) -> None:
        if not selector:
            raise DriverError("selector is required for upload operation", operation="upload")
        local_path = Path(str(path or "")).expanduser()
        if not local_path.is_file():
            raise DriverError(f"Upload file not found: {local_path}", operation="upload")
        try:
            await self._page.set_input_files(selector, str(local_path.resolve()))
        except Exception as exc:
            raise _driver_error("upload", exc) from exc


class PlaywrightSession:
    """A launched browser with one context; pages are created inside that context."""

    def __init__(
        self,
        playwright: Any,
        browser: Any,
        context: Any,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self.navigation_timeout_ms = navigation_timeout_ms
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def create_page(self) -> PlaywrightPage:
        if self._closed:
            raise DriverError("session is closed", operation="create_page")
        try:
            page = await self._context.new_page()
        except Exception as exc:
            raise _driver_error("create_page", exc) from exc
        return PlaywrightPage(page, navigation_timeout_ms=self.navigation_timeout_ms)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        context = self._context
        browser = self._browser
        playwright = self._playwright
        self._context = None
        self._browser = None
        self._playwright = None

        try:
            if context is not None:
                await context.close()
        finally:
            try:
                if browser is not None:
                    await browser.close()
            finally:
                if playwright is not None:
                    await playwright.stop()
        logger.info("Browser session closed")


class PlaywrightDriver:
    """Launches headless Chromium sessions through Playwright."""

    def __init__(
        self,
        *,
        headless: Optional[bool] = None,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        executable_path: Optional[str] = None,
        channel: Optional[str] = None,
        playwright_factory: Optional[Any] = None,
    ) -> None:
        self.headless = _parse_bool_env("NOCTURNE_HEADLESS", True) if headless is None else bool(headless)
        self.navigation_timeout_ms = navigation_timeout_ms
        self.executable_path = (
            executable_path or os.getenv("NOCTURNE_BROWSER_EXECUTABLE_PATH", "").strip() or None
        )
        self.channel = channel or os.getenv("NOCTURNE_BROWSER_CHANNEL", "").strip() or None
        self._playwright_factory = playwright_factory

    def _launch_kwargs(self) -> Dict[str, Any]:
        args: List[str] = [
            "--disable-dev-shm-usage",
            "--no-first-run",
            "--no-default-browser-check",
        ]
        kwargs: Dict[str, Any] = {
            "headless": self.headless,
            "args": args,
            "chromium_sandbox": False,
        }
        if self.executable_path:
            kwargs["executable_path"] = os.path.expanduser(self.executable_path)
        elif self.channel:
            kwargs["channel"] = self.channel
        return kwargs

    def _resolve_playwright_factory(self) -> Any:
        if self._playwright_factory is not None:
            return self._playwright_factory
        try:
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise DriverError(
                "playwright is not installed. Install it with: pip install playwright "
                "&& playwright install chromium",
                operation="create_session",
            ) from exc
        return async_playwright

    async def create_session(self) -> PlaywrightSession:
        factory = self._resolve_playwright_factory()
        playwright = None
        browser = None
        try:
            playwright = await factory().start()
            browser = await playwright.chromium.launch(**self._launch_kwargs())
            context = await browser.new_context()
        except Exception as exc:
            await self._cleanup_partial_start(playwright, browser)
            raise _driver_error("create_session", exc) from exc

        logger.info(
            "Browser session started headless=%s channel=%s",
            self.headless,
            self.channel or "chromium",
        )
        return PlaywrightSession(
            playwright,
            browser,
            context,
            navigation_timeout_ms=self.navigation_timeout_ms,
        )

    @staticmethod
    async def _cleanup_partial_start(playwright: Any, browser: Any) -> None:
        try:
            if browser is not None:
                await browser.close()
        except Exception:
            logger.debug("Ignoring browser close failure during partial start cleanup", exc_info=True)
        try:
            if playwright is not None:
                await playwright.stop()
        except Exception:
            logger.debug("Ignoring playwright stop failure during partial start cleanup", exc_info=True)
