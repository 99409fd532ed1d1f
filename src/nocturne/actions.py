"""Action handler mixin for Session: one coroutine per queued action kind."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Optional, Tuple

from .exceptions import NocturneError
from .logging_utils import _log_session_event
from .scripts import CLICK_JS, ELEMENT_PRESENT_JS, TYPE_JS

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SessionActionsMixin:
    """
    Handlers run inside the executor, one at a time.

    Each handler returns when its action completed and raises on failure.
    Handlers read the page handle but never touch the task queue.
    """

    def _require_page(self) -> Any:
        page = self._page
        if page is None:
            raise NocturneError("No page available; session setup did not complete")
        return page

    async def _setup(self) -> None:
        logger.debug("Creating driver session...")
        driver_session = await self._driver.create_session()
        self._driver_session = driver_session
        logger.debug("Creating driver page...")
        self._page = await driver_session.create_page()
        _log_session_event(logger, level=logging.DEBUG, event="setup_done")

    async def _navigate(self, url: str) -> None:
        page = self._require_page()
        _log_session_event(logger, level=logging.DEBUG, event="navigate", url=url)
        status = await page.open(url)
        _log_session_event(logger, level=logging.DEBUG, event="page_opened", url=url, status=status)
        # Let initial in-page scripts run before the next action.
        await self._poller.delay(self.options.settle_ms)

    async def _click(self, selector: str) -> None:
        page = self._require_page()
        _log_session_event(logger, level=logging.DEBUG, event="click", selector=selector)
        await page.evaluate(CLICK_JS, selector)

    async def _type(self, selector: str, text: str) -> None:
        page = self._require_page()
        _log_session_event(logger, level=logging.DEBUG, event="type", selector=selector)
        await page.evaluate(TYPE_JS, selector, text)

    async def _upload(self, selector: str, path: str) -> None:
        page = self._require_page()
        _log_session_event(logger, level=logging.DEBUG, event="upload", selector=selector, path=path)
        await page.upload_file(selector, path)

    async def _wait(self, condition: Any = None) -> None:
        if _is_number(condition):
            _log_session_event(logger, level=logging.DEBUG, event="wait_delay", ms=condition)
            await self._poller.delay(condition)
        elif isinstance(condition, str):
            _log_session_event(logger, level=logging.DEBUG, event="wait_selector", selector=condition)
            await self.until_on_page(ELEMENT_PRESENT_JS, condition)
        else:
            _log_session_event(logger, level=logging.DEBUG, event="wait_page_load")
            await self.after_next_page_load()

    async def _done(self, callback: Callable[[Any], Any]) -> None:
        result = callback(self)
        if inspect.isawaitable(result):
            await result

    async def _evaluate(
        self,
        script: str,
        args: Tuple[Any, ...],
        callback: Optional[Callable[[Any], Any]],
    ) -> None:
        page = self._require_page()
        value = await page.evaluate(script, *args)
        if callback is None:
            return
        result = callback(value)
        if inspect.isawaitable(result):
            await result
