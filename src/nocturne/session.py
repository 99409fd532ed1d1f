"""
Session facade.

A `Session` owns one driver page, the task queue, the timing options and the
error handler. Every public action method queues one task, nudges the
executor and returns the session, so calls chain:

    session = Session({"timeout": 5000})
    session.navigate("https://example.com").click("#more").wait().done(extract)
    await session.run()
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Union

from .actions import SessionActionsMixin
from .config import SessionOptions
from .driver import BrowserDriver, DriverSession, PlaywrightDriver
from .executor import Task, TaskQueueExecutor
from .logging_utils import _log_session_event
from .polling import Clock, ConditionPoller, PageLoadWatcher

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException], Any]


class Session(SessionActionsMixin):
    """Chainable, strictly ordered browser automation over a single page."""

    def __init__(
        self,
        options: Optional[Union[SessionOptions, Mapping[str, Any]]] = None,
        *,
        driver: Optional[BrowserDriver] = None,
        clock: Optional[Clock] = None,
        **overrides: Any,
    ) -> None:
        base = options if isinstance(options, SessionOptions) else SessionOptions.from_mapping(options)
        self.options = SessionOptions.from_mapping(overrides, base=base)

        self._driver: BrowserDriver = driver or PlaywrightDriver(
            headless=self.options.headless,
            navigation_timeout_ms=self.options.navigation_timeout_ms,
        )
        self._driver_session: Optional[DriverSession] = None
        self._page: Any = None
        self._on_error: Optional[ErrorHandler] = None

        self._poller = ConditionPoller(clock=clock, on_error=self._error)
        self._watcher = PageLoadWatcher(
            self._poller,
            self.evaluate_now,
            timeout_ms=self.options.timeout_ms,
            interval_ms=self.options.interval_ms,
        )
        self._executor = TaskQueueExecutor(on_error=self._error)
        self.setup()

    def __repr__(self) -> str:
        return (
            f"Session(timeout_ms={self.options.timeout_ms}, "
            f"interval_ms={self.options.interval_ms}, "
            f"executing={self._executor.executing}, pending={self._executor.pending})"
        )

    @property
    def page(self) -> Any:
        return self._page

    @property
    def executing(self) -> bool:
        return self._executor.executing

    def _push(self, handler: Callable[..., Any], *args: Any) -> "Session":
        self._executor.enqueue(Task(handler, args))
        return self

    # Public action methods.

    def setup(self) -> "Session":
        """Create the driver session and page. Queued automatically on construction."""
        return self._push(self._setup)

    def navigate(self, url: str) -> "Session":
        return self._push(self._navigate, url)

    def click(self, selector: str) -> "Session":
        return self._push(self._click, selector)

    def type(self, selector: str, text: str) -> "Session":
        return self._push(self._type, selector, text)

    def upload(self, selector: str, path: str) -> "Session":
        return self._push(self._upload, selector, path)

    def wait(self, condition: Any = None) -> "Session":
        """
        Wait for the next page load (no argument), a number of milliseconds
        (number), or an element matching a selector (string).
        """
        return self._push(self._wait, condition)

    def done(self, callback: Callable[["Session"], Any]) -> "Session":
        """Call `callback(session)` once everything queued before it has run."""
        return self._push(self._done, callback)

    def evaluate(
        self,
        script: str,
        *args: Any,
        callback: Optional[Callable[[Any], Any]] = None,
    ) -> "Session":
        """Evaluate `script` in the page and hand its result to `callback`."""
        return self._push(self._evaluate, script, args, callback)

    def error(self, handler: Optional[ErrorHandler]) -> "Session":
        """Set the error handler, replacing any previous one."""
        self._on_error = handler
        return self

    # Page helpers usable from `done` callbacks and handlers.

    async def evaluate_now(self, script: str, *args: Any) -> Any:
        return await self._require_page().evaluate(script, *args)

    async def until_on_page(self, script: str, *args: Any) -> bool:
        """Poll `script` in the page until it returns a truthy value or the timeout elapses."""
        return await self._poller.poll(
            lambda: self.evaluate_now(script, *args),
            self.options.timeout_ms,
            self.options.interval_ms,
        )

    async def after_next_page_load(self) -> bool:
        return await self._watcher.wait_for_next_load()

    # Lifecycle.

    async def run(self) -> "Session":
        """Wait until queued work has run (or a failure halted it)."""
        await self._executor.wait_idle()
        return self

    async def close(self) -> None:
        """
        Let the batch in flight finish, drop whatever is still queued, then
        close the driver session. Teardown never starts a new batch.
        """
        await self._executor.wait_current()
        dropped = self._executor.clear()
        if dropped:
            _log_session_event(logger, level=logging.DEBUG, event="close_discard", discarded=dropped)
        driver_session = self._driver_session
        self._driver_session = None
        self._page = None
        if driver_session is not None:
            await driver_session.close()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self._executor.wait_idle()
        else:
            self._executor.clear()
        await self.close()

    def _error(self, error: BaseException) -> None:
        _log_session_event(logger, level=logging.ERROR, event="error", error=repr(error))
        handler = self._on_error
        if handler is None:
            return
        try:
            handler(error)
        except Exception:
            logger.exception("Error handler raised while handling %r", error)
