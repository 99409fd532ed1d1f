"""
Timeout-bounded condition polling.

`ConditionPoller` evaluates a predicate on a fixed interval until it holds or
the timeout elapses, then completes exactly once. `PageLoadWatcher` chains two
polls over `document.readyState` to detect that a new page finished loading.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Union

from .exceptions import PredicateEvaluationError
from .logging_utils import _log_session_event
from .scripts import PAGE_LOADED_JS, PAGE_UNLOADED_JS

logger = logging.getLogger(__name__)

Predicate = Callable[[], Union[bool, Awaitable[bool]]]
Evaluate = Callable[..., Awaitable[Any]]


class Clock:
    """Monotonic milliseconds plus an awaitable sleep."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0

    async def sleep_ms(self, ms: float) -> None:
        await asyncio.sleep(max(0.0, float(ms)) / 1000.0)


class ConditionPoller:
    def __init__(
        self,
        clock: Optional[Clock] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.clock = clock or Clock()
        self._on_error = on_error

    async def delay(self, ms: float) -> None:
        await self.clock.sleep_ms(ms)

    async def poll(
        self,
        predicate: Predicate,
        timeout_ms: float,
        interval_ms: float,
        on_done: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """
        Evaluate `predicate` every `interval_ms` until it holds or `timeout_ms` elapses.

        The first evaluation happens one interval after the call, never at t=0,
        and later ones stay on the same fixed cadence however long each takes.
        Elapsed time is measured from this call and compared inclusively with the
        timeout. `on_done` runs exactly once when polling stops; no tick follows it.

        Returns:
            True if the predicate held, False if the timeout was reached.
        """
        interval = max(1.0, float(interval_ms))
        start = self.clock.now_ms()
        next_tick = start + interval
        ticks = 0
        while True:
            await self.clock.sleep_ms(max(0.0, next_tick - self.clock.now_ms()))
            ticks += 1
            satisfied = await self._check(predicate)
            now = self.clock.now_ms()
            elapsed = now - start
            if satisfied or elapsed >= timeout_ms:
                break
            # Ticks stay on the start + n * interval grid; missed ones are skipped.
            next_tick += interval
            while next_tick <= now:
                next_tick += interval

        _log_session_event(
            logger,
            level=logging.DEBUG,
            event="poll_done",
            satisfied=satisfied,
            ticks=ticks,
            elapsed_ms=int(elapsed),
        )
        if on_done is not None:
            result = on_done()
            if inspect.isawaitable(result):
                await result
        return satisfied

    async def _check(self, predicate: Predicate) -> bool:
        try:
            result = predicate()
            if inspect.isawaitable(result):
                result = await result
            return bool(result)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._forward_error(exc)
            return False

    def _forward_error(self, exc: Exception) -> None:
        error: BaseException = exc
        if not isinstance(exc, PredicateEvaluationError):
            error = PredicateEvaluationError(f"Predicate evaluation failed: {exc}")
            error.__cause__ = exc
        if self._on_error is None:
            logger.warning("%s", error)
            return
        self._on_error(error)


class PageLoadWatcher:
    """Wait for the page to leave the "complete" readiness state and then re-enter it."""

    def __init__(
        self,
        poller: ConditionPoller,
        evaluate: Evaluate,
        timeout_ms: float,
        interval_ms: float,
    ) -> None:
        self.poller = poller
        self._evaluate = evaluate
        self.timeout_ms = timeout_ms
        self.interval_ms = interval_ms

    async def wait_for_next_load(self) -> bool:
        unloaded = await self.poller.poll(
            lambda: self._evaluate(PAGE_UNLOADED_JS),
            self.timeout_ms,
            self.interval_ms,
        )
        _log_session_event(logger, level=logging.DEBUG, event="page_unload", detected=unloaded)

        loaded = await self.poller.poll(
            lambda: self._evaluate(PAGE_LOADED_JS),
            self.timeout_ms,
            self.interval_ms,
        )
        _log_session_event(logger, level=logging.DEBUG, event="page_load", detected=loaded)
        return loaded
