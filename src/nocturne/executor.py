"""
Serialized task-queue executor.

Tasks are appended by the owning Session and drained in batches: every drain
snapshots the queue, clears it, and runs the snapshot strictly in order on a
single asyncio task. A failing task aborts the rest of its batch and is
reported once through the error callback. Work appended while a batch is in
flight is picked up by the same runner once the batch succeeds.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from .logging_utils import _log_session_event

logger = logging.getLogger(__name__)

TaskHandler = Callable[..., Awaitable[Any]]
ErrorCallback = Callable[[BaseException], None]


@dataclass(frozen=True)
class Task:
    handler: TaskHandler
    args: Tuple[Any, ...] = ()

    @property
    def name(self) -> str:
        return getattr(self.handler, "__name__", repr(self.handler)).lstrip("_")

    async def run(self) -> Any:
        return await self.handler(*self.args)


class TaskQueueExecutor:
    """
    Runs queued tasks one at a time, in enqueue order.

    At most one runner exists per executor. `executing` is true exactly while
    that runner is alive and is reset on every exit path.
    """

    def __init__(self, on_error: Optional[ErrorCallback] = None) -> None:
        self._queue: List[Task] = []
        self._executing = False
        self._runner: Optional[asyncio.Task] = None
        self._on_error = on_error
        self._batch_count = 0

    @property
    def executing(self) -> bool:
        return self._executing

    @property
    def pending(self) -> int:
        return len(self._queue)

    def enqueue(self, task: Task) -> None:
        self._queue.append(task)
        self.drain()

    def clear(self) -> int:
        """Drop tasks that have not been picked up by a batch yet."""
        dropped = len(self._queue)
        self._queue = []
        return dropped

    def drain(self) -> Optional[asyncio.Task]:
        if self._executing or not self._queue:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; %d task(s) stay queued", len(self._queue))
            return None

        self._executing = True
        batch = self._take_batch()
        try:
            runner = loop.create_task(self._run(batch))
        except BaseException:
            self._executing = False
            self._queue[:0] = batch
            raise
        self._runner = runner
        runner.add_done_callback(self._on_runner_done)
        return runner

    async def wait_idle(self) -> None:
        """
        Nudge the executor and wait for the current runner to finish.

        Returns immediately when called from inside a running task, since a
        task can never wait for its own batch to finish.
        """
        self.drain()
        await self.wait_current()

    async def wait_current(self) -> None:
        """Wait for the runner already in flight, without starting a new one."""
        runner = self._runner
        if runner is None or runner.done():
            return
        if runner is asyncio.current_task():
            return
        await asyncio.shield(runner)

    def _on_runner_done(self, runner: asyncio.Task) -> None:
        # A runner cancelled before its first step never reaches its finally block.
        if self._runner is runner:
            self._executing = False
            self._runner = None

    def _take_batch(self) -> List[Task]:
        batch = self._queue
        self._queue = []
        return batch

    async def _run(self, batch: List[Task]) -> None:
        try:
            while True:
                if not await self._run_batch(batch):
                    return
                if not self._queue:
                    return
                batch = self._take_batch()
        finally:
            self._executing = False
            self._runner = None

    async def _run_batch(self, batch: List[Task]) -> bool:
        self._batch_count += 1
        batch_id = self._batch_count
        _log_session_event(logger, level=logging.DEBUG, event="batch_start", batch=batch_id, size=len(batch))
        for index, task in enumerate(batch):
            try:
                await task.run()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                _log_session_event(
                    logger,
                    level=logging.DEBUG,
                    event="batch_abort",
                    batch=batch_id,
                    task=task.name,
                    discarded=len(batch) - index - 1,
                )
                self._report(exc)
                return False
        _log_session_event(logger, level=logging.DEBUG, event="batch_done", batch=batch_id)
        return True

    def _report(self, error: BaseException) -> None:
        if self._on_error is None:
            logger.error("Task failed: %s", error)
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Error callback raised while handling %r", error)
