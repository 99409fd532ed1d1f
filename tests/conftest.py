"""
Shared fakes for session tests.

FakeClock advances virtual time only when something sleeps through it, so
poll ticks and delays are deterministic. FakeDriver records every driver call
in order and counts overlapping calls to detect broken serialization.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from nocturne.polling import Clock
from nocturne.scripts import ELEMENT_PRESENT_JS, PAGE_LOADED_JS, PAGE_UNLOADED_JS


class FakeClock(Clock):
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def now_ms(self) -> float:
        return self.now

    async def sleep_ms(self, ms: float) -> None:
        self.sleeps.append(ms)
        self.now += max(0.0, float(ms))
        await asyncio.sleep(0)


class FakePage:
    def __init__(self, driver: "FakeDriver") -> None:
        self.driver = driver
        # selector -> virtual time (ms) at which the element exists
        self.elements: Dict[str, float] = {}
        self.readiness: Callable[[float], str] = lambda now: "complete"
        self.results: Dict[str, Any] = {}

    async def open(self, url: str) -> str:
        await self.driver._call("open", url)
        return "success"

    async def evaluate(self, script: str, *args: Any) -> Any:
        await self.driver._call("evaluate", script, *args)
        now = self.driver.clock.now
        if script == ELEMENT_PRESENT_JS:
            appear_at = self.elements.get(args[0])
            return appear_at is not None and now >= appear_at
        if script == PAGE_LOADED_JS:
            return self.readiness(now) == "complete"
        if script == PAGE_UNLOADED_JS:
            return self.readiness(now) != "complete"
        return self.results.get(script)

    async def upload_file(self, selector: str, path: str) -> None:
        await self.driver._call("upload_file", selector, path)


class FakeDriverSession:
    def __init__(self, driver: "FakeDriver") -> None:
        self.driver = driver
        self.closed = False

    async def create_page(self) -> FakePage:
        await self.driver._call("create_page")
        return self.driver.page

    async def close(self) -> None:
        self.closed = True


class FakeDriver:
    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: List[tuple] = []
        # call name -> exception, or callable(*args) returning an exception or None
        self.failures: Dict[str, Any] = {}
        self.active = 0
        self.overlaps = 0
        self.page = FakePage(self)
        self.sessions: List[FakeDriverSession] = []

    async def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        self.active += 1
        if self.active > 1:
            self.overlaps += 1
        try:
            await asyncio.sleep(0)
            failure: Optional[Any] = self.failures.get(name)
            if callable(failure) and not isinstance(failure, BaseException):
                failure = failure(*args)
            if failure is not None:
                raise failure
        finally:
            self.active -= 1

    async def create_session(self) -> FakeDriverSession:
        await self._call("create_session")
        session = FakeDriverSession(self)
        self.sessions.append(session)
        return session

    def names(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def driver(clock):
    return FakeDriver(clock)


@pytest.fixture
def make_driver(clock):
    def _make() -> FakeDriver:
        return FakeDriver(clock)
    return _make
