"""
nocturne: chainable, strictly ordered headless-browser automation.

Actions queued on a `Session` run one at a time against a single page, in the
order they were queued.
"""

from .config import SessionOptions
from .driver import BrowserDriver, DriverPage, DriverSession, PlaywrightDriver
from .exceptions import DriverError, NocturneError, PredicateEvaluationError
from .executor import Task, TaskQueueExecutor
from .polling import Clock, ConditionPoller, PageLoadWatcher
from .session import Session

__version__ = "0.1.0"

__all__ = [
    "BrowserDriver",
    "Clock",
    "ConditionPoller",
    "DriverError",
    "DriverPage",
    "DriverSession",
    "NocturneError",
    "PageLoadWatcher",
    "PlaywrightDriver",
    "PredicateEvaluationError",
    "Session",
    "SessionOptions",
    "Task",
    "TaskQueueExecutor",
]
