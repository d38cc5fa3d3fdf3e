"""Fault collection for fallible extension points.

Every hook, orderer and test body in the run tree executes through a
:class:`FaultCollector`. Exceptions are recorded, never rethrown, and are
surfaced later as test failures or cleanup-failure messages.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable

from unitrun.models.failure import FailureInfo

log = logging.getLogger(__name__)


class TestClassError(Exception):
    """Raised (or recorded) when a test class cannot be constructed."""

    __test__ = False


class ExecutionError(Exception):
    """A test case that could not be executed at all."""


class DynamicSkip(Exception):
    """Raised by a test body to mark itself skipped at run time."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class FaultCollector:
    """Ordered list of captured exceptions.

    A collector is branched with :meth:`branch`, which copies the faults
    recorded so far. The copy and the original are independent: clearing
    one never affects the other.
    """

    def __init__(self, faults: Iterable[Exception] = ()) -> None:
        self._faults: list[Exception] = list(faults)

    def __repr__(self) -> str:
        return f"FaultCollector({self._faults!r})"

    @property
    def faults(self) -> tuple[Exception, ...]:
        return tuple(self._faults)

    @property
    def has_faults(self) -> bool:
        return bool(self._faults)

    def branch(self) -> "FaultCollector":
        """Return an independent collector seeded with the current faults."""
        return FaultCollector(self._faults)

    def add(self, exception: Exception) -> None:
        log.debug("Captured fault: %r", exception)
        self._faults.append(exception)

    def aggregate(self, other: "FaultCollector") -> None:
        self._faults.extend(other.faults)

    def clear(self) -> None:
        self._faults.clear()

    def run[T](self, func: Callable[[], T], default: T | None = None) -> T | None:
        """Call ``func``; on failure record the exception and return ``default``."""
        try:
            return func()
        except Exception as exc:
            self.add(exc)
            return default

    async def run_async[T](
        self, func: Callable[[], Awaitable[T]], default: T | None = None
    ) -> T | None:
        """Await ``func()``; on failure record the exception and return ``default``."""
        try:
            return await func()
        except Exception as exc:
            self.add(exc)
            return default

    def to_exception(self) -> Exception | None:
        """Collapse the faults into one exception, or ``None`` if there are none."""
        if not self._faults:
            return None
        if len(self._faults) == 1:
            return self._faults[0]
        return ExceptionGroup("Multiple failures were recorded", self._faults)

    def to_failure(self) -> FailureInfo | None:
        """Flatten the faults for transmission, or ``None`` if there are none."""
        exception = self.to_exception()
        if exception is None:
            return None
        return FailureInfo.from_exception(exception)
