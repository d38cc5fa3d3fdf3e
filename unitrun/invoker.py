"""Test subjects: the callables that actually execute a test body."""

import contextlib
import io
import sys
import time
from collections.abc import AsyncGenerator, Iterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from unitrun.constructor import ConstructorArguments
from unitrun.hooks import maybe_await
from unitrun.models.units import Test


class TestSubject(Protocol):
    """Executes one test invocation."""

    __test__ = False

    async def invoke(
        self,
        test: Test,
        constructor_arguments: ConstructorArguments,
        method_arguments: tuple[Any, ...],
    ) -> tuple[Decimal, str]:
        """Run the test and return ``(elapsed seconds, captured output)``.

        Raises whatever the test body raises.
        """
        ...


def elapsed_since(started: float) -> Decimal:
    """Seconds since a ``perf_counter`` reading, to microsecond precision."""
    return Decimal(time.perf_counter() - started).quantize(Decimal("0.000001"))


_output_buffer: ContextVar[io.StringIO | None] = ContextVar(
    "unitrun_output_buffer", default=None
)


class OutputRouter:
    """Stand-in for ``sys.stdout`` that writes to the current capture buffer.

    Each asyncio task sees its own buffer through a context variable, so
    tests running concurrently never write into each other's output.
    Writes made outside any capture go to the wrapped stream.
    """

    def __init__(self, stream: Any) -> None:
        self.stream = stream
        self.users = 0

    def write(self, text: str) -> int:
        buffer = _output_buffer.get()
        if buffer is None:
            return self.stream.write(text)
        return buffer.write(text)

    def flush(self) -> None:
        if _output_buffer.get() is None:
            self.stream.flush()

    def __getattr__(self, name: str) -> Any:
        return getattr(self.stream, name)


@contextlib.contextmanager
def captured_output() -> Iterator[io.StringIO]:
    """Capture stdout written by the current task into a fresh buffer.

    The router is installed by the first capture and removed by the last,
    whatever order concurrent captures finish in.
    """
    router = sys.stdout if isinstance(sys.stdout, OutputRouter) else None
    if router is None:
        router = OutputRouter(sys.stdout)
        sys.stdout = router
    router.users += 1

    buffer = io.StringIO()
    token = _output_buffer.set(buffer)
    try:
        yield buffer
    finally:
        _output_buffer.reset(token)
        router.users -= 1
        if router.users == 0 and sys.stdout is router:
            sys.stdout = router.stream


@dataclass(frozen=True, kw_only=True)
class MethodSubject:
    """Calls the test method on a freshly constructed container instance.

    Instances that are (async) context managers are entered around the
    call. Module containers are not constructed; their functions are
    called directly. Output written to stdout is captured.
    """

    capture_output: bool = True

    async def invoke(
        self,
        test: Test,
        constructor_arguments: ConstructorArguments,
        method_arguments: tuple[Any, ...],
    ) -> tuple[Decimal, str]:
        test_method = test.test_case.test_method
        test_class = test_method.test_class
        capture = captured_output() if self.capture_output else contextlib.nullcontext()

        started = time.perf_counter()
        with capture as buffer:
            if test_class.is_static:
                await maybe_await(test_method.function(*method_arguments))
            else:
                instance = test_class.container(
                    *constructor_arguments.args, **constructor_arguments.kwargs
                )
                async with _entered(instance):
                    method = getattr(instance, test_method.name)
                    await maybe_await(method(*method_arguments))

        return elapsed_since(started), buffer.getvalue() if buffer is not None else ""


@asynccontextmanager
async def _entered(instance: Any) -> AsyncGenerator[Any, None]:
    if hasattr(instance, "__aenter__") and hasattr(instance, "__aexit__"):
        async with instance:
            yield instance
    elif hasattr(instance, "__enter__") and hasattr(instance, "__exit__"):
        with instance:
            yield instance
    else:
        yield instance
