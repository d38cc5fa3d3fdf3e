"""Fixtures shared by every test of a collection or a class.

A fixture is created from a factory when its collection or class starts
and disposed before that unit finishes. Factories may be plain or async
callables; a value that is an (async) context manager is entered on
creation and exited on disposal. Factory parameters are resolved from the
fixtures of enclosing units.
"""

import inspect
import logging
from collections.abc import Callable, Mapping
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any

from unitrun.constructor import (
    DECLINED,
    ConstructorArgumentResolver,
    FixtureResolver,
    NoArgumentResolver,
    format_missing_arguments,
)
from unitrun.faults import FaultCollector, TestClassError
from unitrun.hooks import maybe_await

log = logging.getLogger(__name__)

type FixtureFactory = Callable[..., Any]


@dataclass(kw_only=True)
class FixtureScope:
    """The live fixtures of one unit.

    Creation and disposal faults are recorded in the collector passed to
    :meth:`create` and :meth:`dispose`; a fixture that failed to build is
    simply absent from :attr:`values`.
    """

    owner: str
    factories: Mapping[str, FixtureFactory]
    parent: ConstructorArgumentResolver = field(default_factory=NoArgumentResolver)
    values: dict[str, Any] = field(default_factory=dict, init=False)
    _exit_stack: AsyncExitStack = field(default_factory=AsyncExitStack, init=False)

    async def create(self, collector: FaultCollector) -> None:
        for name, factory in self.factories.items():
            try:
                self.values[name] = await self._create(name, factory)
            except TestClassError as exc:
                log.warning("%s", exc)
                collector.add(exc)
            except Exception as exc:
                log.warning("Fixture %s of %s could not be created: %r", name, self.owner, exc)
                error = TestClassError(
                    f"Fixture '{name}' of {self.owner} raised "
                    f"{type(exc).__name__}: {exc}"
                )
                error.__cause__ = exc
                collector.add(error)

    async def _create(self, name: str, factory: FixtureFactory) -> Any:
        args, kwargs = self._arguments(name, factory)
        value = await maybe_await(factory(*args, **kwargs))
        if hasattr(value, "__aenter__") and hasattr(value, "__aexit__"):
            return await self._exit_stack.enter_async_context(value)
        if hasattr(value, "__enter__") and hasattr(value, "__exit__"):
            return self._exit_stack.enter_context(value)
        return value

    def _arguments(
        self, name: str, factory: FixtureFactory
    ) -> tuple[list[Any], dict[str, Any]]:
        try:
            parameters = inspect.signature(factory).parameters.values()
        except (TypeError, ValueError):
            return [], {}

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        unresolved: list[inspect.Parameter] = []
        for parameter in parameters:
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                continue
            value = self.parent.try_resolve(parameter)
            if value is DECLINED:
                if parameter.default is parameter.empty:
                    unresolved.append(parameter)
                continue
            if parameter.kind is parameter.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[parameter.name] = value

        if unresolved:
            raise TestClassError(
                f"Fixture '{name}': " + format_missing_arguments(unresolved)
            )
        return args, kwargs

    async def dispose(self, collector: FaultCollector) -> None:
        """Exit every entered fixture, most recently created first."""
        self.values.clear()
        await collector.run_async(self._exit_stack.aclose)

    def resolver(self) -> FixtureResolver:
        return FixtureResolver.from_values(self.values)
