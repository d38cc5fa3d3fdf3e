"""User lifecycle hooks attached to units of the run tree."""

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from unitrun.faults import FaultCollector

Hook = Callable[[], Awaitable[None] | None]


@dataclass(frozen=True, kw_only=True)
class LifecycleHooks:
    """Callables run after a unit starts and before it finishes."""

    after_starting: Sequence[Hook] = ()
    before_finished: Sequence[Hook] = ()


NO_HOOKS = LifecycleHooks()


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


async def run_hooks(hooks: Sequence[Hook], collector: FaultCollector) -> None:
    """Run every hook in order, capturing each failure into ``collector``."""
    for hook in hooks:
        await collector.run_async(lambda hook=hook: maybe_await(hook()))
