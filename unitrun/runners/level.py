"""Lifecycle template shared by every composite level of the run tree."""

import logging
from collections.abc import Awaitable, Callable, Hashable, Iterable
from functools import partial
from typing import Protocol

from unitrun.faults import FaultCollector
from unitrun.models.messages import Level, UnitCleanupFailure, UnitFinished, UnitStarting
from unitrun.models.summary import RunSummary
from unitrun.runners.context import RunContext

log = logging.getLogger(__name__)


class Unit(Protocol):
    """Identity of a unit in the run tree."""

    @property
    def unique_id(self) -> str: ...

    @property
    def parent_id(self) -> str | None: ...

    @property
    def display_name(self) -> str: ...


class LevelHooks(Protocol):
    """Capabilities a level plugs into :func:`run_level`."""

    async def after_starting(self, context: RunContext) -> None: ...

    async def run_children(self, context: RunContext) -> RunSummary: ...

    async def before_finished(self, context: RunContext) -> None: ...


async def run_level(
    level: Level,
    unit: Unit,
    hooks: LevelHooks,
    context: RunContext,
) -> RunSummary:
    """Run one composite level and return its rolled-up summary.

    The finished message is sent even when the starting message was
    rejected, so aggregate consumers always see a closing total. No
    exception raised by a hook or by the children escapes this call.
    """
    summary = RunSummary()
    collector = context.collector
    log.debug("Starting %s %s", level, unit.display_name)

    try:
        starting = UnitStarting(
            level=level,
            unit_id=unit.unique_id,
            parent_id=unit.parent_id,
            display_name=unit.display_name,
        )
        if not context.send(starting):
            summary.continue_run = False
            return summary

        await collector.run_async(partial(hooks.after_starting, context))

        escaped = FaultCollector()
        children = await escaped.run_async(partial(hooks.run_children, context))
        if children is not None:
            summary = children

        collector.clear()
        collector.aggregate(escaped)
        await collector.run_async(partial(hooks.before_finished, context))

        if (exception := collector.to_exception()) is not None:
            log.warning(
                "Cleanup failure in %s %s: %s", level, unit.display_name, exception
            )
            cleanup_failure = UnitCleanupFailure.from_exception(
                exception,
                level=level,
                unit_id=unit.unique_id,
                parent_id=unit.parent_id,
            )
            if not context.send(cleanup_failure):
                summary.continue_run = False
    finally:
        finished = UnitFinished(
            level=level,
            unit_id=unit.unique_id,
            parent_id=unit.parent_id,
            time=summary.time,
            total=summary.total,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        if not context.send(finished):
            summary.continue_run = False
        log.debug(
            "Finished %s %s: total=%d failed=%d skipped=%d",
            level,
            unit.display_name,
            summary.total,
            summary.failed,
            summary.skipped,
        )

    return summary


async def run_sequentially[T](
    children: Iterable[T],
    run_child: Callable[[T, RunContext], Awaitable[RunSummary]],
    context: RunContext,
) -> RunSummary:
    """Run children one after another, each with a branched context.

    No child is issued once cancellation has been observed; the partial
    summary is returned.
    """
    summary = RunSummary()
    for child in children:
        if context.cancellation.is_cancelled:
            break
        summary.aggregate(await run_child(child, context.branch()))
    return summary


def group_by[T](items: Iterable[T], key: Callable[[T], Hashable]) -> list[list[T]]:
    """Group items by key, keeping first-seen order of groups and items."""
    groups: dict[Hashable, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return list(groups.values())
