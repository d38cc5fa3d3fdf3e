"""Runner for the assembly level, and the entry point for running a tree."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from unitrun.bus import MessageBus
from unitrun.cancellation import CancellationSignal
from unitrun.hooks import run_hooks
from unitrun.models.summary import RunSummary
from unitrun.models.units import TestAssembly, TestCase
from unitrun.ordering import order_with_fallback
from unitrun.runners.collection_runner import CollectionRunner
from unitrun.runners.context import ExecutionOptions, RunContext
from unitrun.runners.level import group_by, run_level, run_sequentially

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class AssemblyRunner:
    """Runs the collections of one assembly in the configured order."""

    test_assembly: TestAssembly
    test_cases: Sequence[TestCase]

    async def run(self, context: RunContext) -> RunSummary:
        return await run_level("assembly", self.test_assembly, self, context)

    async def after_starting(self, context: RunContext) -> None:
        await run_hooks(self.test_assembly.hooks.after_starting, context.collector)

    async def run_children(self, context: RunContext) -> RunSummary:
        grouped = {
            cases[0].test_collection.unique_id: cases
            for cases in group_by(
                self.test_cases, lambda case: case.test_collection.unique_id
            )
        }
        collections = [cases[0].test_collection for cases in grouped.values()]
        ordered = order_with_fallback(
            context.options.collection_orderer, collections, context.send_diagnostic
        )
        runners = [
            CollectionRunner(
                test_collection=collection, test_cases=grouped[collection.unique_id]
            )
            for collection in ordered
        ]
        return await run_sequentially(
            runners, lambda runner, child_context: runner.run(child_context), context
        )

    async def before_finished(self, context: RunContext) -> None:
        await run_hooks(self.test_assembly.hooks.before_finished, context.collector)


async def run_assembly(
    test_assembly: TestAssembly,
    test_cases: Sequence[TestCase],
    *,
    bus: MessageBus,
    options: ExecutionOptions | None = None,
    cancellation: CancellationSignal | None = None,
    diagnostics: MessageBus | None = None,
) -> RunSummary:
    """Run ``test_cases`` as one assembly, reporting through ``bus``.

    Args:
        test_assembly: Root unit of the run.
        test_cases: Cases to run, in discovery order.
        bus: Receives every lifecycle message; returning False cancels.
        options: Subject, orderers and constructor policy.
        cancellation: Shared signal, for hosts that cancel from outside.
        diagnostics: Receives engine notices instead of ``bus`` when set.

    Returns:
        The assembly's rolled-up summary.
    """
    context = RunContext(
        bus=bus,
        cancellation=cancellation or CancellationSignal(),
        options=options or ExecutionOptions(),
        diagnostics=diagnostics,
    )
    log.info("Running %d test cases in %s", len(test_cases), test_assembly.name)
    runner = AssemblyRunner(test_assembly=test_assembly, test_cases=test_cases)
    return await runner.run(context)
