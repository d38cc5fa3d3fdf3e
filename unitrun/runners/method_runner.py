"""Runner for the test-method level."""

from collections.abc import Sequence
from dataclasses import dataclass

from unitrun.constructor import NO_ARGUMENTS, ConstructorArguments
from unitrun.hooks import run_hooks
from unitrun.models.summary import RunSummary
from unitrun.models.units import TestCase, TestMethod
from unitrun.runners.case_runner import create_case_runner
from unitrun.runners.context import RunContext
from unitrun.runners.level import run_level, run_sequentially


@dataclass(frozen=True, kw_only=True)
class MethodRunner:
    """Runs the cases of one test method in order."""

    test_method: TestMethod
    test_cases: Sequence[TestCase]
    constructor_arguments: ConstructorArguments = NO_ARGUMENTS

    async def run(self, context: RunContext) -> RunSummary:
        return await run_level("method", self.test_method, self, context)

    async def after_starting(self, context: RunContext) -> None:
        await run_hooks(self.test_method.hooks.after_starting, context.collector)

    async def run_children(self, context: RunContext) -> RunSummary:
        return await run_sequentially(self.test_cases, self._run_case, context)

    async def before_finished(self, context: RunContext) -> None:
        await run_hooks(self.test_method.hooks.before_finished, context.collector)

    async def _run_case(self, test_case: TestCase, context: RunContext) -> RunSummary:
        runner = create_case_runner(test_case, self.constructor_arguments)
        return await runner.run(context)
