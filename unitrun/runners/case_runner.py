"""Runners for the test-case level.

A plain case runs a single test. Data-driven cases run one test per data
row; delay-enumerated cases fetch their rows when they start. Cases that
could not be built at discovery time run one synthetic test that fails
with the recorded error.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from unitrun.constructor import NO_ARGUMENTS, ConstructorArguments
from unitrun.faults import ExecutionError
from unitrun.hooks import maybe_await
from unitrun.models.summary import RunSummary
from unitrun.models.units import (
    DataRow,
    DataTestCase,
    DelayEnumeratedTestCase,
    ExecutionErrorTestCase,
    Test,
    TestCase,
    as_data_row,
    format_display_name,
)
from unitrun.runners.context import RunContext
from unitrun.runners.level import run_level, run_sequentially
from unitrun.runners.test_runner import TestRunner

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class TestCaseRunner:
    """Runs the tests of one case through the level template."""

    __test__ = False

    test_case: TestCase
    constructor_arguments: ConstructorArguments = NO_ARGUMENTS

    async def run(self, context: RunContext) -> RunSummary:
        return await run_level("case", self.test_case, self, context)

    async def after_starting(self, context: RunContext) -> None:
        pass

    async def before_finished(self, context: RunContext) -> None:
        pass

    def create_test_runners(self) -> Sequence[TestRunner]:
        case = self.test_case
        return [
            TestRunner(
                test=Test(test_case=case, display_name=case.display_name),
                constructor_arguments=self.constructor_arguments,
                method_arguments=case.arguments,
                skip_reason=case.skip_reason,
            )
        ]

    async def run_children(self, context: RunContext) -> RunSummary:
        return await run_sequentially(
            self.create_test_runners(),
            lambda runner, child_context: runner.run(child_context),
            context,
        )

    def runners_for_rows(self, rows: Sequence[DataRow]) -> list[TestRunner]:
        case = self.test_case
        parameter_names = case.test_method.parameter_names
        runners = []
        for index, row in enumerate(rows):
            display_name = row.display_name or format_display_name(
                case.display_name, row.arguments, parameter_names
            )
            runners.append(
                TestRunner(
                    test=Test(test_case=case, display_name=display_name, index=index),
                    constructor_arguments=self.constructor_arguments,
                    method_arguments=row.arguments,
                    skip_reason=case.skip_reason or row.skip_reason,
                )
            )
        return runners


@dataclass(kw_only=True)
class DataTestCaseRunner(TestCaseRunner):
    """Runs one test per data row of a :class:`DataTestCase`."""

    test_case: DataTestCase

    def create_test_runners(self) -> Sequence[TestRunner]:
        return self.runners_for_rows(self.test_case.rows)


@dataclass(kw_only=True)
class DelayEnumeratedTestCaseRunner(TestCaseRunner):
    """Fetches data rows when the case starts, then runs one test per row.

    If the data source raises, the case runs a single test that fails with
    the enumeration error instead. A skipped case never calls its data
    source and reports one skipped test.
    """

    test_case: DelayEnumeratedTestCase
    _rows: list[DataRow] = field(default_factory=list, init=False)
    _enumeration_error: Exception | None = field(default=None, init=False)

    async def after_starting(self, context: RunContext) -> None:
        if self.test_case.skip_reason:
            return
        try:
            rows = await maybe_await(self.test_case.data_source())
            self._rows = [as_data_row(row) for row in rows]
        except Exception as exc:
            log.warning(
                "Data enumeration failed for %s: %s", self.test_case.display_name, exc
            )
            self._enumeration_error = exc

    def create_test_runners(self) -> Sequence[TestRunner]:
        if self.test_case.skip_reason:
            return super().create_test_runners()
        return self.runners_for_rows(self._rows)

    async def run_children(self, context: RunContext) -> RunSummary:
        if self._enumeration_error is not None:
            return await run_failing_test(self.test_case, self._enumeration_error, context)
        return await super().run_children(context)


@dataclass(kw_only=True)
class ExecutionErrorTestCaseRunner(TestCaseRunner):
    """Reports the discovery error of an :class:`ExecutionErrorTestCase`."""

    test_case: ExecutionErrorTestCase

    async def run_children(self, context: RunContext) -> RunSummary:
        error = ExecutionError(self.test_case.error_message)
        return await run_failing_test(self.test_case, error, context)


async def run_failing_test(
    test_case: TestCase, error: Exception, context: RunContext
) -> RunSummary:
    """Run one test of ``test_case`` that resolves to ``error``.

    The error is seeded into the test's collector, so the test body is
    never invoked.
    """
    test_context = context.branch()
    test_context.collector.add(error)
    runner = TestRunner(test=Test(test_case=test_case, display_name=test_case.display_name))
    return await runner.run(test_context)


def create_case_runner(
    test_case: TestCase, constructor_arguments: ConstructorArguments
) -> TestCaseRunner:
    """Pick the runner matching the kind of test case."""
    match test_case:
        case ExecutionErrorTestCase():
            return ExecutionErrorTestCaseRunner(
                test_case=test_case, constructor_arguments=constructor_arguments
            )
        case DelayEnumeratedTestCase():
            return DelayEnumeratedTestCaseRunner(
                test_case=test_case, constructor_arguments=constructor_arguments
            )
        case DataTestCase():
            return DataTestCaseRunner(
                test_case=test_case, constructor_arguments=constructor_arguments
            )
        case _:
            return TestCaseRunner(
                test_case=test_case, constructor_arguments=constructor_arguments
            )
