"""Runner for a single test invocation."""

import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Any

from unitrun.constructor import NO_ARGUMENTS, ConstructorArguments
from unitrun.faults import DynamicSkip
from unitrun.hooks import run_hooks
from unitrun.invoker import elapsed_since
from unitrun.models.messages import (
    TestFailed,
    TestPassed,
    TestSkipped,
    UnitCleanupFailure,
    UnitFinished,
    UnitStarting,
)
from unitrun.models.summary import RunSummary
from unitrun.models.units import Test
from unitrun.runners.context import RunContext

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class TestRunner:
    """Runs one test: skip or invoke, then report the outcome.

    Unlike composite levels, a test whose starting message is rejected
    sends nothing further. Its summary still counts it in ``total``.
    A test that starts after the run was cancelled is reported without
    invoking its body.
    """

    __test__ = False

    test: Test
    constructor_arguments: ConstructorArguments = NO_ARGUMENTS
    method_arguments: tuple[Any, ...] = ()
    skip_reason: str | None = None

    async def run(self, context: RunContext) -> RunSummary:
        test = self.test
        hooks = test.test_case.hooks
        collector = context.collector
        summary = RunSummary(total=1)
        identity = {"unit_id": test.unique_id, "parent_id": test.parent_id}

        starting = UnitStarting(level="test", display_name=test.display_name, **identity)
        if not context.send(starting):
            log.debug("Test %s was rejected before starting", test.display_name)
            summary.continue_run = False
            return summary

        await run_hooks(hooks.after_starting, collector)

        output = ""
        if self.skip_reason:
            summary.skipped += 1
            log.debug("Skipping %s: %s", test.display_name, self.skip_reason)
            result = TestSkipped(reason=self.skip_reason, **identity)
        else:
            nested = collector.branch()
            if context.cancellation.is_cancelled:
                log.debug("Not invoking %s: the run was cancelled", test.display_name)
            elif not nested.has_faults:
                started = time.perf_counter()
                invoked = await nested.run_async(
                    partial(
                        context.options.subject.invoke,
                        test,
                        self.constructor_arguments,
                        self.method_arguments,
                    )
                )
                if invoked is not None:
                    summary.time, output = invoked
                else:
                    summary.time = elapsed_since(started)

            exception = nested.to_exception()
            if exception is None:
                result = TestPassed(time=summary.time, output=output, **identity)
            elif isinstance(exception, DynamicSkip):
                summary.skipped += 1
                result = TestSkipped(reason=exception.reason, **identity)
            else:
                summary.failed += 1
                log.debug("Test %s failed: %s", test.display_name, exception)
                result = TestFailed.from_exception(
                    exception, time=summary.time, output=output, **identity
                )

        if not context.send(result):
            summary.continue_run = False

        collector.clear()
        await run_hooks(hooks.before_finished, collector)

        if (exception := collector.to_exception()) is not None:
            cleanup_failure = UnitCleanupFailure.from_exception(
                exception, level="test", **identity
            )
            if not context.send(cleanup_failure):
                summary.continue_run = False

        finished = UnitFinished(
            level="test",
            time=summary.time,
            total=summary.total,
            failed=summary.failed,
            skipped=summary.skipped,
            **identity,
        )
        if not context.send(finished):
            summary.continue_run = False

        return summary
