"""Tests for the single-test runner."""

from decimal import Decimal

from unitrun.constructor import ConstructorArguments
from unitrun.faults import DynamicSkip, TestClassError
from unitrun.hooks import LifecycleHooks
from unitrun.models.messages import (
    TestFailed,
    TestPassed,
    TestSkipped,
    UnitCleanupFailure,
    UnitFinished,
    UnitStarting,
)
from unitrun.models.units import Test, TestCase, TestClass
from unitrun.runners.context import RunContext
from unitrun.runners.test_runner import TestRunner
from unitrun.testing.doubles import RecordingMessageBus, RecordingSubject
from unitrun.testing.tree import build_cases


def make_runner(case: TestCase, **fields: object) -> TestRunner:
    return TestRunner(test=Test(test_case=case, display_name=case.display_name), **fields)


def raise_error() -> None:
    raise RuntimeError("hook exploded")


async def test_passing_test_reports_passed(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Reports Starting, Passed and Finished for a passing test."""
    [case] = build_cases(sample_class, "test_alpha")

    summary = await make_runner(case).run(context)

    assert bus.trace() == [
        "UnitStarting(test)",
        "TestPassed(test)",
        "UnitFinished(test)",
    ]
    assert summary.total == 1
    assert summary.failed == 0
    assert summary.time == subject.elapsed
    assert summary.continue_run
    finished = bus.of_type(UnitFinished)[0]
    assert (finished.total, finished.failed, finished.skipped) == (1, 0, 0)


async def test_passes_arguments_to_subject(
    sample_class: TestClass,
    context: RunContext,
    subject: RecordingSubject,
) -> None:
    """Invokes the subject with the constructor and method arguments."""
    [case] = build_cases(sample_class, "test_values", arguments=(1, 2))
    constructor_arguments = ConstructorArguments(args=("fixture",))

    await make_runner(
        case, constructor_arguments=constructor_arguments, method_arguments=(1, 2)
    ).run(context)

    assert case.display_name.endswith("SampleTests.test_values(left: 1, right: 2)")
    assert subject.invocations == [(case.display_name, constructor_arguments, (1, 2))]


async def test_rejected_starting_sends_nothing_else(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Sends no further messages when the bus rejects Starting."""
    bus.reject = lambda message: isinstance(message, UnitStarting)
    [case] = build_cases(sample_class, "test_alpha")

    summary = await make_runner(case).run(context)

    assert bus.trace() == ["UnitStarting(test)"]
    assert summary.total == 1
    assert summary.failed == 0
    assert not summary.continue_run
    assert context.cancellation.is_cancelled
    assert subject.invocations == []


async def test_skip_reason_skips_without_invoking(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Reports Skipped with the reason and never invokes the subject."""
    [case] = build_cases(sample_class, "test_alpha")

    summary = await make_runner(case, skip_reason="not today").run(context)

    assert bus.trace() == [
        "UnitStarting(test)",
        "TestSkipped(test)",
        "UnitFinished(test)",
    ]
    assert bus.of_type(TestSkipped)[0].reason == "not today"
    assert (summary.total, summary.skipped, summary.failed) == (1, 1, 0)
    finished = bus.of_type(UnitFinished)[0]
    assert (finished.total, finished.skipped) == (1, 1)
    assert subject.invocations == []


async def test_failing_test_reports_flattened_fault(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Reports Failed with the fault raised by the test body."""
    subject.failures = {"test_alpha": ValueError("boom")}
    [case] = build_cases(sample_class, "test_alpha")

    summary = await make_runner(case).run(context)

    failed = bus.of_type(TestFailed)[0]
    assert failed.fault_types == ("ValueError",)
    assert failed.fault_messages == ("boom",)
    assert failed.fault_parent_indices == (-1,)
    assert (summary.total, summary.failed) == (1, 1)
    assert summary.continue_run


async def test_dynamic_skip_reports_skipped(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Reports Skipped when the test body raises DynamicSkip."""
    subject.failures = {"test_alpha": DynamicSkip("needs network")}
    [case] = build_cases(sample_class, "test_alpha")

    summary = await make_runner(case).run(context)

    assert bus.trace() == [
        "UnitStarting(test)",
        "TestSkipped(test)",
        "UnitFinished(test)",
    ]
    assert bus.of_type(TestSkipped)[0].reason == "needs network"
    assert (summary.total, summary.skipped, summary.failed) == (1, 1, 0)


async def test_existing_fault_fails_without_invoking(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Fails with a fault already in the collector and skips invocation."""
    context.collector.add(TestClassError("cannot build"))
    [case] = build_cases(sample_class, "test_alpha")

    summary = await make_runner(case).run(context)

    failed = bus.of_type(TestFailed)[0]
    assert failed.fault_types == ("unitrun.faults.TestClassError",)
    assert failed.fault_messages == ("cannot build",)
    assert failed.time == Decimal(0)
    assert summary.failed == 1
    assert subject.invocations == []


async def test_before_hook_fault_suppresses_invocation(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Fails the test when an after-starting hook raises."""
    hooks = LifecycleHooks(after_starting=(raise_error,))
    [case] = build_cases(sample_class, "test_alpha", hooks=hooks)

    summary = await make_runner(case).run(context)

    assert bus.trace() == [
        "UnitStarting(test)",
        "TestFailed(test)",
        "UnitFinished(test)",
    ]
    assert bus.of_type(TestFailed)[0].fault_types == ("RuntimeError",)
    assert summary.failed == 1
    assert subject.invocations == []


async def test_cleanup_hook_fault_reports_cleanup_failure(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
) -> None:
    """Reports a cleanup failure without changing the test outcome."""
    hooks = LifecycleHooks(before_finished=(raise_error,))
    [case] = build_cases(sample_class, "test_alpha", hooks=hooks)

    summary = await make_runner(case).run(context)

    assert bus.trace() == [
        "UnitStarting(test)",
        "TestPassed(test)",
        "UnitCleanupFailure(test)",
        "UnitFinished(test)",
    ]
    cleanup = bus.of_type(UnitCleanupFailure)[0]
    assert cleanup.fault_messages == ("hook exploded",)
    assert (summary.total, summary.failed) == (1, 0)


async def test_rejected_result_still_finishes(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
) -> None:
    """Completes the protocol when the bus rejects the result message."""
    bus.reject = lambda message: isinstance(message, TestPassed)
    [case] = build_cases(sample_class, "test_alpha")

    summary = await make_runner(case).run(context)

    assert bus.trace()[-1] == "UnitFinished(test)"
    assert not summary.continue_run
    assert context.cancellation.is_cancelled
