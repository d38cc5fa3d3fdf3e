"""Tests for the test-case runners."""

from unitrun.constructor import NO_ARGUMENTS
from unitrun.models.messages import TestFailed, TestSkipped, UnitFinished, UnitStarting
from unitrun.models.units import (
    DataRow,
    DataTestCase,
    DelayEnumeratedTestCase,
    ExecutionErrorTestCase,
    TestClass,
    TestMethod,
)
from unitrun.runners.case_runner import (
    DataTestCaseRunner,
    DelayEnumeratedTestCaseRunner,
    ExecutionErrorTestCaseRunner,
    TestCaseRunner,
    create_case_runner,
)
from unitrun.runners.context import RunContext
from unitrun.testing.doubles import RecordingMessageBus, RecordingSubject
from unitrun.testing.tree import build_cases


async def test_plain_case_runs_one_test(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
) -> None:
    """Wraps a single test in case-level Starting and Finished."""
    [case] = build_cases(sample_class, "test_alpha")

    summary = await TestCaseRunner(test_case=case).run(context)

    assert bus.trace() == [
        "UnitStarting(case)",
        "UnitStarting(test)",
        "TestPassed(test)",
        "UnitFinished(test)",
        "UnitFinished(case)",
    ]
    assert summary.total == 1
    case_finished = bus.messages[-1]
    assert isinstance(case_finished, UnitFinished)
    assert case_finished.unit_id == case.unique_id
    assert case_finished.parent_id == case.test_method.unique_id


async def test_data_case_runs_one_test_per_row(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Runs each row with its own arguments and display name."""
    case = DataTestCase(
        test_method=TestMethod(test_class=sample_class, name="test_values"),
        rows=(
            DataRow(arguments=(1, 2)),
            DataRow(arguments=(3, 4), skip_reason="flaky"),
            DataRow(arguments=(5, 6), display_name="custom"),
        ),
    )

    summary = await DataTestCaseRunner(test_case=case).run(context)

    assert (summary.total, summary.skipped, summary.failed) == (3, 1, 0)
    assert [arguments for _, _, arguments in subject.invocations] == [(1, 2), (5, 6)]
    names = [m.display_name for m in bus.of_type(UnitStarting) if m.level == "test"]
    assert names[0].endswith("SampleTests.test_values(left: 1, right: 2)")
    assert names[2] == "custom"
    assert bus.of_type(TestSkipped)[0].reason == "flaky"
    test_ids = {m.unit_id for m in bus.of_type(UnitStarting) if m.level == "test"}
    assert len(test_ids) == 3


async def test_delay_enumerated_case_fetches_rows(
    sample_class: TestClass,
    context: RunContext,
    subject: RecordingSubject,
) -> None:
    """Runs the rows returned by an async data source."""

    async def rows() -> list[tuple[int, int]]:
        return [(1, 1), (2, 2)]

    case = DelayEnumeratedTestCase(
        test_method=TestMethod(test_class=sample_class, name="test_values"),
        data_source=rows,
    )

    summary = await DelayEnumeratedTestCaseRunner(test_case=case).run(context)

    assert summary.total == 2
    assert [arguments for _, _, arguments in subject.invocations] == [(1, 1), (2, 2)]


async def test_delay_enumeration_failure_reports_one_failed_test(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Reports a single failed test when the data source raises."""

    def rows() -> list[tuple[int, int]]:
        raise LookupError("no data source")

    case = DelayEnumeratedTestCase(
        test_method=TestMethod(test_class=sample_class, name="test_values"),
        data_source=rows,
    )

    summary = await DelayEnumeratedTestCaseRunner(test_case=case).run(context)

    assert bus.trace() == [
        "UnitStarting(case)",
        "UnitStarting(test)",
        "TestFailed(test)",
        "UnitFinished(test)",
        "UnitFinished(case)",
    ]
    failed = bus.of_type(TestFailed)[0]
    assert failed.fault_types == ("LookupError",)
    assert failed.fault_messages == ("no data source",)
    assert (summary.total, summary.failed) == (1, 1)
    assert subject.invocations == []


async def test_execution_error_case_fails_without_invoking(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Reports the recorded error as one failed test."""
    case = ExecutionErrorTestCase(
        test_method=TestMethod(test_class=sample_class, name="test_alpha"),
        error_message="No data found for SampleTests.test_alpha",
    )

    summary = await ExecutionErrorTestCaseRunner(test_case=case).run(context)

    failed = bus.of_type(TestFailed)[0]
    assert failed.fault_types == ("unitrun.faults.ExecutionError",)
    assert failed.fault_messages == ("No data found for SampleTests.test_alpha",)
    assert (summary.total, summary.failed) == (1, 1)
    assert subject.invocations == []


def test_create_case_runner_matches_case_kind(sample_class: TestClass) -> None:
    """Picks the runner class from the kind of test case."""
    method = TestMethod(test_class=sample_class, name="test_alpha")
    error_case = ExecutionErrorTestCase(test_method=method, error_message="broken")
    data_case = DataTestCase(test_method=method, rows=())
    [plain_case] = build_cases(sample_class, "test_alpha")

    assert isinstance(create_case_runner(error_case, NO_ARGUMENTS), ExecutionErrorTestCaseRunner)
    assert isinstance(create_case_runner(data_case, NO_ARGUMENTS), DataTestCaseRunner)
    assert type(create_case_runner(plain_case, NO_ARGUMENTS)) is TestCaseRunner


async def test_skipped_delay_enumerated_case_never_enumerates(
    sample_class: TestClass,
    context: RunContext,
    bus: RecordingMessageBus,
    subject: RecordingSubject,
) -> None:
    """Reports one skipped test without calling the data source."""
    calls: list[str] = []

    def rows() -> list[tuple[int, int]]:
        calls.append("enumerated")
        return [(1, 1)]

    case = DelayEnumeratedTestCase(
        test_method=TestMethod(test_class=sample_class, name="test_values"),
        data_source=rows,
        skip_reason="database offline",
    )

    summary = await DelayEnumeratedTestCaseRunner(test_case=case).run(context)

    assert calls == []
    assert (summary.total, summary.skipped) == (1, 1)
    assert bus.of_type(TestSkipped)[0].reason == "database offline"
    assert subject.invocations == []
