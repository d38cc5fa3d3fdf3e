"""Shared fixtures for engine unit tests."""

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from unitrun.cancellation import CancellationSignal
from unitrun.models.units import TestClass
from unitrun.runners.context import ExecutionOptions, RunContext
from unitrun.testing.doubles import RecordingMessageBus, RecordingSubject
from unitrun.testing.tree import build_class


class SampleTests:
    """Container whose methods are only invoked through a recording subject."""

    def test_alpha(self) -> None:
        pass

    def test_beta(self) -> None:
        pass

    def test_gamma(self) -> None:
        pass

    def test_values(self, left: int, right: int) -> None:
        pass


@pytest.fixture
def bus() -> RecordingMessageBus:
    """Create a bus that accepts everything."""
    return RecordingMessageBus()


@pytest.fixture
def subject() -> RecordingSubject:
    """Create a subject that passes every test."""
    return RecordingSubject()


@pytest.fixture
def cancellation() -> CancellationSignal:
    """Create a live cancellation signal."""
    return CancellationSignal()


@pytest.fixture
def context(
    bus: RecordingMessageBus,
    subject: RecordingSubject,
    cancellation: CancellationSignal,
) -> RunContext:
    """Create a run context wired to the recording doubles."""
    return RunContext(
        bus=bus,
        cancellation=cancellation,
        options=ExecutionOptions(subject=subject),
    )


@pytest.fixture
def sample_class() -> TestClass:
    """Create a test class wrapping SampleTests."""
    return build_class(SampleTests)


SAMPLE_SUITE = '''
from unitrun.discovery import cases, cases_from, skip
from unitrun.faults import DynamicSkip

EVENTS = []


def setup_module():
    EVENTS.append("setup_module")


def teardown_module():
    EVENTS.append("teardown_module")


def test_function():
    EVENTS.append("test_function")


class TestArithmetic:
    @classmethod
    def setup_class(cls):
        EVENTS.append("setup_class")

    @classmethod
    def teardown_class(cls):
        EVENTS.append("teardown_class")

    def test_add(self):
        assert 1 + 1 == 2

    @cases((1, 2, 3), (2, 2, 4))
    def test_sum(self, left, right, expected):
        assert left + right == expected

    @skip("not ready")
    def test_skipped(self):
        raise AssertionError("never runs")

    async def test_async(self):
        print("async output")

    def test_fails(self):
        assert False, "expected failure"

    def test_dynamic(self):
        raise DynamicSkip("runtime skip")

    @cases_from(lambda: [(5,)])
    def test_source(self, value):
        assert value == 5

    @cases()
    def test_no_rows(self, value):
        pass

    def test_needs_argument(self, value):
        pass


class Helper:
    def test_ignored(self):
        pass
'''


@pytest.fixture
def sample_suite(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[str]:
    """Write an importable test module and return its name."""
    (tmp_path / "sample_suite.py").write_text(SAMPLE_SUITE)
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.chdir(tmp_path)
    yield "sample_suite"
    sys.modules.pop("sample_suite", None)
