"""Message sinks that turn lifecycle messages into logs and results."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from unitrun.models.failure import combine_messages, combine_stack_traces
from unitrun.models.messages import (
    DiagnosticMessage,
    Message,
    TestFailed,
    TestPassed,
    TestSkipped,
    UnitCleanupFailure,
    UnitFinished,
    UnitStarting,
)
from unitrun.models.summary import RunSummary

STATUS_SYMBOLS = {
    "passed": "✓",
    "failed": "✗",
    "skipped": "↷",
}

type OutcomeStatus = Literal["passed", "failed", "skipped"]


@dataclass(frozen=True, kw_only=True)
class TestOutcome:
    """Result of one test, as shown to the user."""

    __test__ = False

    name: str
    status: OutcomeStatus
    duration: float = 0.0
    message: str | None = None


@dataclass(kw_only=True)
class ResultCollector:
    """Sink that records one :class:`TestOutcome` per finished test."""

    outcomes: list[TestOutcome] = field(default_factory=list)
    cleanup_failures: list[str] = field(default_factory=list)
    _names: dict[str, str] = field(default_factory=dict, init=False)

    def send(self, message: Message) -> bool:
        match message:
            case UnitStarting():
                self._names[message.unit_id] = message.display_name
            case TestPassed():
                self._record(message.unit_id, "passed", float(message.time))
            case TestFailed():
                self._record(
                    message.unit_id,
                    "failed",
                    float(message.time),
                    combine_messages(message),
                )
            case TestSkipped():
                self._record(message.unit_id, "skipped", message=message.reason)
            case UnitCleanupFailure():
                name = self._names.get(message.unit_id, message.unit_id)
                self.cleanup_failures.append(f"{name}: {combine_messages(message)}")
        return True

    def _record(
        self,
        unit_id: str,
        status: OutcomeStatus,
        duration: float = 0.0,
        message: str | None = None,
    ) -> None:
        self.outcomes.append(
            TestOutcome(
                name=self._names.get(unit_id, unit_id),
                status=status,
                duration=duration,
                message=message,
            )
        )


@dataclass(kw_only=True)
class LoggingReporter:
    """Sink that renders lifecycle messages through a logger."""

    log: logging.Logger
    show_diagnostics: bool = False
    _names: dict[str, str] = field(default_factory=dict, init=False)

    def send(self, message: Message) -> bool:
        match message:
            case UnitStarting(level="assembly"):
                self._names[message.unit_id] = message.display_name
                self.log.info("Starting: %s", message.display_name)
            case UnitStarting():
                self._names[message.unit_id] = message.display_name
                self.log.debug("Starting %s: %s", message.level, message.display_name)
            case TestPassed():
                self.log.debug("%s [PASS]", self._name(message.unit_id))
            case TestSkipped():
                self.log.info(
                    "%s [SKIP] %s", self._name(message.unit_id), message.reason
                )
            case TestFailed():
                self.log.error(
                    "%s [FAIL]\n%s\n%s",
                    self._name(message.unit_id),
                    combine_messages(message),
                    combine_stack_traces(message),
                )
                if message.output:
                    self.log.info("  Output:\n%s", message.output.rstrip())
            case UnitCleanupFailure():
                self.log.error(
                    "%s [%s cleanup failure]\n%s",
                    self._name(message.unit_id),
                    message.level,
                    combine_messages(message),
                )
            case UnitFinished(level="assembly"):
                self.log.info(
                    "Finished: %s (total %d, failed %d, skipped %d, %.3fs)",
                    self._name(message.unit_id),
                    message.total,
                    message.failed,
                    message.skipped,
                    message.time,
                )
            case DiagnosticMessage():
                level = logging.INFO if self.show_diagnostics else logging.DEBUG
                self.log.log(level, "Diagnostic: %s", message.message)
        return True

    def _name(self, unit_id: str) -> str:
        return self._names.get(unit_id, unit_id)


def log_results_summary(
    log: logging.Logger, outcomes: Sequence[TestOutcome], summary: RunSummary
) -> None:
    """Log a formatted summary of test outcomes."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for outcome in outcomes:
        symbol = STATUS_SYMBOLS.get(outcome.status, "?")
        log.info(
            "%s %s: %s (%.2fs)", symbol, outcome.name, outcome.status, outcome.duration
        )
        if outcome.message and outcome.status != "passed":
            log.info("  Message: %s", outcome.message)

    log.info(
        "Total: %d, Passed: %d, Failed: %d, Skipped: %d, Time: %.3fs",
        summary.total,
        summary.passed,
        summary.failed,
        summary.skipped,
        summary.time,
    )


def format_output(
    outcomes: Sequence[TestOutcome],
    summary: RunSummary,
    cleanup_failures: Sequence[str] = (),
) -> dict[str, Any]:
    """Format outcomes for JSON output."""
    return {
        "total": summary.total,
        "passed": summary.passed,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "time": float(summary.time),
        "cleanup_failures": list(cleanup_failures),
        "results": [
            {
                "name": outcome.name,
                "status": outcome.status,
                "duration": outcome.duration,
                "message": outcome.message,
            }
            for outcome in outcomes
        ],
    }
