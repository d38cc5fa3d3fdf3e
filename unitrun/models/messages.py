"""Lifecycle messages delivered to the message bus."""

from decimal import Decimal
from typing import Literal

from pydantic import Field

from unitrun.models.base import Model
from unitrun.models.failure import FailureInfo

Level = Literal["assembly", "collection", "class", "method", "case", "test"]


class Message(Model):
    """Base for every message sent to the bus."""


class UnitMessage(Message):
    """Message about one unit of the run tree."""

    level: Level
    unit_id: str = Field(..., description="Unique ID of the unit")
    parent_id: str | None = Field(default=None, description="Unique ID of the parent")


class UnitStarting(UnitMessage):
    """A unit is about to run its children (or its body, for a test)."""

    display_name: str


class UnitFinished(UnitMessage):
    """A unit has finished; carries its rolled-up summary."""

    time: Decimal = Decimal(0)
    total: int = 0
    failed: int = 0
    skipped: int = 0


class UnitCleanupFailure(UnitMessage, FailureInfo):
    """A lifecycle hook of the unit failed; test outcomes are unaffected."""


class TestSkipped(UnitMessage):
    """A test was not run."""

    __test__ = False

    level: Literal["test"] = "test"
    reason: str


class TestResultMessage(UnitMessage):
    """Outcome of a test body that ran (or was prevented from running)."""

    __test__ = False

    level: Literal["test"] = "test"
    time: Decimal = Decimal(0)
    output: str = ""


class TestPassed(TestResultMessage):
    """The test body completed without a fault."""

    __test__ = False


class TestFailed(TestResultMessage, FailureInfo):
    """The test resolved to one or more faults."""

    __test__ = False


class DiagnosticMessage(Message):
    """Informational notice from the engine itself."""

    message: str
