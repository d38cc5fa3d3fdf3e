"""Execution statistics rolled up through the run tree."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(kw_only=True)
class RunSummary:
    """Counts and elapsed time for one unit of the run tree.

    A fresh summary is created at the start of every level's run, mutated
    only by that level, and handed to the parent as a return value. Parents
    fold child summaries in with :meth:`aggregate`.
    """

    total: int = 0
    failed: int = 0
    skipped: int = 0
    time: Decimal = Decimal(0)
    continue_run: bool = True

    @property
    def passed(self) -> int:
        """Number of tests that neither failed nor were skipped."""
        return self.total - self.failed - self.skipped

    def aggregate(self, other: "RunSummary") -> "RunSummary":
        """Add another summary into this one and return ``self``."""
        self.total += other.total
        self.failed += other.failed
        self.skipped += other.skipped
        self.time += other.time
        self.continue_run = self.continue_run and other.continue_run
        return self

    def __add__(self, other: "RunSummary") -> "RunSummary":
        return RunSummary(
            total=self.total + other.total,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
            time=self.time + other.time,
            continue_run=self.continue_run and other.continue_run,
        )
