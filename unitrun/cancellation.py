"""Cooperative cancellation shared by every level of a run."""

import logging
from dataclasses import dataclass, field

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class CancellationSignal:
    """One-way flag; once cancelled it stays cancelled.

    Runners check the signal between children and never reset it.
    """

    _cancelled: bool = field(default=False, init=False)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if not self._cancelled:
            log.info("Cancellation requested; no further units will start")
        self._cancelled = True
