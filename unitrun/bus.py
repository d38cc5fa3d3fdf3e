"""Message bus abstractions.

A bus accepts a lifecycle message and answers whether the run should
continue. Answering ``False`` is the only way a consumer can cancel a run.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from unitrun.models.messages import Message, TestFailed

log = logging.getLogger(__name__)


class MessageBus(Protocol):
    """Receiver of lifecycle messages."""

    def send(self, message: Message) -> bool:
        """Deliver a message; return ``False`` to request cancellation."""
        ...


@dataclass(frozen=True, kw_only=True)
class SinkMessageBus:
    """Fans each message out to every sink.

    All sinks always receive the message; the run continues only if every
    sink asked to continue.
    """

    sinks: Sequence[MessageBus] = ()

    def send(self, message: Message) -> bool:
        results = [sink.send(message) for sink in self.sinks]
        return all(results)


@dataclass(kw_only=True)
class StopOnFailMessageBus:
    """Delegating bus that rejects messages once a test has failed."""

    inner: MessageBus
    enabled: bool = True
    _failed: bool = field(default=False, init=False)

    def send(self, message: Message) -> bool:
        result = self.inner.send(message)

        if self.enabled and isinstance(message, TestFailed) and not self._failed:
            log.info("Test failed and stop-on-fail is enabled; cancelling run")
            self._failed = True

        return result and not self._failed
