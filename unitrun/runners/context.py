"""State threaded through every level of a run."""

from dataclasses import dataclass, field, replace

from unitrun.bus import MessageBus
from unitrun.cancellation import CancellationSignal
from unitrun.constructor import (
    ConstructorArgumentResolver,
    ConstructorSelector,
    NoArgumentResolver,
    select_parameterless_constructor,
)
from unitrun.faults import FaultCollector
from unitrun.invoker import MethodSubject, TestSubject
from unitrun.models.messages import DiagnosticMessage, Message
from unitrun.ordering import (
    CaseOrderer,
    CollectionOrderer,
    DiscoveryCaseOrderer,
    DiscoveryCollectionOrderer,
)


@dataclass(frozen=True, kw_only=True)
class ExecutionOptions:
    """Extension points used while running a tree."""

    subject: TestSubject = field(default_factory=MethodSubject)
    case_orderer: CaseOrderer = field(default_factory=DiscoveryCaseOrderer)
    collection_orderer: CollectionOrderer = field(
        default_factory=DiscoveryCollectionOrderer
    )
    constructor_selector: ConstructorSelector = select_parameterless_constructor
    argument_resolver: ConstructorArgumentResolver = field(
        default_factory=NoArgumentResolver
    )


@dataclass(frozen=True, kw_only=True)
class RunContext:
    """Bus, cancellation signal and fault collector for one level.

    The bus and the cancellation signal are shared by reference across the
    whole tree. The collector is owned by the level; children receive a
    branch of it.
    """

    bus: MessageBus
    cancellation: CancellationSignal
    collector: FaultCollector = field(default_factory=FaultCollector)
    options: ExecutionOptions = field(default_factory=ExecutionOptions)
    diagnostics: MessageBus | None = None

    def branch(self) -> "RunContext":
        """Context for a child, with an independent copy of the collector."""
        return replace(self, collector=self.collector.branch())

    def send(self, message: Message) -> bool:
        """Send ``message``; a rejection trips cancellation."""
        if self.bus.send(message):
            return True
        self.cancellation.cancel()
        return False

    def send_diagnostic(self, text: str) -> None:
        """Report an engine notice. Diagnostics never cancel the run."""
        (self.diagnostics or self.bus).send(DiagnosticMessage(message=text))
