"""Runner for the test-class level."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from unitrun.constructor import (
    ChainedResolver,
    ConstructorArgumentResolver,
    NoArgumentResolver,
    resolve_constructor_arguments,
)
from unitrun.fixtures import FixtureScope
from unitrun.hooks import run_hooks
from unitrun.models.summary import RunSummary
from unitrun.models.units import TestCase, TestClass
from unitrun.ordering import order_with_fallback
from unitrun.runners.context import RunContext
from unitrun.runners.level import group_by, run_level, run_sequentially
from unitrun.runners.method_runner import MethodRunner

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class ClassRunner:
    """Runs every case of one test class.

    Cases are ordered by the configured case orderer, constructor
    arguments are resolved once for the whole class, and each method's
    cases run under their own method runner. A construction fault is left
    in the class collector, so each test inherits it and fails.

    Class fixtures are created after the class starts and disposed before
    it finishes. Constructor parameters resolve from the class fixtures,
    then the collection fixtures, then the configured resolver.
    """

    test_class: TestClass
    test_cases: Sequence[TestCase]
    collection_fixtures: ConstructorArgumentResolver = field(
        default_factory=NoArgumentResolver
    )
    _fixtures: FixtureScope = field(init=False)

    def __post_init__(self) -> None:
        self._fixtures = FixtureScope(
            owner=self.test_class.name,
            factories=self.test_class.fixtures,
            parent=self.collection_fixtures,
        )

    async def run(self, context: RunContext) -> RunSummary:
        return await run_level("class", self.test_class, self, context)

    async def after_starting(self, context: RunContext) -> None:
        await self._fixtures.create(context.collector)
        await run_hooks(self.test_class.hooks.after_starting, context.collector)

    async def run_children(self, context: RunContext) -> RunSummary:
        options = context.options
        ordered = order_with_fallback(
            options.case_orderer, self.test_cases, context.send_diagnostic
        )
        constructor_arguments = resolve_constructor_arguments(
            self.test_class,
            context.collector,
            selector=options.constructor_selector,
            resolver=ChainedResolver(
                resolvers=(
                    self._fixtures.resolver(),
                    self.collection_fixtures,
                    options.argument_resolver,
                )
            ),
        )
        if context.collector.has_faults:
            log.warning(
                "Every test in %s will fail: %s",
                self.test_class.name,
                context.collector.to_exception(),
            )

        runners = [
            MethodRunner(
                test_method=cases[0].test_method,
                test_cases=cases,
                constructor_arguments=constructor_arguments,
            )
            for cases in group_by(ordered, lambda case: case.test_method.unique_id)
        ]
        return await run_sequentially(
            runners, lambda runner, child_context: runner.run(child_context), context
        )

    async def before_finished(self, context: RunContext) -> None:
        await run_hooks(self.test_class.hooks.before_finished, context.collector)
        await self._fixtures.dispose(context.collector)
