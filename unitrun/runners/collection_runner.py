"""Runner for the test-collection level."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from unitrun.fixtures import FixtureScope
from unitrun.hooks import run_hooks
from unitrun.models.summary import RunSummary
from unitrun.models.units import TestCase, TestCollection
from unitrun.runners.class_runner import ClassRunner
from unitrun.runners.context import RunContext
from unitrun.runners.level import group_by, run_level, run_sequentially


@dataclass(kw_only=True)
class CollectionRunner:
    """Runs the classes of one collection, one after another.

    Collection fixtures live from just after the collection starts until
    just before it finishes, and are offered to every class in it.
    """

    test_collection: TestCollection
    test_cases: Sequence[TestCase]
    _fixtures: FixtureScope = field(init=False)

    def __post_init__(self) -> None:
        self._fixtures = FixtureScope(
            owner=self.test_collection.name, factories=self.test_collection.fixtures
        )

    async def run(self, context: RunContext) -> RunSummary:
        return await run_level("collection", self.test_collection, self, context)

    async def after_starting(self, context: RunContext) -> None:
        await self._fixtures.create(context.collector)
        await run_hooks(self.test_collection.hooks.after_starting, context.collector)

    async def run_children(self, context: RunContext) -> RunSummary:
        collection_fixtures = self._fixtures.resolver()
        runners = [
            ClassRunner(
                test_class=cases[0].test_class,
                test_cases=cases,
                collection_fixtures=collection_fixtures,
            )
            for cases in group_by(self.test_cases, lambda case: case.test_class.unique_id)
        ]
        return await run_sequentially(
            runners, lambda runner, child_context: runner.run(child_context), context
        )

    async def before_finished(self, context: RunContext) -> None:
        await run_hooks(self.test_collection.hooks.before_finished, context.collector)
        await self._fixtures.dispose(context.collector)
