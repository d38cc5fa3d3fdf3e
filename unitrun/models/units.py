"""Test object model: the units that make up a run tree.

Units are immutable and identified by a ``unique_id`` derived from the
unit's name and its parent's ID, so the same test discovered twice gets
the same ID.
"""

import hashlib
import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any

from unitrun.hooks import NO_HOOKS, LifecycleHooks


def unique_id(*parts: str | None) -> str:
    """Stable digest over the given parts."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update((part or "").encode())
        digest.update(b"\0")
    return digest.hexdigest()


@dataclass(frozen=True, kw_only=True)
class TestAssembly:
    """Root of the run tree."""

    __test__ = False

    name: str
    hooks: LifecycleHooks = field(default=NO_HOOKS, compare=False, repr=False)

    @property
    def unique_id(self) -> str:
        return unique_id(self.name)

    @property
    def parent_id(self) -> None:
        return None

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(frozen=True, kw_only=True)
class TestCollection:
    """Group of test classes that run sequentially within an assembly.

    ``fixtures`` maps names to factories for values shared by every class
    in the collection.
    """

    __test__ = False

    assembly: TestAssembly
    name: str
    hooks: LifecycleHooks = field(default=NO_HOOKS, compare=False, repr=False)
    fixtures: Mapping[str, Callable[..., Any]] = field(
        default_factory=dict, compare=False, repr=False
    )

    @property
    def unique_id(self) -> str:
        return unique_id(self.assembly.unique_id, self.name)

    @property
    def parent_id(self) -> str:
        return self.assembly.unique_id

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(frozen=True, kw_only=True)
class TestClass:
    """A container of test methods: a Python class, or a module.

    Module containers play the role of static classes: they are never
    constructed.
    """

    __test__ = False

    collection: TestCollection
    container: type | ModuleType
    hooks: LifecycleHooks = field(default=NO_HOOKS, compare=False, repr=False)
    fixtures: Mapping[str, Callable[..., Any]] = field(
        default_factory=dict, compare=False, repr=False
    )

    @property
    def name(self) -> str:
        if isinstance(self.container, ModuleType):
            return self.container.__name__
        return f"{self.container.__module__}.{self.container.__qualname__}"

    @property
    def is_static(self) -> bool:
        return inspect.ismodule(self.container)

    @property
    def unique_id(self) -> str:
        return unique_id(self.collection.unique_id, self.name)

    @property
    def parent_id(self) -> str:
        return self.collection.unique_id

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(frozen=True, kw_only=True)
class TestMethod:
    """A named test function within a container."""

    __test__ = False

    test_class: TestClass
    name: str
    hooks: LifecycleHooks = field(default=NO_HOOKS, compare=False, repr=False)

    @property
    def function(self) -> Callable[..., Any]:
        return getattr(self.test_class.container, self.name)

    @property
    def parameter_names(self) -> Sequence[str]:
        try:
            parameters = inspect.signature(self.function).parameters
        except (TypeError, ValueError):
            return ()
        return [name for name in parameters if name not in ("self", "cls")]

    @property
    def unique_id(self) -> str:
        return unique_id(self.test_class.unique_id, self.name)

    @property
    def parent_id(self) -> str:
        return self.test_class.unique_id

    @property
    def display_name(self) -> str:
        return f"{self.test_class.name}.{self.name}"


@dataclass(frozen=True, kw_only=True)
class DataRow:
    """One set of arguments for a data-driven test case."""

    arguments: tuple[Any, ...] = ()
    skip_reason: str | None = None
    display_name: str | None = None


type DataRows = Iterable[DataRow | tuple[Any, ...]]
type DataSource = Callable[[], DataRows | Awaitable[DataRows]]


def as_data_row(row: DataRow | tuple[Any, ...]) -> DataRow:
    """Accept a bare argument tuple wherever a row is expected."""
    if isinstance(row, DataRow):
        return row
    return DataRow(arguments=tuple(row))


@dataclass(frozen=True, kw_only=True)
class TestCase:
    """A single test case: one method called with fixed arguments."""

    __test__ = False

    test_method: TestMethod
    display_name: str = ""
    skip_reason: str | None = None
    arguments: tuple[Any, ...] = ()
    hooks: LifecycleHooks = field(default=NO_HOOKS, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.display_name:
            name = self.test_method.display_name
            if self.arguments:
                name = format_display_name(
                    name, self.arguments, self.test_method.parameter_names
                )
            object.__setattr__(self, "display_name", name)

    @property
    def test_class(self) -> TestClass:
        return self.test_method.test_class

    @property
    def test_collection(self) -> TestCollection:
        return self.test_method.test_class.collection

    @property
    def unique_id(self) -> str:
        return unique_id(self.test_method.unique_id, self.display_name)

    @property
    def parent_id(self) -> str:
        return self.test_method.unique_id


@dataclass(frozen=True, kw_only=True)
class DataTestCase(TestCase):
    """A test case that runs once per data row."""

    __test__ = False

    rows: tuple[DataRow, ...] = ()


@dataclass(frozen=True, kw_only=True)
class DelayEnumeratedTestCase(TestCase):
    """A data-driven test case whose rows are fetched when it runs."""

    __test__ = False

    data_source: DataSource = field(compare=False, repr=False)


@dataclass(frozen=True, kw_only=True)
class ExecutionErrorTestCase(TestCase):
    """A test case that could not be built; it always fails with its error."""

    __test__ = False

    error_message: str


@dataclass(frozen=True, kw_only=True)
class Test:
    """One invocation of a test case."""

    __test__ = False

    test_case: TestCase
    display_name: str
    index: int = 0

    @property
    def unique_id(self) -> str:
        return unique_id(self.test_case.unique_id, str(self.index))

    @property
    def parent_id(self) -> str:
        return self.test_case.unique_id


def format_display_name(
    base: str, arguments: Sequence[Any], parameter_names: Sequence[str]
) -> str:
    """Render ``base(name: value, ...)``; surplus arguments are named ``???``."""
    parts = []
    for index, value in enumerate(arguments):
        name = parameter_names[index] if index < len(parameter_names) else "???"
        parts.append(f"{name}: {value!r}")
    return f"{base}({', '.join(parts)})"
