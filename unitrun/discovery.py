"""Module-based test discovery.

Each module becomes a collection. Classes named ``Test*`` become test
classes, and module-level ``test_*`` functions form a test class whose
container is the module itself. Markers attach skip reasons and data rows
to test functions, and fixture factories to classes and modules.
"""

import importlib
import inspect
import logging
from collections.abc import Callable, Iterator, Sequence
from types import ModuleType
from typing import Any

from unitrun.hooks import NO_HOOKS, LifecycleHooks
from unitrun.models.units import (
    DataRow,
    DataSource,
    DataTestCase,
    DelayEnumeratedTestCase,
    ExecutionErrorTestCase,
    TestAssembly,
    TestCase,
    TestClass,
    TestCollection,
    TestMethod,
    as_data_row,
)

log = logging.getLogger(__name__)

SKIP_ATTRIBUTE = "__unitrun_skip__"
ROWS_ATTRIBUTE = "__unitrun_rows__"
SOURCE_ATTRIBUTE = "__unitrun_data_source__"
FIXTURES_ATTRIBUTE = "__unitrun_fixtures__"
COLLECTION_FIXTURES_NAME = "collection_fixtures"

CLASS_PREFIX = "Test"
FUNCTION_PREFIX = "test_"


def skip[F: Callable[..., Any]](reason: str) -> Callable[[F], F]:
    """Mark a test function or class as skipped."""

    def decorator(target: F) -> F:
        setattr(target, SKIP_ATTRIBUTE, reason)
        return target

    return decorator


def cases[F: Callable[..., Any]](
    *rows: DataRow | tuple[Any, ...],
) -> Callable[[F], F]:
    """Run a test function once per row of arguments."""

    def decorator(target: F) -> F:
        setattr(target, ROWS_ATTRIBUTE, tuple(as_data_row(row) for row in rows))
        return target

    return decorator


def cases_from[F: Callable[..., Any]](source: DataSource) -> Callable[[F], F]:
    """Run a test function once per row returned by ``source`` at run time."""

    def decorator(target: F) -> F:
        setattr(target, SOURCE_ATTRIBUTE, source)
        return target

    return decorator


def fixtures[C: type](**factories: Callable[..., Any]) -> Callable[[C], C]:
    """Create class fixtures from ``factories`` for the decorated test class.

    Modules declare collection fixtures the same way, as a module-level
    ``collection_fixtures`` mapping of names to factories.
    """

    def decorator(target: C) -> C:
        setattr(target, FIXTURES_ATTRIBUTE, dict(factories))
        return target

    return decorator


def discover(
    module_names: Sequence[str], assembly_name: str = "unitrun"
) -> tuple[TestAssembly, list[TestCase]]:
    """Import each module and discover its tests.

    Raises:
        ImportError: If a module cannot be imported.
    """
    assembly = TestAssembly(name=assembly_name)
    test_cases: list[TestCase] = []
    for module_name in module_names:
        module = importlib.import_module(module_name)
        test_cases.extend(discover_module(module, assembly))
    log.info("Discovered %d test cases in %d modules", len(test_cases), len(module_names))
    return assembly, test_cases


def discover_module(module: ModuleType, assembly: TestAssembly) -> list[TestCase]:
    """Discover the test cases of one module, in definition order."""
    collection = TestCollection(
        assembly=assembly,
        name=module.__name__,
        hooks=_hooks(module, "setup_module", "teardown_module"),
        fixtures=dict(getattr(module, COLLECTION_FIXTURES_NAME, {})),
    )
    module_skip = getattr(module, SKIP_ATTRIBUTE, None)
    test_cases: list[TestCase] = []

    functions = [
        name
        for name, member in vars(module).items()
        if name.startswith(FUNCTION_PREFIX) and inspect.isfunction(member)
    ]
    if functions:
        test_class = TestClass(collection=collection, container=module)
        for name in functions:
            test_cases.extend(_test_cases(test_class, name, module_skip))

    for name, member in vars(module).items():
        if not _is_test_class(module, name, member):
            continue
        test_class = TestClass(
            collection=collection,
            container=member,
            hooks=_hooks(member, "setup_class", "teardown_class"),
            fixtures=getattr(member, FIXTURES_ATTRIBUTE, {}),
        )
        class_skip = getattr(member, SKIP_ATTRIBUTE, None) or module_skip
        for method_name in _test_method_names(member):
            test_cases.extend(_test_cases(test_class, method_name, class_skip))

    log.debug("Discovered %d test cases in %s", len(test_cases), module.__name__)
    return test_cases


def _is_test_class(module: ModuleType, name: str, member: Any) -> bool:
    return (
        name.startswith(CLASS_PREFIX)
        and inspect.isclass(member)
        and member.__module__ == module.__name__
        and getattr(member, "__test__", True)
    )


def _test_method_names(cls: type) -> Iterator[str]:
    seen: set[str] = set()
    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            if name in seen or not name.startswith(FUNCTION_PREFIX):
                continue
            if callable(member) or isinstance(member, (staticmethod, classmethod)):
                seen.add(name)
                yield name


def _hooks(container: Any, setup: str, teardown: str) -> LifecycleHooks:
    after_starting = getattr(container, setup, None)
    before_finished = getattr(container, teardown, None)
    if after_starting is None and before_finished is None:
        return NO_HOOKS
    return LifecycleHooks(
        after_starting=(after_starting,) if after_starting else (),
        before_finished=(before_finished,) if before_finished else (),
    )


def _test_cases(
    test_class: TestClass, name: str, inherited_skip: str | None
) -> list[TestCase]:
    test_method = TestMethod(test_class=test_class, name=name)
    function = test_method.function
    skip_reason = getattr(function, SKIP_ATTRIBUTE, None) or inherited_skip
    rows = getattr(function, ROWS_ATTRIBUTE, None)
    source = getattr(function, SOURCE_ATTRIBUTE, None)

    if rows is not None and source is not None:
        return [
            _error_case(
                test_method,
                f"Test method '{test_method.display_name}' has both cases and "
                "cases_from markers",
            )
        ]
    if source is not None:
        return [
            DelayEnumeratedTestCase(
                test_method=test_method, skip_reason=skip_reason, data_source=source
            )
        ]
    if rows is not None:
        if not rows:
            return [_error_case(test_method, f"No data found for {test_method.display_name}")]
        return [DataTestCase(test_method=test_method, skip_reason=skip_reason, rows=rows)]
    if _required_parameters(function):
        return [
            _error_case(
                test_method,
                f"Test method '{test_method.display_name}' has parameters but no "
                "cases; use cases() or cases_from()",
            )
        ]
    return [TestCase(test_method=test_method, skip_reason=skip_reason)]


def _error_case(test_method: TestMethod, message: str) -> ExecutionErrorTestCase:
    log.warning("%s", message)
    return ExecutionErrorTestCase(test_method=test_method, error_message=message)


def _required_parameters(function: Callable[..., Any]) -> list[str]:
    try:
        parameters = inspect.signature(function).parameters.values()
    except (TypeError, ValueError):
        return []
    return [
        parameter.name
        for parameter in parameters
        if parameter.name not in ("self", "cls")
        and parameter.default is parameter.empty
        and parameter.kind not in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD)
    ]
