"""Resolution of test class constructor arguments.

Arguments are resolved once per class and shared by every test in it.
Parameters nobody can supply are recorded as a single
:class:`~unitrun.faults.TestClassError`, which makes every test in the
class fail while still being reported individually.
"""

import enum
import inspect
import logging
import types
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, Union, get_args, get_origin

from unitrun.faults import FaultCollector, TestClassError
from unitrun.models.units import TestClass

log = logging.getLogger(__name__)


class _Declined(enum.Enum):
    DECLINED = enum.auto()


DECLINED = _Declined.DECLINED

type ConstructorSelector = Callable[[TestClass, FaultCollector], inspect.Signature | None]


@dataclass(frozen=True, kw_only=True)
class ConstructorArguments:
    """Positional and keyword arguments for constructing a test class."""

    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)


NO_ARGUMENTS = ConstructorArguments()


class ConstructorArgumentResolver(Protocol):
    """Supplies values for test class constructor parameters."""

    def try_resolve(self, parameter: inspect.Parameter) -> Any:
        """Return a value for ``parameter``, or ``DECLINED``."""
        ...


@dataclass(frozen=True, kw_only=True)
class NoArgumentResolver:
    """Resolver that never supplies anything."""

    def try_resolve(self, parameter: inspect.Parameter) -> Any:
        return DECLINED


@dataclass(frozen=True, kw_only=True)
class FixtureResolver:
    """Resolves parameters from fixtures registered by name or by type.

    Name matches win over type matches. A type match accepts a fixture
    registered for the annotation itself or for any of its base classes.
    """

    by_name: Mapping[str, Any] = field(default_factory=dict)
    by_type: Mapping[type, Any] = field(default_factory=dict)

    def try_resolve(self, parameter: inspect.Parameter) -> Any:
        if parameter.name in self.by_name:
            return self.by_name[parameter.name]

        annotation = _unwrap_optional(parameter.annotation)
        if isinstance(annotation, type):
            for candidate in annotation.__mro__:
                if candidate in self.by_type:
                    return self.by_type[candidate]

        return DECLINED

    @classmethod
    def from_values(cls, values: Mapping[str, Any]) -> "FixtureResolver":
        """Serve each value by its name and by its concrete type."""
        return cls(
            by_name=dict(values),
            by_type={type(value): value for value in values.values()},
        )


@dataclass(frozen=True, kw_only=True)
class ChainedResolver:
    """Asks each resolver in turn; the first that does not decline wins."""

    resolvers: Sequence[ConstructorArgumentResolver]

    def try_resolve(self, parameter: inspect.Parameter) -> Any:
        for resolver in self.resolvers:
            value = resolver.try_resolve(parameter)
            if value is not DECLINED:
                return value
        return DECLINED


def constructor_signature(
    test_class: TestClass, collector: FaultCollector
) -> inspect.Signature | None:
    """Inspect the container's ``__init__``, recording a fault if impossible."""
    container = test_class.container
    try:
        try:
            return inspect.signature(container, eval_str=True)
        except NameError:
            return inspect.signature(container)
    except (TypeError, ValueError) as exc:
        collector.add(
            TestClassError(f"Could not inspect the constructor of {test_class.name}: {exc}")
        )
        return None


def select_parameterless_constructor(
    test_class: TestClass, collector: FaultCollector
) -> inspect.Signature | None:
    """Accept the constructor only if it can be called without arguments."""
    signature = constructor_signature(test_class, collector)
    if signature is None:
        return None

    required = [
        parameter
        for parameter in signature.parameters.values()
        if parameter.default is parameter.empty
        and parameter.kind not in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD)
    ]
    if required:
        collector.add(TestClassError("A test class must have a parameterless constructor."))
        return None

    return signature


def select_sole_constructor(
    test_class: TestClass, collector: FaultCollector
) -> inspect.Signature | None:
    """Accept whatever constructor the class declares."""
    return constructor_signature(test_class, collector)


def resolve_constructor_arguments(
    test_class: TestClass,
    collector: FaultCollector,
    *,
    selector: ConstructorSelector = select_parameterless_constructor,
    resolver: ConstructorArgumentResolver | None = None,
) -> ConstructorArguments:
    """Resolve every constructor parameter of ``test_class``.

    Each parameter is tried, in order, against the resolver, its declared
    default, ``None`` for optional annotations, and an empty value for
    ``*args`` / ``**kwargs``. Whatever is left is reported as one fault.
    """
    if test_class.is_static or collector.has_faults:
        return NO_ARGUMENTS

    signature = selector(test_class, collector)
    if signature is None:
        return NO_ARGUMENTS

    resolver = resolver or NoArgumentResolver()
    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    unresolved: list[inspect.Parameter] = []

    for parameter in signature.parameters.values():
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            continue

        try:
            value = resolver.try_resolve(parameter)
        except Exception as exc:
            log.warning(
                "Resolver failed for %s parameter %s: %r", test_class.name, parameter.name, exc
            )
            error = TestClassError(
                f"Resolving constructor parameter '{parameter.name}' of "
                f"{test_class.name} raised {type(exc).__name__}: {exc}"
            )
            error.__cause__ = exc
            collector.add(error)
            return NO_ARGUMENTS

        if value is DECLINED:
            if parameter.default is not parameter.empty:
                value = parameter.default
            elif _is_optional(parameter.annotation):
                value = None
            else:
                unresolved.append(parameter)
                continue

        if parameter.kind is parameter.KEYWORD_ONLY:
            kwargs[parameter.name] = value
        else:
            args.append(value)

    if unresolved:
        log.warning(
            "Unresolved constructor parameters for %s: %s",
            test_class.name,
            ", ".join(p.name for p in unresolved),
        )
        collector.add(TestClassError(format_missing_arguments(unresolved)))

    return ConstructorArguments(args=tuple(args), kwargs=kwargs)


def format_missing_arguments(parameters: list[inspect.Parameter]) -> str:
    described = ", ".join(
        f"{_annotation_name(p.annotation)} {p.name}" for p in parameters
    )
    return (
        "The following constructor parameters did not have matching arguments: "
        + described
    )


def _annotation_name(annotation: Any) -> str:
    if annotation is inspect.Parameter.empty:
        return "object"
    if isinstance(annotation, type):
        return annotation.__name__
    return str(annotation)


def _is_optional(annotation: Any) -> bool:
    if annotation is None or annotation is type(None):
        return True
    if get_origin(annotation) in (Union, types.UnionType):
        return type(None) in get_args(annotation)
    return False


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) in (Union, types.UnionType):
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation
