"""Flattened representation of captured exceptions.

An exception tree is transmitted as parallel tuples of type names,
messages and stack traces. ``fault_parent_indices[i]`` holds the index of
the exception that fault ``i`` is the inner cause of, or ``-1`` for the
outermost exception.
"""

import traceback
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Self

from unitrun.models.base import Model

ENGINE_ROOT = Path(__file__).resolve().parent.parent
ENGINE_NAMESPACE = "unitrun."


class FailureInfo(Model):
    """Flattened exception tree."""

    fault_types: tuple[str, ...] = ()
    fault_messages: tuple[str, ...] = ()
    fault_stack_traces: tuple[str, ...] = ()
    fault_parent_indices: tuple[int, ...] = ()

    @classmethod
    def from_exception(cls, exception: BaseException, **fields: Any) -> Self:
        """Build the model from an exception plus any extra model fields."""
        return cls(**flatten_exception(exception), **fields)


def flatten_exception(exception: BaseException) -> dict[str, tuple[Any, ...]]:
    """Walk an exception tree depth-first into parallel tuples.

    Inner causes are the members of an exception group, otherwise the
    explicit ``__cause__``, otherwise an unsuppressed ``__context__``.
    """
    types: list[str] = []
    messages: list[str] = []
    stack_traces: list[str] = []
    parents: list[int] = []
    seen: set[int] = set()

    def visit(exc: BaseException, parent_index: int) -> None:
        if id(exc) in seen:
            return
        seen.add(id(exc))

        index = len(types)
        types.append(exception_type_name(exc))
        messages.append(str(exc))
        stack_traces.append(format_stack_trace(exc))
        parents.append(parent_index)

        for inner in inner_exceptions(exc):
            visit(inner, index)

    visit(exception, -1)

    return {
        "fault_types": tuple(types),
        "fault_messages": tuple(messages),
        "fault_stack_traces": tuple(stack_traces),
        "fault_parent_indices": tuple(parents),
    }


def inner_exceptions(exception: BaseException) -> Sequence[BaseException]:
    """Return the immediate inner causes of an exception."""
    if isinstance(exception, BaseExceptionGroup):
        return exception.exceptions
    if exception.__cause__ is not None:
        return (exception.__cause__,)
    if exception.__context__ is not None and not exception.__suppress_context__:
        return (exception.__context__,)
    return ()


def exception_type_name(exception: BaseException) -> str:
    """Qualified type name; builtins are reported by bare name."""
    exc_type = type(exception)
    if exc_type.__module__ == "builtins":
        return exc_type.__qualname__
    return f"{exc_type.__module__}.{exc_type.__qualname__}"


def format_stack_trace(exception: BaseException) -> str:
    """Format the traceback, dropping frames that belong to the engine."""
    frames = [
        frame
        for frame in traceback.extract_tb(exception.__traceback__)
        if not _is_engine_frame(frame.filename)
    ]
    return "".join(traceback.format_list(frames)).rstrip("\n")


def _is_engine_frame(filename: str) -> bool:
    try:
        return Path(filename).resolve().is_relative_to(ENGINE_ROOT)
    except (OSError, ValueError):
        return False


def combine_messages(failure: FailureInfo) -> str:
    """Render every message of the tree, indenting inner causes."""
    if not failure.fault_types:
        return ""
    return _message_at(failure, 0, 0)


def combine_stack_traces(failure: FailureInfo) -> str:
    """Render every stack trace of the tree with inner-trace separators."""
    if not failure.fault_types:
        return ""
    return _stack_trace_at(failure, 0)


def _children(failure: FailureInfo, index: int) -> list[int]:
    return [
        child
        for child in range(index + 1, len(failure.fault_parent_indices))
        if failure.fault_parent_indices[child] == index
    ]


def _message_at(failure: FailureInfo, index: int, depth: int) -> str:
    result = ""
    if depth > 0:
        result = "----" * depth + " "

    fault_type = failure.fault_types[index]
    if not fault_type.startswith(ENGINE_NAMESPACE):
        result += f"{fault_type} : "
    result += failure.fault_messages[index]

    for child in _children(failure, index):
        result += "\n" + _message_at(failure, child, depth + 1)

    return result


def _stack_trace_at(failure: FailureInfo, index: int) -> str:
    result = failure.fault_stack_traces[index]
    children = _children(failure, index)

    if len(children) == 1:
        result += (
            "\n----- Inner Stack Trace -----\n"
            + _stack_trace_at(failure, children[0])
        )
    elif len(children) > 1:
        for number, child in enumerate(children, start=1):
            result += (
                f"\n----- Inner Stack Trace #{number} "
                f"({failure.fault_types[child]}) -----\n"
                + _stack_trace_at(failure, child)
            )

    return result
