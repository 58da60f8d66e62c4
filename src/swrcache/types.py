"""Core types for swrcache."""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")

# Keys with these prefixes belong to specialised namespaces and are skipped
# by filtered mutations.
INFINITE_PREFIX = "$inf$"
SUBSCRIPTION_PREFIX = "$sub$"


class _Undefined(enum.Enum):
    """Marker for a value that was never set (distinct from ``None``)."""

    UNDEFINED = enum.auto()

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined.UNDEFINED


def or_none(value: Any) -> Any:
    """Map UNDEFINED to None before handing a value to user code."""
    return None if value is UNDEFINED else value


class RevalidateEvent(enum.Enum):
    """Reasons a consumer is asked to revalidate."""

    FOCUS = "focus"
    RECONNECT = "reconnect"
    MUTATE = "mutate"
    ERROR_REVALIDATE = "error-revalidate"


@dataclass(frozen=True, slots=True)
class State(Generic[T]):
    """Cached state for one serialized key.

    Every field defaults to UNDEFINED so partial updates can be merged
    with ``dataclasses.replace``.
    """

    data: T | _Undefined = UNDEFINED
    error: BaseException | _Undefined = UNDEFINED
    is_validating: bool | _Undefined = UNDEFINED
    is_loading: bool | _Undefined = UNDEFINED
    original_key: Any = UNDEFINED  # Pre-serialization key
    committed: Any = UNDEFINED  # Committed data backed up during a mutation


EMPTY_STATE: State[Any] = State()


@dataclass(frozen=True, slots=True)
class RevalidatorOptions:
    """Options for a single revalidation call."""

    retry_count: int = 0
    dedupe: bool = False


@dataclass(frozen=True, slots=True)
class MutatorOptions:
    """Options for a mutation.

    ``revalidate``, ``populate_cache`` and ``rollback_on_error`` accept
    either a flag or a predicate/transform.
    """

    optimistic_data: Any = UNDEFINED
    revalidate: bool | Callable[[Any, Any], bool] = True
    populate_cache: bool | Callable[[Any, Any], Any] = True
    rollback_on_error: bool | Callable[[BaseException], bool] = True
    throw_on_error: bool = True


# Key forms: str, tuple/list, mapping, thunk, or falsy
Key = Union[str, tuple, list, Mapping[str, Any], Callable[[], Any], None]
Fetcher = Callable[[Any], Union[Awaitable[Any], Any]]
Listener = Callable[[State[Any], State[Any]], None]
Revalidator = Callable[[RevalidateEvent, RevalidatorOptions], Awaitable[bool]]
