"""Base adapter protocol for cache storage."""

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from swrcache.types import State


@runtime_checkable
class CacheAdapter(Protocol):
    """Storage adapter interface.

    Adapters are synchronous: every read and write happens between
    suspension points, so it is atomic with respect to other operations.
    """

    def get(self, key: str) -> State[Any] | None:
        """Get the state stored for a serialized key."""
        ...

    def set(self, key: str, state: State[Any]) -> None:
        """Store the state for a serialized key."""
        ...

    def delete(self, key: str) -> None:
        """Delete the state for a serialized key."""
        ...

    def keys(self) -> Iterable[str]:
        """Iterate over all stored serialized keys."""
        ...

    def clear(self) -> None:
        """Remove every stored state."""
        ...
