"""In-memory storage adapter."""

from collections import OrderedDict
from collections.abc import Iterator
from typing import Any

from swrcache.types import State


class MemoryAdapter:
    """In-memory storage adapter with optional LRU eviction."""

    def __init__(self, max_items: int | None = None) -> None:
        if max_items is not None and max_items < 1:
            raise ValueError("max_items must be at least 1")
        self._states: OrderedDict[str, State[Any]] = OrderedDict()
        self._max_items = max_items

    def get(self, key: str) -> State[Any] | None:
        """Get the state stored for a serialized key."""
        state = self._states.get(key)
        if state is not None and self._max_items:
            self._states.move_to_end(key)  # LRU touch
        return state

    def set(self, key: str, state: State[Any]) -> None:
        """Store the state for a serialized key."""
        self._states[key] = state
        self._states.move_to_end(key)
        if self._max_items and len(self._states) > self._max_items:
            self._states.popitem(last=False)

    def delete(self, key: str) -> None:
        """Delete the state for a serialized key."""
        self._states.pop(key, None)

    def keys(self) -> Iterator[str]:
        """Iterate over a snapshot of the stored keys."""
        return iter(list(self._states))

    def clear(self) -> None:
        """Remove every stored state."""
        self._states.clear()

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, key: object) -> bool:
        return key in self._states
