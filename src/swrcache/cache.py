"""Cache store and the coordination state shared by one cache instance."""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable, Coroutine, Iterator
from dataclasses import dataclass, field, replace
from typing import Any

from swrcache.adapters.base import CacheAdapter
from swrcache.config import Configuration
from swrcache.types import (
    EMPTY_STATE,
    Listener,
    RevalidateEvent,
    RevalidatorOptions,
    Revalidator,
    State,
)

logger = logging.getLogger(__name__)


@dataclass
class GlobalState:
    """Coordination record for one cache adapter."""

    # key -> revalidation callbacks of the consumers attached to it
    revalidators: dict[str, list[Revalidator]] = field(default_factory=dict)
    # key -> [mutation start, mutation end]; end is 0 while in flight
    mutation: dict[str, list[int]] = field(default_factory=dict)
    # key -> (shared result, dispatch timestamp)
    fetch: dict[str, tuple[asyncio.Future[Any], int]] = field(default_factory=dict)
    # key -> pending preloaded result
    preload: dict[str, asyncio.Future[Any]] = field(default_factory=dict)
    subscriptions: dict[str, list[Listener]] = field(default_factory=dict)
    # Value each key held before its first write
    initial: dict[str, State[Any]] = field(default_factory=dict)
    background_tasks: set[asyncio.Task[Any]] = field(default_factory=set)
    releases: list[Callable[[], None]] = field(default_factory=list)


class StateRegistry:
    """Maps each cache adapter to its coordination record.

    Entries are weak, so dropping the adapter drops its record.
    """

    def __init__(self) -> None:
        self._states: weakref.WeakKeyDictionary[CacheAdapter, GlobalState] = (
            weakref.WeakKeyDictionary()
        )

    def get(self, adapter: CacheAdapter) -> GlobalState | None:
        return self._states.get(adapter)

    def has(self, adapter: CacheAdapter) -> bool:
        return adapter in self._states

    def add(self, adapter: CacheAdapter, state: GlobalState) -> None:
        self._states[adapter] = state

    def remove(self, adapter: CacheAdapter) -> None:
        self._states.pop(adapter, None)


class Cache:
    """A cache adapter bound to its coordination state.

    All reads and writes are synchronous. ``set`` merges a partial update
    over the previous state and notifies the key's listeners with
    ``(current, previous)``.
    """

    def __init__(
        self,
        adapter: CacheAdapter,
        state: GlobalState,
        registry: StateRegistry,
    ) -> None:
        self._adapter = adapter
        self._state = state
        self._registry = registry

    @property
    def adapter(self) -> CacheAdapter:
        return self._adapter

    @property
    def state(self) -> GlobalState:
        return self._state

    def get(self, key: str) -> State[Any]:
        """Get the state for ``key``; an empty state when unknown."""
        if not key:
            return EMPTY_STATE
        return self._adapter.get(key) or EMPTY_STATE

    def set(self, key: str, **changes: Any) -> None:
        """Merge ``changes`` into the state for ``key``."""
        if not key:
            return
        prev = self._adapter.get(key)
        # Remember what the key held before it was first written
        if key not in self._state.initial:
            self._state.initial[key] = prev or EMPTY_STATE

        current = replace(prev or EMPTY_STATE, **changes)
        self._adapter.set(key, current)
        for listener in list(self._state.subscriptions.get(key, ())):
            listener(current, prev or EMPTY_STATE)

    def delete(self, key: str) -> None:
        self._adapter.delete(key)

    def keys(self) -> Iterator[str]:
        return iter(self._adapter.keys())

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for changes to ``key``; returns unsubscribe."""
        subs = self._state.subscriptions.setdefault(key, [])
        subs.append(listener)

        def unsubscribe() -> None:
            if listener in subs:
                subs.remove(listener)

        return unsubscribe

    def get_initial(self, key: str) -> State[Any]:
        """First-seen snapshot of ``key``.

        Returns the state held before the first write, or the current state
        when the key has never been written through this cache.
        """
        if key in self._state.initial:
            return self._state.initial[key]
        return self.get(key)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run ``coro`` as a tracked background task."""
        task = asyncio.ensure_future(coro)
        self._state.background_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._state.background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Background task failed", exc_info=task.exception())

    def broadcast(self, event: RevalidateEvent) -> None:
        """Ask the first consumer of every key to revalidate."""
        for key, revalidators in list(self._state.revalidators.items()):
            if revalidators:
                self.spawn(revalidators[0](event, RevalidatorOptions()))

    def release(self) -> None:
        """Release event listeners and forget this cache's coordination state."""
        for release in self._state.releases:
            release()
        self._state.releases.clear()
        for task in list(self._state.background_tasks):
            task.cancel()
        self._registry.remove(self._adapter)


def subscribe_revalidator(
    revalidators: dict[str, list[Revalidator]], key: str, callback: Revalidator
) -> Callable[[], None]:
    """Attach ``callback`` to ``key``; returns a detach function."""
    callbacks = revalidators.setdefault(key, [])
    callbacks.append(callback)

    def unsubscribe() -> None:
        if callback in callbacks:
            callbacks.remove(callback)

    return unsubscribe


def init_cache(
    adapter: CacheAdapter,
    registry: StateRegistry,
    config: Configuration,
) -> Cache:
    """Bind ``adapter`` to its coordination state, creating it on first use.

    On creation, focus and reconnect listeners are registered through
    ``config.init_focus`` and ``config.init_reconnect``. Events are
    delivered on the next loop iteration so they run after whatever code
    triggered them.
    """
    state = registry.get(adapter)
    if state is not None:
        return Cache(adapter, state, registry)

    state = GlobalState()
    registry.add(adapter, state)
    cache = Cache(adapter, state, registry)

    def on_event(event: RevalidateEvent) -> Callable[[], None]:
        def fire() -> None:
            asyncio.get_running_loop().call_soon(cache.broadcast, event)

        return fire

    for register, event in (
        (config.init_focus, RevalidateEvent.FOCUS),
        (config.init_reconnect, RevalidateEvent.RECONNECT),
    ):
        release = register(on_event(event))
        if release is not None:
            state.releases.append(release)

    return cache


__all__ = [
    "Cache",
    "GlobalState",
    "StateRegistry",
    "init_cache",
    "subscribe_revalidator",
]
