"""Query - one consumer of a cache key.

A Query is what a view layer would hold per key: it registers for focus,
reconnect, mutation and error-retry revalidations while mounted, polls on
``refresh_interval``, and exposes the key's current snapshot.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Generic, TypeVar

from swrcache.cache import Cache, subscribe_revalidator
from swrcache.config import Configuration
from swrcache.duration import to_seconds
from swrcache.mutate import internal_mutate
from swrcache.revalidate import revalidate
from swrcache.serialize import serialize
from swrcache.types import (
    UNDEFINED,
    Fetcher,
    Key,
    Listener,
    MutatorOptions,
    RevalidateEvent,
    RevalidatorOptions,
    State,
    or_none,
)

T = TypeVar("T")


def _now_ms() -> float:
    return time.time() * 1000


class Query(Generic[T]):
    """A consumer bound to one key of a cache.

    The key is serialized once, at construction. With ``keep_previous_data``
    the query keeps showing the last data it saw while its entry is empty,
    e.g. after the entry is deleted or evicted by a bounded adapter.

    Usage:
        async with client.query("/api/user", fetch_user) as query:
            await query.revalidate()
            print(query.data)
    """

    def __init__(
        self,
        cache: Cache,
        key: Key,
        fetcher: Fetcher | None,
        config: Configuration,
    ) -> None:
        self._cache = cache
        self._key, self._fn_arg = serialize(key)
        self._fetcher = fetcher if fetcher is not None else config.fetcher
        self._config = config
        self._disposed = False
        self._mounted = False
        self._has_mounted = False
        self._laggy_data: Any = UNDEFINED
        self._next_focus_revalidated_at = 0.0
        self._unsubscribe_events: Callable[[], None] | None = None
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def key(self) -> str:
        """Serialized key."""
        return self._key

    @property
    def arg(self) -> Any:
        """Argument passed to the fetcher."""
        return self._fn_arg

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def state(self) -> State[T]:
        """Snapshot of the key, with fallback data applied."""
        cached = self._cache.get(self._key)
        data = cached.data
        if data is UNDEFINED:
            data = self._fallback()
        if self._config.keep_previous_data:
            if cached.data is UNDEFINED and self._laggy_data is not UNDEFINED:
                data = self._laggy_data
            elif data is not UNDEFINED:
                self._laggy_data = data

        # Before the first mount, report the request we are about to start.
        default_validating = bool(
            self._key
            and self._fetcher is not None
            and not self._has_mounted
            and self._should_do_initial_revalidation(data)
        )
        is_validating = cached.is_validating
        is_loading = cached.is_loading
        return State(
            data=data,
            error=cached.error,
            is_validating=default_validating if is_validating is UNDEFINED else is_validating,
            is_loading=default_validating if is_loading is UNDEFINED else is_loading,
        )

    @property
    def data(self) -> T | None:
        return or_none(self.state.data)

    @property
    def error(self) -> BaseException | None:
        return or_none(self._cache.get(self._key).error)

    @property
    def is_validating(self) -> bool:
        return bool(self.state.is_validating)

    @property
    def is_loading(self) -> bool:
        return bool(self.state.is_loading)

    def initial_state(self) -> State[T]:
        """First-seen snapshot of the key, for a pre-interactive render."""
        return replace(self._cache.get_initial(self._key), original_key=UNDEFINED, committed=UNDEFINED)

    async def revalidate(self, *, dedupe: bool = False, retry_count: int = 0) -> bool:
        """Fetch the key, or join the fetch in flight when ``dedupe``."""
        return await revalidate(
            self._cache,
            self._key,
            self._fn_arg,
            self._fetcher,
            self._config,
            RevalidatorOptions(retry_count=retry_count, dedupe=dedupe),
            is_disposed=self._is_disposed,
        )

    async def mutate(self, data: Any = UNDEFINED, opts: MutatorOptions | bool | None = None) -> Any:
        """Mutate this query's key. Omit ``data`` to only revalidate."""
        return await internal_mutate(self._cache, self._key, data, opts)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Listen for state changes of this key."""
        return self._cache.subscribe(self._key, listener)

    def mount(self) -> None:
        """Attach to the key: register revalidators, fetch, start polling.

        Must be called from a running event loop.
        """
        if self._mounted or not self._key:
            return

        initial_revalidate = self._should_do_initial_revalidation(self.state.data)
        if self._config.revalidate_on_focus:
            self._next_focus_revalidated_at = _now_ms() + self._config.focus_throttle_interval

        self._unsubscribe_events = subscribe_revalidator(
            self._cache.state.revalidators, self._key, self._on_revalidate
        )
        self._disposed = False
        self._mounted = True
        self._has_mounted = True
        self._cache.set(self._key, original_key=self._fn_arg)

        if initial_revalidate and self._key not in self._cache.state.fetch:
            self._cache.spawn(self.revalidate(dedupe=True))

        if self._config.refresh_interval:
            self._poll_task = self._cache.spawn(self._poll())

    def unmount(self) -> None:
        """Detach from the key. In-flight fetches keep running for others."""
        self._disposed = True
        self._mounted = False
        if self._unsubscribe_events is not None:
            self._unsubscribe_events()
            self._unsubscribe_events = None
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def __aenter__(self) -> Query[T]:
        self.mount()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.unmount()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _is_disposed(self) -> bool:
        return self._disposed

    def _fallback(self) -> Any:
        if self._config.fallback_data is not UNDEFINED:
            return self._config.fallback_data
        return self._config.fallback.get(self._key, UNDEFINED)

    def _should_do_initial_revalidation(self, data: Any) -> bool:
        config = self._config
        revalidators = self._cache.state.revalidators.get(self._key)
        # Another consumer already owns the error retry
        if revalidators and self._cache.get(self._key).error is not UNDEFINED:
            return False
        if not self._has_mounted and config.revalidate_on_mount is not None:
            return config.revalidate_on_mount
        if config.is_paused():
            return False
        return data is UNDEFINED or config.revalidate_if_stale

    async def _on_revalidate(
        self, event: RevalidateEvent, opts: RevalidatorOptions | None = None
    ) -> bool:
        config = self._config
        if event is RevalidateEvent.FOCUS:
            now = _now_ms()
            if (
                config.revalidate_on_focus
                and now > self._next_focus_revalidated_at
                and config.is_active()
            ):
                self._next_focus_revalidated_at = now + config.focus_throttle_interval
                return await self.revalidate(dedupe=True)
        elif event is RevalidateEvent.RECONNECT:
            if config.revalidate_on_reconnect and config.is_active():
                return await self.revalidate(dedupe=True)
        elif event is RevalidateEvent.MUTATE:
            return await self.revalidate()
        elif event is RevalidateEvent.ERROR_REVALIDATE:
            opts = opts or RevalidatorOptions()
            return await self.revalidate(dedupe=opts.dedupe, retry_count=opts.retry_count)
        return False

    def _refresh_interval(self) -> int:
        interval = self._config.refresh_interval
        if callable(interval):
            return int(interval(or_none(self._cache.get(self._key).data)))
        return interval

    async def _poll(self) -> None:
        config = self._config
        while self._mounted:
            interval = self._refresh_interval()
            if not interval:
                return
            await asyncio.sleep(to_seconds(interval))
            if not self._mounted:
                return
            if (
                self._cache.get(self._key).error is UNDEFINED
                and (config.refresh_when_hidden or config.is_visible())
                and (config.refresh_when_offline or config.is_online())
            ):
                # Shielded so stopping the poll never strands a revalidation
                await asyncio.shield(self._cache.spawn(self.revalidate(dedupe=True)))


__all__ = ["Query"]
