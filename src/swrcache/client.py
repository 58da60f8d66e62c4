"""Stale-while-revalidate cache client."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from swrcache.adapters.base import CacheAdapter
from swrcache.adapters.memory import MemoryAdapter
from swrcache.cache import Cache, StateRegistry, init_cache
from swrcache.config import Configuration, create_configuration, merge_configuration
from swrcache.mutate import KeyFilter, internal_mutate
from swrcache.preload import preload
from swrcache.query import Query
from swrcache.revalidate import revalidate
from swrcache.serialize import serialize
from swrcache.types import (
    UNDEFINED,
    Fetcher,
    Key,
    Listener,
    MutatorOptions,
    RevalidatorOptions,
    State,
)


class SWRClient:
    """Stale-while-revalidate cache client.

    Usage:
        client = SWRClient(deduping_interval="2s")
        async with client.query("/api/user", fetch_user) as user:
            ...
        await client.mutate("/api/user", {"name": "new"}, MutatorOptions(revalidate=False))
    """

    def __init__(
        self,
        adapter: CacheAdapter | None = None,
        *,
        registry: StateRegistry | None = None,
        **options: Any,
    ) -> None:
        self._adapter = adapter if adapter is not None else MemoryAdapter()
        self._registry = registry if registry is not None else StateRegistry()
        self._config = create_configuration(**options)
        self._cache = init_cache(self._adapter, self._registry, self._config)

    @property
    def cache(self) -> Cache:
        """Escape hatch to the underlying cache store."""
        return self._cache

    @property
    def config(self) -> Configuration:
        return self._config

    def query(self, key: Key, fetcher: Fetcher | None = None, **options: Any) -> Query[Any]:
        """Create a consumer of ``key``; per-query options override the client's."""
        return Query(self._cache, key, fetcher, merge_configuration(self._config, **options))

    async def revalidate(
        self,
        key: Key,
        fetcher: Fetcher | None = None,
        *,
        dedupe: bool = False,
    ) -> bool:
        """Fetch ``key`` with ``fetcher`` (default: the configured fetcher)."""
        serialized, fn_arg = serialize(key)
        return await revalidate(
            self._cache,
            serialized,
            fn_arg,
            fetcher if fetcher is not None else self._config.fetcher,
            self._config,
            RevalidatorOptions(dedupe=dedupe),
        )

    async def mutate(
        self,
        key: Key | KeyFilter,
        data: Any = UNDEFINED,
        opts: MutatorOptions | bool | None = None,
    ) -> Any:
        """Mutate a key, or every key matched by a filter."""
        return await internal_mutate(self._cache, key, data, opts)

    def preload(self, key: Key, fetcher: Fetcher) -> asyncio.Future[Any]:
        """Start fetching ``key`` before it is used."""
        return preload(self._cache, key, fetcher)

    def subscribe(self, key: Key, listener: Listener) -> Callable[[], None]:
        """Listen for state changes of ``key``; returns unsubscribe."""
        serialized, _ = serialize(key)
        return self._cache.subscribe(serialized, listener)

    def get_state(self, key: Key) -> State[Any]:
        """Current state of ``key``."""
        serialized, _ = serialize(key)
        return self._cache.get(serialized)

    async def close(self) -> None:
        """Release event listeners and cancel background work."""
        self._cache.release()
