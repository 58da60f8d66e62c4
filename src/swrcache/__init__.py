"""swrcache - stale-while-revalidate data cache for asyncio."""

# Adapters
from swrcache.adapters import CacheAdapter, MemoryAdapter

# Cache store and coordination state
from swrcache.cache import Cache, GlobalState, StateRegistry, init_cache

# Client API
from swrcache.client import SWRClient
from swrcache.config import Configuration, create_configuration, merge_configuration

# Duration parsing
from swrcache.duration import Duration, parse_duration
from swrcache.events import EventSource

# HTTP fetcher (needs the "http" extra)
from swrcache.fetchers import FetchError, HTTPFetcher
from swrcache.hash import stable_hash

# Engines
from swrcache.mutate import internal_mutate
from swrcache.preload import preload
from swrcache.query import Query
from swrcache.revalidate import revalidate
from swrcache.serialize import serialize

# Core types
from swrcache.types import (
    UNDEFINED,
    Key,
    MutatorOptions,
    RevalidateEvent,
    RevalidatorOptions,
    State,
)


__version__ = "0.1.0"

__all__ = [
    "UNDEFINED",
    "Cache",
    "CacheAdapter",
    "Configuration",
    "Duration",
    "EventSource",
    "FetchError",
    "GlobalState",
    "HTTPFetcher",
    "Key",
    "MemoryAdapter",
    "MutatorOptions",
    "Query",
    "RevalidateEvent",
    "RevalidatorOptions",
    "SWRClient",
    "State",
    "StateRegistry",
    "create_configuration",
    "init_cache",
    "internal_mutate",
    "merge_configuration",
    "parse_duration",
    "preload",
    "revalidate",
    "serialize",
    "stable_hash",
]
