"""Preloading: start a fetch before any consumer asks for the key."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

from swrcache.cache import Cache
from swrcache.serialize import serialize
from swrcache.types import INFINITE_PREFIX, Fetcher, Key

logger = logging.getLogger(__name__)


def as_future(result: Any) -> asyncio.Future[Any]:
    """Wrap a fetcher result (awaitable or plain value) in a future."""
    if inspect.isawaitable(result):
        return asyncio.ensure_future(result)
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    future.set_result(result)
    return future


def preload(cache: Cache, key: Key, fetcher: Fetcher) -> asyncio.Future[Any]:
    """Start fetching ``key`` now; later revalidations adopt the result.

    Calling it again while the first fetch is pending returns the same
    future without calling ``fetcher`` again.
    """
    serialized, fn_arg = serialize(key)
    pending = cache.state.preload.get(serialized)
    if pending is not None:
        if not pending.done():
            return pending
        # Settled results are never handed out again
        del cache.state.preload[serialized]

    logger.debug("Preloading %r", serialized)
    request = as_future(fetcher(fn_arg))
    if serialized:
        cache.state.preload[serialized] = request
    return request


def consume_preload(cache: Cache, key: str) -> asyncio.Future[Any] | None:
    """Take the preloaded request for ``key``, if one is pending."""
    if key.startswith(INFINITE_PREFIX):
        # Paginated keys handle preloading themselves
        return None
    return cache.state.preload.pop(key, None)


__all__ = ["as_future", "consume_preload", "preload"]
