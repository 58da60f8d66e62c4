"""Mutation: write data (optionally optimistic) into the cache and revalidate."""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from swrcache.cache import Cache
from swrcache.serialize import serialize
from swrcache.timestamp import get_timestamp
from swrcache.types import (
    UNDEFINED,
    Key,
    MutatorOptions,
    RevalidateEvent,
    RevalidatorOptions,
    or_none,
)

logger = logging.getLogger(__name__)

# Keys owned by paginated and subscription caches
_RESERVED_KEY = re.compile(r"^\$(inf|sub)\$")

KeyFilter = Callable[[Any], bool]


def _resolve_options(opts: MutatorOptions | bool | None) -> MutatorOptions:
    if isinstance(opts, bool):
        # Shorthand: mutate(key, data, False) disables revalidation
        return MutatorOptions(revalidate=opts)
    return opts or MutatorOptions()


async def internal_mutate(
    cache: Cache,
    key: Key | KeyFilter,
    data: Any = UNDEFINED,
    opts: MutatorOptions | bool | None = None,
) -> Any:
    """Mutate one key, or every cached key accepted by a filter.

    Args:
        cache: Cache to mutate
        key: A key, or a predicate over the original (unserialized) keys
        data: New data, an awaitable of it, or a function of the current
            committed data. Omit to only revalidate.
        opts: MutatorOptions, or a bool shorthand for ``revalidate``

    Returns:
        The resolved data, or a list of results when ``key`` is a filter
    """
    options = _resolve_options(opts)

    if callable(key):
        key_filter = key
        matched = [
            k
            for k in cache.keys()
            if not _RESERVED_KEY.match(k)
            and key_filter(or_none(cache.get(k).original_key))
        ]
        logger.debug("Key filter matched %d keys", len(matched))
        return list(
            await asyncio.gather(
                *(_mutate_by_key(cache, k, data, options) for k in matched)
            )
        )

    return await _mutate_by_key(cache, key, data, options)


async def _mutate_by_key(
    cache: Cache,
    raw_key: Key,
    data: Any,
    options: MutatorOptions,
) -> Any:
    key, _ = serialize(raw_key)
    if not key:
        return None

    state = cache.state

    def start_revalidate() -> Awaitable[bool] | None:
        revalidate_option = options.revalidate
        if callable(revalidate_option):
            should_revalidate = revalidate_option(or_none(cache.get(key).data), raw_key)
        else:
            should_revalidate = revalidate_option is not False
        if not should_revalidate:
            return None

        # Drop the in-flight markers so the new request is not deduped.
        state.fetch.pop(key, None)
        state.preload.pop(key, None)
        revalidators = state.revalidators.get(key)
        if revalidators:
            return revalidators[0](RevalidateEvent.MUTATE, RevalidatorOptions())
        return None

    # No new data: revalidate and return whatever the cache then holds.
    if data is UNDEFINED:
        pending = start_revalidate()
        if pending is not None:
            await pending
        return or_none(cache.get(key).data)

    error: BaseException | None = None
    is_error = False

    before_mutation_ts = get_timestamp()
    state.mutation[key] = [before_mutation_ts, 0]

    has_optimistic_data = options.optimistic_data is not UNDEFINED
    current = cache.get(key)

    # `displayed` may be an optimistic value; `committed` is the last value
    # that came from a fetch or a finished mutation.
    displayed_data = current.data
    committed_data = displayed_data if current.committed is UNDEFINED else current.committed

    if has_optimistic_data:
        optimistic_data = options.optimistic_data
        try:
            if callable(optimistic_data):
                optimistic_data = optimistic_data(
                    or_none(committed_data), or_none(displayed_data)
                )
        except Exception as err:
            # Nothing was applied, so there is nothing to roll back
            error, is_error = err, True
            has_optimistic_data = False
            if inspect.iscoroutine(data):
                data.close()
        else:
            cache.set(key, data=optimistic_data, committed=committed_data)

    if not is_error and callable(data):
        try:
            data = data(or_none(committed_data))
        except Exception as err:
            # Never write the cache when the mutator fails synchronously
            error, is_error = err, True

    if not is_error and inspect.isawaitable(data):
        try:
            data = await data
        except Exception as err:
            data = None
            error, is_error = err, True

        # A newer mutation started meanwhile; it owns the cache now.
        if before_mutation_ts != state.mutation[key][0]:
            logger.debug("Mutation of %r superseded by a newer one", key)
            if is_error:
                raise error  # type: ignore[misc]
            return data

    populate_cache = options.populate_cache
    if is_error and has_optimistic_data and _should_rollback(options, error):
        logger.debug("Rolling back optimistic data for %r after %r", key, error)
        populate_cache = True
        cache.set(key, data=committed_data, error=error, committed=UNDEFINED)

    if populate_cache and not is_error:
        if callable(populate_cache):
            data = populate_cache(data, or_none(committed_data))
        cache.set(key, data=data, error=UNDEFINED, committed=UNDEFINED)

    # Mark the mutation as ended.
    state.mutation[key][1] = get_timestamp()

    async def finish() -> None:
        pending = start_revalidate()
        if pending is not None:
            await pending
        # Data is no longer optimistic once revalidation settled.
        cache.set(key, committed=UNDEFINED)

    cache.spawn(finish())

    if is_error:
        if options.throw_on_error:
            raise error  # type: ignore[misc]
        return None
    return data


def _should_rollback(options: MutatorOptions, error: BaseException | None) -> bool:
    rollback = options.rollback_on_error
    if callable(rollback):
        return bool(rollback(error))
    return rollback is not False


__all__ = ["KeyFilter", "internal_mutate"]
