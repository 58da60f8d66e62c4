"""Revalidation: dispatch or join a fetch and commit its result.

Every fetch for a key is stamped with a logical timestamp. When it settles,
its result is committed only if no later fetch replaced it in the
in-flight table and no mutation overlapped it. Nothing is locked; all
checks happen synchronously after the only suspension point.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from swrcache.cache import Cache
from swrcache.config import Configuration
from swrcache.duration import to_seconds
from swrcache.preload import as_future, consume_preload
from swrcache.timestamp import get_timestamp
from swrcache.types import UNDEFINED, Fetcher, RevalidateEvent, RevalidatorOptions

logger = logging.getLogger(__name__)


def _never() -> bool:
    return False


def _dispatch(cache: Cache, key: str, fetcher: Fetcher, fn_arg: Any) -> asyncio.Future[Any]:
    preloaded = consume_preload(cache, key)
    if preloaded is not None:
        logger.debug("Adopting preloaded request for %r", key)
        return preloaded
    return as_future(fetcher(fn_arg))


async def revalidate(
    cache: Cache,
    key: str,
    fn_arg: Any,
    fetcher: Fetcher | None,
    config: Configuration,
    opts: RevalidatorOptions | None = None,
    *,
    is_disposed: Callable[[], bool] = _never,
) -> bool:
    """Fetch ``key`` (or join the fetch in flight) and update the cache.

    Args:
        cache: Cache to read and write
        key: Serialized key
        fn_arg: Argument passed to the fetcher
        fetcher: Function producing the data, or None to disable fetching
        config: Callbacks, intervals and predicates
        opts: Retry count and dedupe flag
        is_disposed: True once the calling consumer has detached; no
            callbacks fire on its behalf after that

    Returns:
        False if nothing was done or the result was discarded, else True
    """
    if not key or fetcher is None or is_disposed() or config.is_paused():
        return False

    opts = opts or RevalidatorOptions()
    state = cache.state
    loop = asyncio.get_running_loop()

    # Only the original dispatcher fires callbacks and schedules cleanup.
    should_start_new_request = key not in state.fetch or not opts.dedupe
    start_at: int | None = None
    loading = True
    final_state: dict[str, Any] = {"is_validating": False, "is_loading": False}

    def callback_safeguard() -> bool:
        return should_start_new_request and not is_disposed()

    def cleanup_state() -> None:
        # Only drop the record if no newer dispatch replaced it
        request = state.fetch.get(key)
        if request is not None and request[1] == start_at:
            del state.fetch[key]

    def on_loading_slow() -> None:
        if loading and not is_disposed():
            config.on_loading_slow(key, config)

    try:
        if should_start_new_request:
            initial_state: dict[str, Any] = {"is_validating": True}
            if cache.get(key).data is UNDEFINED:
                initial_state["is_loading"] = True
            cache.set(key, **initial_state)

            if config.loading_timeout and cache.get(key).data is UNDEFINED:
                loop.call_later(to_seconds(config.loading_timeout), on_loading_slow)

            state.fetch[key] = (_dispatch(cache, key, fetcher, fn_arg), get_timestamp())
            logger.debug("Dispatched request for %r", key)
        else:
            logger.debug("Joining in-flight request for %r", key)

        pending, start_at = state.fetch[key]
        new_data = await asyncio.shield(pending)

        if should_start_new_request:
            # Keep the record around so near-simultaneous calls still dedupe
            loop.call_later(to_seconds(config.deduping_interval), cleanup_state)

        # A later request replaced this one; its result wins.
        request = state.fetch.get(key)
        if request is None or request[1] != start_at:
            logger.debug("Discarding superseded result for %r", key)
            if callback_safeguard():
                config.on_discarded(key)
            return False

        final_state["error"] = UNDEFINED

        # A mutation overlapped this request; its data is stale.
        mutation_info = state.mutation.get(key)
        if mutation_info is not None and (
            start_at <= mutation_info[0]
            or start_at <= mutation_info[1]
            or mutation_info[1] == 0
        ):
            logger.debug("Discarding result for %r that overlaps a mutation", key)
            cache.set(key, is_validating=False, is_loading=False)
            if callback_safeguard():
                config.on_discarded(key)
            return False

        # Keep the cached reference when nothing changed
        cached_data = cache.get(key).data
        if cached_data is not UNDEFINED and config.compare(cached_data, new_data):
            final_state["data"] = cached_data
        else:
            final_state["data"] = new_data

        if callback_safeguard():
            config.on_success(new_data, key, config)
    except Exception as err:
        # A failure of a superseded request is as stale as its data would be.
        request = state.fetch.get(key)
        if start_at is not None and request is not None and request[1] != start_at:
            logger.debug("Discarding superseded failure for %r", key)
            if callback_safeguard():
                config.on_discarded(key)
            return False

        cleanup_state()
        if not config.is_paused():
            final_state["error"] = err
            if callback_safeguard():
                config.on_error(err, key, config)
                if config.should_retry(err) and (
                    not config.revalidate_on_focus
                    or not config.revalidate_on_reconnect
                    or config.is_active()
                ):
                    config.on_error_retry(
                        err,
                        key,
                        config,
                        _retry_callback(cache, key, fn_arg, fetcher, config, is_disposed),
                        RevalidatorOptions(retry_count=opts.retry_count + 1, dedupe=True),
                    )
    finally:
        # Settled (or discarded): the slow-loading notice no longer applies
        loading = False

    cache.set(key, **final_state)
    return True


def _retry_callback(
    cache: Cache,
    key: str,
    fn_arg: Any,
    fetcher: Fetcher,
    config: Configuration,
    is_disposed: Callable[[], bool],
) -> Callable[[RevalidatorOptions], asyncio.Task[Any]]:
    """Build the function the error retry handler calls to try again."""

    def retry(opts: RevalidatorOptions) -> asyncio.Task[Any]:
        revalidators = cache.state.revalidators.get(key)
        if revalidators:
            return cache.spawn(revalidators[0](RevalidateEvent.ERROR_REVALIDATE, opts))
        return cache.spawn(
            revalidate(cache, key, fn_arg, fetcher, config, opts, is_disposed=is_disposed)
        )

    return retry


__all__ = ["revalidate"]
