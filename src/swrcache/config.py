"""Configuration for swrcache clients and queries."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import operator
import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from swrcache.duration import parse_duration, to_seconds
from swrcache.types import UNDEFINED, Fetcher, RevalidatorOptions

logger = logging.getLogger(__name__)

# Options given as durations ("2s", "500ms" or milliseconds)
_DURATION_OPTIONS = (
    "error_retry_interval",
    "focus_throttle_interval",
    "deduping_interval",
    "loading_timeout",
)

# Backoff exponent cap
_MAX_BACKOFF_EXPONENT = 8

EventRegistrar = Callable[[Callable[[], None]], "Callable[[], None] | None"]
RetryCallback = Callable[[RevalidatorOptions], Any]


def _noop(*_: Any) -> None:
    return None


def _always_true() -> bool:
    return True


def _always_false() -> bool:
    return False


def _no_events(_: Callable[[], None]) -> None:
    """Default event source: nothing ever fires."""
    return None


def retry_delay(retry_count: int, interval: int) -> int:
    """Exponential backoff with jitter, in milliseconds."""
    exponent = min(retry_count, _MAX_BACKOFF_EXPONENT)
    return int((random.random() + 0.5) * (1 << exponent)) * interval


def exponential_backoff_retry(
    error: BaseException,
    key: str,
    config: Configuration,
    retry: RetryCallback,
    opts: RevalidatorOptions,
) -> None:
    """Default error retry handler: schedule ``retry`` after a backoff."""
    max_retry_count = config.error_retry_count
    if max_retry_count is not None and opts.retry_count > max_retry_count:
        logger.debug("Giving up on %r after %d retries", key, max_retry_count)
        return

    delay = retry_delay(opts.retry_count, config.error_retry_interval)
    logger.debug(
        "Retrying %r in %dms (attempt %d) after %r", key, delay, opts.retry_count, error
    )
    asyncio.get_running_loop().call_later(to_seconds(delay), retry, opts)


@dataclass(frozen=True, slots=True)
class Configuration:
    """Options shared by a client and the queries it creates.

    Intervals are stored in milliseconds; use ``create_configuration`` to
    accept duration strings.
    """

    fetcher: Fetcher | None = None

    # Events
    on_loading_slow: Callable[[str, Configuration], None] = _noop
    on_success: Callable[[Any, str, Configuration], None] = _noop
    on_error: Callable[[BaseException, str, Configuration], None] = _noop
    on_error_retry: Callable[
        [BaseException, str, Configuration, RetryCallback, RevalidatorOptions], None
    ] = exponential_backoff_retry
    on_discarded: Callable[[str], None] = _noop

    # Switches
    revalidate_on_focus: bool = True
    revalidate_on_reconnect: bool = True
    revalidate_on_mount: bool | None = None
    revalidate_if_stale: bool = True
    should_retry_on_error: bool | Callable[[BaseException], bool] = True
    refresh_when_hidden: bool = False
    refresh_when_offline: bool = False
    keep_previous_data: bool = False

    # Timeouts (ms)
    error_retry_interval: int = 5000
    error_retry_count: int | None = None
    focus_throttle_interval: int = 5000
    deduping_interval: int = 2000
    loading_timeout: int = 3000
    refresh_interval: int | Callable[[Any], int] = 0

    # Providers
    compare: Callable[[Any, Any], bool] = operator.eq
    is_paused: Callable[[], bool] = _always_false
    is_online: Callable[[], bool] = _always_true
    is_visible: Callable[[], bool] = _always_true
    init_focus: EventRegistrar = _no_events
    init_reconnect: EventRegistrar = _no_events

    # Fallbacks
    fallback: Mapping[str, Any] = field(default_factory=dict)
    fallback_data: Any = UNDEFINED

    def is_active(self) -> bool:
        """Whether the environment is visible and online."""
        return self.is_visible() and self.is_online()

    def should_retry(self, error: BaseException) -> bool:
        """Apply ``should_retry_on_error`` to ``error``."""
        option = self.should_retry_on_error
        if callable(option):
            return bool(option(error))
        return option is True


def _normalize(options: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in dataclasses.fields(Configuration)}
    unknown = set(options) - names
    if unknown:
        raise TypeError(f"Unknown configuration options: {sorted(unknown)}")

    normalized = dict(options)
    for name in _DURATION_OPTIONS:
        if name in normalized:
            normalized[name] = parse_duration(normalized[name])
    refresh = normalized.get("refresh_interval")
    if refresh is not None and not callable(refresh):
        normalized["refresh_interval"] = parse_duration(refresh)
    retry_count = normalized.get("error_retry_count")
    if retry_count is not None and retry_count < 0:
        raise ValueError("error_retry_count must not be negative")
    return normalized


def create_configuration(**options: Any) -> Configuration:
    """Create a configuration, parsing duration options.

    Example:
        config = create_configuration(deduping_interval="500ms", loading_timeout="1s")
    """
    return Configuration(**_normalize(options))


def merge_configuration(base: Configuration, **overrides: Any) -> Configuration:
    """Layer ``overrides`` over ``base``."""
    if not overrides:
        return base
    return dataclasses.replace(base, **_normalize(overrides))


__all__ = [
    "Configuration",
    "create_configuration",
    "exponential_backoff_retry",
    "merge_configuration",
    "retry_delay",
]
