"""Tests for configuration."""

import asyncio
import operator
from unittest.mock import Mock, patch

import pytest

from swrcache import Configuration, RevalidatorOptions, create_configuration, merge_configuration
from swrcache.config import exponential_backoff_retry, retry_delay


class TestCreateConfiguration:
    """Tests for create_configuration and merge_configuration."""

    def test_defaults(self) -> None:
        """Test the default intervals and providers."""
        config = create_configuration()
        assert config.deduping_interval == 2000
        assert config.error_retry_interval == 5000
        assert config.focus_throttle_interval == 5000
        assert config.loading_timeout == 3000
        assert config.refresh_interval == 0
        assert config.compare is operator.eq
        assert config.is_paused() is False
        assert config.is_active() is True

    def test_durations_are_parsed(self) -> None:
        """Test that duration strings become milliseconds."""
        config = create_configuration(deduping_interval="500ms", refresh_interval="1s")
        assert config.deduping_interval == 500
        assert config.refresh_interval == 1000

    def test_callable_refresh_interval_kept(self) -> None:
        """Test that refresh_interval may be a function of data."""
        config = create_configuration(refresh_interval=lambda data: 10)
        assert callable(config.refresh_interval)

    def test_unknown_option(self) -> None:
        """Test that typos are rejected."""
        with pytest.raises(TypeError, match="dedupe_interval"):
            create_configuration(dedupe_interval=10)

    def test_invalid_values(self) -> None:
        """Test that invalid durations and counts raise ValueError."""
        with pytest.raises(ValueError):
            create_configuration(loading_timeout="soon")
        with pytest.raises(ValueError):
            create_configuration(error_retry_count=-1)

    def test_merge_overrides(self) -> None:
        """Test that per-query options layer over the base."""
        base = create_configuration(deduping_interval=100)
        merged = merge_configuration(base, loading_timeout="1s")
        assert merged.deduping_interval == 100
        assert merged.loading_timeout == 1000
        assert merge_configuration(base) is base

    def test_should_retry(self) -> None:
        """Test flag and predicate forms of should_retry_on_error."""
        assert Configuration().should_retry(ValueError())
        assert not Configuration(should_retry_on_error=False).should_retry(ValueError())
        only_timeouts = Configuration(
            should_retry_on_error=lambda err: isinstance(err, TimeoutError)
        )
        assert only_timeouts.should_retry(TimeoutError())
        assert not only_timeouts.should_retry(ValueError())


class TestErrorRetry:
    """Tests for the default exponential backoff."""

    def test_retry_delay_bounds(self) -> None:
        """Test delay = int(U(0.5, 1.5) * 2**min(n, 8)) * interval."""
        for _ in range(50):
            assert 4 * 100 <= retry_delay(3, 100) <= 12 * 100
            assert retry_delay(20, 1) <= 1.5 * 256

    def test_retry_delay_uses_random(self) -> None:
        """Test the exact formula with a fixed random value."""
        with patch("swrcache.config.random.random", return_value=0.5):
            assert retry_delay(0, 100) == 100
            assert retry_delay(2, 100) == 400
            assert retry_delay(10, 1) == 256

    async def test_schedules_retry(self) -> None:
        """Test that the handler calls retry after the delay."""
        retry = Mock()
        config = Configuration(error_retry_interval=1)
        opts = RevalidatorOptions(retry_count=1, dedupe=True)

        exponential_backoff_retry(ValueError(), "k", config, retry, opts)
        await asyncio.sleep(0.05)
        retry.assert_called_once_with(opts)

    async def test_stops_after_max_retries(self) -> None:
        """Test that error_retry_count caps retries."""
        retry = Mock()
        config = Configuration(error_retry_interval=1, error_retry_count=1)

        exponential_backoff_retry(
            ValueError(), "k", config, retry, RevalidatorOptions(retry_count=2)
        )
        await asyncio.sleep(0.05)
        retry.assert_not_called()
