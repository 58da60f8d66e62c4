"""Tests for preloading."""

import asyncio

import pytest

from swrcache import SWRClient
from swrcache.preload import as_future, consume_preload

from conftest import ControlledFetcher, CountingFetcher


class TestPreload:
    """Starting requests ahead of consumers."""

    async def test_idempotent(self, client: SWRClient, counting: CountingFetcher) -> None:
        """Test that preloading twice reuses the first request."""
        first = client.preload("/u/1", counting)
        second = client.preload("/u/1", counting)
        assert first is second
        assert await first == {"v": 1}
        assert counting.call_count == 1

    async def test_passes_fetcher_arg(self, client: SWRClient, counting: CountingFetcher) -> None:
        """Test that the fetcher receives the unserialized key."""
        await client.preload(("/user", 7), counting)
        assert counting.args == [("/user", 7)]

    async def test_sync_fetcher(self, client: SWRClient) -> None:
        """Test that plain return values are wrapped in a future."""
        assert await client.preload("/u/1", lambda _: "value") == "value"

    async def test_sync_fetcher_error_propagates(self, client: SWRClient) -> None:
        """Test that a fetcher raising synchronously raises to the caller."""

        def broken(arg: str) -> str:
            raise ValueError("broken")

        with pytest.raises(ValueError, match="broken"):
            client.preload("/u/1", broken)
        assert "/u/1" not in client.cache.state.preload

    async def test_settled_failure_not_reused(self, client: SWRClient) -> None:
        """Test that a failed preload is replaced by a fresh request."""
        calls: list[str] = []

        async def failing(arg: str) -> str:
            calls.append(arg)
            raise ValueError("down")

        first = client.preload("/u/1", failing)
        with pytest.raises(ValueError):
            await first

        second = client.preload("/u/1", failing)
        assert second is not first
        with pytest.raises(ValueError):
            await second
        assert len(calls) == 2

    async def test_settled_success_not_reused(
        self, client: SWRClient, counting: CountingFetcher
    ) -> None:
        """Test that a finished preload starts a new request when preloaded again."""
        first = client.preload("/u/1", counting)
        assert await first == {"v": 1}

        second = client.preload("/u/1", counting)
        assert second is not first
        assert await second == {"v": 2}
        assert client.cache.state.preload["/u/1"] is second

    async def test_empty_key_not_stored(self, client: SWRClient, counting: CountingFetcher) -> None:
        """Test that a falsy key still fetches but is not remembered."""
        await client.preload(None, counting)
        assert client.cache.state.preload == {}


class TestConsumePreload:
    """Revalidation adopting preloaded requests."""

    async def test_revalidate_adopts_preload(
        self, client: SWRClient, controlled: ControlledFetcher, counting: CountingFetcher
    ) -> None:
        """Test that the first revalidation uses the preloaded request."""
        client.preload("/u/1", controlled)
        task = asyncio.create_task(client.revalidate("/u/1", counting))
        await asyncio.sleep(0)

        controlled.resolve(0, "preloaded")
        assert await task is True
        assert counting.call_count == 0
        assert client.get_state("/u/1").data == "preloaded"
        assert "/u/1" not in client.cache.state.preload

    async def test_consumed_once(self, client: SWRClient, counting: CountingFetcher) -> None:
        """Test that only one revalidation consumes the preload."""
        client.preload("/u/1", lambda _: "preloaded")
        await client.revalidate("/u/1", counting)
        await client.revalidate("/u/1", counting)
        assert counting.call_count == 1
        assert client.get_state("/u/1").data == {"v": 1}

    async def test_mount_adopts_preload(self, client: SWRClient, counting: CountingFetcher) -> None:
        """Test that mounting a query adopts a preload."""
        client.preload("/u/1", lambda _: "preloaded")
        async with client.query("/u/1", counting):
            await asyncio.sleep(0.01)
        assert counting.call_count == 0
        assert client.get_state("/u/1").data == "preloaded"

    async def test_infinite_keys_not_consumed(self, client: SWRClient) -> None:
        """Test that paginated keys leave preloads alone."""
        client.cache.state.preload["$inf$/list"] = as_future("page")
        assert consume_preload(client.cache, "$inf$/list") is None
        assert "$inf$/list" in client.cache.state.preload

    async def test_missing(self, client: SWRClient) -> None:
        """Test that consuming a key never preloaded returns None."""
        assert consume_preload(client.cache, "/u/1") is None


class TestAsFuture:
    """Wrapping fetcher results."""

    async def test_coroutine(self) -> None:
        """Test that coroutines are scheduled."""

        async def produce() -> int:
            return 3

        future = as_future(produce())
        assert await future == 3

    async def test_plain_value(self) -> None:
        """Test that plain values come back already resolved."""
        future = as_future({"a": 1})
        assert future.done()
        assert future.result() == {"a": 1}
