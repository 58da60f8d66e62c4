"""Shared pytest fixtures."""

import asyncio
from typing import Any

import pytest

from swrcache import EventSource, MemoryAdapter, SWRClient


class ControlledFetcher:
    """A fetcher whose results are settled by the test, in any order."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, asyncio.Future[Any]]] = []

    def __call__(self, arg: Any) -> asyncio.Future[Any]:
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self.calls.append((arg, future))
        return future

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def resolve(self, index: int, value: Any) -> None:
        self.calls[index][1].set_result(value)

    def reject(self, index: int, error: BaseException) -> None:
        self.calls[index][1].set_exception(error)


class CountingFetcher:
    """An async fetcher that counts calls and returns ``{"v": n}``."""

    def __init__(self, delay: float = 0) -> None:
        self.delay = delay
        self.args: list[Any] = []

    async def __call__(self, arg: Any) -> dict[str, int]:
        self.args.append(arg)
        if self.delay:
            await asyncio.sleep(self.delay)
        return {"v": len(self.args)}

    @property
    def call_count(self) -> int:
        return len(self.args)


@pytest.fixture
def adapter() -> MemoryAdapter:
    """Create a fresh MemoryAdapter for each test."""
    return MemoryAdapter()


@pytest.fixture
def client(adapter: MemoryAdapter) -> SWRClient:
    """Create a client with retries disabled."""
    return SWRClient(adapter, should_retry_on_error=False)


@pytest.fixture
def controlled() -> ControlledFetcher:
    return ControlledFetcher()


@pytest.fixture
def counting() -> CountingFetcher:
    return CountingFetcher()


@pytest.fixture
def focus() -> EventSource:
    return EventSource()


@pytest.fixture
def reconnect() -> EventSource:
    return EventSource()
