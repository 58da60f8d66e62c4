"""Tests for package exports."""


def test_public_api_available() -> None:
    """Test that the public API is importable from the package root."""
    from swrcache import (
        UNDEFINED,
        Cache,
        Configuration,
        EventSource,
        MemoryAdapter,
        MutatorOptions,
        Query,
        State,
        StateRegistry,
        SWRClient,
        internal_mutate,
        preload,
        revalidate,
        serialize,
        stable_hash,
    )

    # Just verify they're importable
    assert SWRClient is not None
    assert Query is not None
    assert Cache is not None
    assert StateRegistry is not None
    assert Configuration is not None
    assert MemoryAdapter is not None
    assert MutatorOptions is not None
    assert State is not None
    assert EventSource is not None
    assert revalidate is not None
    assert internal_mutate is not None
    assert preload is not None
    assert serialize is not None
    assert stable_hash is not None
    assert UNDEFINED is not None


def test_http_exports() -> None:
    """Test that the HTTP fetcher is exported from the package root."""
    from swrcache import FetchError, HTTPFetcher

    assert issubclass(FetchError, RuntimeError)
    assert HTTPFetcher is not None


def test_undefined_is_falsy_and_not_none() -> None:
    """Test the UNDEFINED marker semantics."""
    from swrcache import UNDEFINED

    assert not UNDEFINED
    assert UNDEFINED is not None
    assert repr(UNDEFINED) == "UNDEFINED"
