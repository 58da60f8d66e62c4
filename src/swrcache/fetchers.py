"""HTTP fetcher built on httpx."""

from __future__ import annotations

from typing import Any, cast


class FetchError(RuntimeError):
    """A request completed with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class HTTPFetcher:
    """Fetch JSON over HTTP.

    The fetcher argument is a path, or a ``(path, params)`` tuple:

        fetch = HTTPFetcher("https://api.example.com")
        client.query("/users/1", fetch)
        client.query(("/users", {"page": 2}), fetch)
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        client: Any = None,  # httpx.AsyncClient
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> None:
        import httpx

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
        )

    async def __call__(self, arg: Any) -> Any:
        if isinstance(arg, (tuple, list)):
            path, params = arg[0], (arg[1] if len(arg) > 1 else None)
        else:
            path, params = arg, None

        response = await self._client.get(path, params=params)
        if not response.is_success:
            try:
                error = response.json().get("error", "Request failed")
            except Exception:
                error = f"HTTP {response.status_code}"
            raise FetchError(response.status_code, error)
        return cast(Any, response.json())

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()
