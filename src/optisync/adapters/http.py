"""HTTP transport for the application's REST API."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from optisync.duration import to_seconds
from optisync.errors import NetworkError, SyncError, classify_status
from optisync.types import Duration, MutationRequest, MutationResponse, Page

T = TypeVar("T")


class HttpTransport:
    """Async transport over httpx that classifies failures into SyncErrors."""

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
        timeout: Duration = "10s",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"Content-Type": "application/json", **(headers or {})},
            cookies=cookies,
            timeout=to_seconds(timeout),
        )

    async def send(self, request: MutationRequest) -> MutationResponse:
        """Send a mutation and return the parsed response."""
        response = await self._request(request.method, request.path, json=request.json)
        return MutationResponse(status=response.status_code, data=_parse_body(response))

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a record or a feed page, e.g. as a query client fetcher."""
        response = await self._request("GET", path, params=params)
        return _parse_body(response)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            raise _error_from(response, method, path)
        return response


def _parse_body(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise NetworkError(f"Malformed response body (HTTP {response.status_code})") from e


def _error_from(response: httpx.Response, method: str, path: str) -> SyncError:
    try:
        message = response.json().get("error", "Request failed")
    except Exception:
        message = f"HTTP {response.status_code}"
    return classify_status(response.status_code, f"{method} {path}: {message}")


def page_fetcher(transport: HttpTransport, path: str) -> Callable[[str | None], Awaitable[Page]]:
    """Build a cursor page loader for a feed endpoint."""

    async def fetch_page(cursor: str | None) -> Page:
        params = {"cursor": cursor} if cursor else None
        return Page.from_json(await transport.get_json(path, params) or {})

    return fetch_page


def record_fetcher(
    transport: HttpTransport,
    path: str,
    parse: Callable[[Any], T],
) -> Callable[[], Awaitable[T]]:
    """Build a loader for a single-record endpoint, e.g. LikeData.from_json."""

    async def fetch() -> T:
        return parse(await transport.get_json(path))

    return fetch
