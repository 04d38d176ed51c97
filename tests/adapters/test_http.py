"""Tests for the HTTP transport using mocked responses."""

import json

import httpx
import pytest
import respx

from optisync import (
    ActionValidationError,
    HttpTransport,
    LikeData,
    MutationRequest,
    MutationResponse,
    MutationTransport,
    NetworkError,
    NotFoundError,
    UnauthorizedError,
    page_fetcher,
    record_fetcher,
)

BASE_URL = "https://api.test.dev"


@pytest.fixture
def http_transport() -> HttpTransport:
    """Create an HttpTransport with test configuration."""
    return HttpTransport(BASE_URL, headers={"Authorization": "Bearer token"}, timeout="5s")


class TestHttpTransport:
    """Tests for HttpTransport with mocked responses."""

    def test_implements_protocol(self, http_transport: HttpTransport) -> None:
        """Test that the transport satisfies MutationTransport."""
        assert isinstance(http_transport, MutationTransport)

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_returns_json(self, http_transport: HttpTransport) -> None:
        """Test a mutation with a JSON body."""
        route = respx.post(f"{BASE_URL}/api/posts/p1/comments").mock(
            return_value=httpx.Response(200, json={"id": "c1", "content": "hi"})
        )

        response = await http_transport.send(
            MutationRequest(method="POST", path="/api/posts/p1/comments", json={"content": "hi"})
        )

        assert response == MutationResponse(status=200, data={"id": "c1", "content": "hi"})
        request = route.calls[0].request
        assert json.loads(request.content) == {"content": "hi"}
        assert request.headers["Authorization"] == "Bearer token"

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_body(self, http_transport: HttpTransport) -> None:
        """Test that an empty acknowledgement has no data."""
        respx.delete(f"{BASE_URL}/api/posts/p1/likes").mock(return_value=httpx.Response(204))

        response = await http_transport.send(
            MutationRequest(method="DELETE", path="/api/posts/p1/likes")
        )

        assert response == MutationResponse(status=204, data=None)

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_classification(self, http_transport: HttpTransport) -> None:
        """Test that statuses map to error kinds."""
        cases = [
            (401, UnauthorizedError),
            (403, UnauthorizedError),
            (404, NotFoundError),
            (400, ActionValidationError),
            (422, ActionValidationError),
            (500, NetworkError),
            (503, NetworkError),
        ]
        respx.post(f"{BASE_URL}/api/users/u2/followers").mock(
            side_effect=[httpx.Response(status, json={"error": "nope"}) for status, _ in cases]
        )
        for status, error_type in cases:
            with pytest.raises(error_type) as exc_info:
                await http_transport.send(
                    MutationRequest(method="POST", path="/api/users/u2/followers")
                )
            assert exc_info.value.status == status
            assert "POST /api/users/u2/followers: nope" in str(exc_info.value)

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_without_json(self, http_transport: HttpTransport) -> None:
        """Test an error response with a plain text body."""
        respx.delete(f"{BASE_URL}/api/posts/p1").mock(
            return_value=httpx.Response(502, text="Bad Gateway")
        )

        with pytest.raises(NetworkError, match="HTTP 502"):
            await http_transport.send(MutationRequest(method="DELETE", path="/api/posts/p1"))

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error(self, http_transport: HttpTransport) -> None:
        """Test that transport failures become NetworkError."""
        respx.post(f"{BASE_URL}/api/posts").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NetworkError, match="failed"):
            await http_transport.send(MutationRequest(method="POST", path="/api/posts"))

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self, http_transport: HttpTransport) -> None:
        """Test that timeouts become NetworkError."""
        respx.post(f"{BASE_URL}/api/posts").mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(NetworkError, match="timed out"):
            await http_transport.send(MutationRequest(method="POST", path="/api/posts"))

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body(self, http_transport: HttpTransport) -> None:
        """Test that a success with a broken body is a NetworkError."""
        respx.patch(f"{BASE_URL}/api/users/u1").mock(
            return_value=httpx.Response(200, text="{not json")
        )

        with pytest.raises(NetworkError, match="Malformed"):
            await http_transport.send(MutationRequest(method="PATCH", path="/api/users/u1"))

    @pytest.mark.asyncio
    async def test_close(self, http_transport: HttpTransport) -> None:
        """Test closing the client."""
        await http_transport.close()


class TestFetchers:
    """Tests for page_fetcher and record_fetcher."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_page_fetcher(self, http_transport: HttpTransport) -> None:
        """Test loading feed pages with a cursor."""
        route = respx.get(f"{BASE_URL}/api/posts/for-you").mock(
            return_value=httpx.Response(200, json={"records": [{"id": "p1"}], "nextCursor": "c1"})
        )
        fetch_page = page_fetcher(http_transport, "/api/posts/for-you")

        first = await fetch_page(None)
        await fetch_page("c1")

        assert first.records == ({"id": "p1"},)
        assert first.next_cursor == "c1"
        assert "cursor" not in route.calls[0].request.url.params
        assert route.calls[1].request.url.params["cursor"] == "c1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_record_fetcher(self, http_transport: HttpTransport) -> None:
        """Test loading and parsing a single record."""
        respx.get(f"{BASE_URL}/api/posts/p1/likes").mock(
            return_value=httpx.Response(200, json={"likesCount": 4, "isLikedByUser": False})
        )
        fetch = record_fetcher(http_transport, "/api/posts/p1/likes", LikeData.from_json)

        assert await fetch() == LikeData(likes_count=4, is_liked_by_user=False)
