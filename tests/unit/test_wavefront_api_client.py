from unittest.mock import AsyncMock, MagicMock

import aiohttp
import orjson
import pytest
from aiohttp import ClientResponseError
from yarl import URL

from wavefront_users.errors import DecodeError, NotFound, ServerError, TransportError
from wavefront_users.ext.wavefront_api import Request, WavefrontClient
from wavefront_users.search import MatchingMethod, SearchCondition, SearchSort
from wavefront_users.users import User, Users


@pytest.fixture
def mock_http_session() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def wavefront_client(mock_http_session: AsyncMock) -> WavefrontClient:
    return WavefrontClient(
        http=mock_http_session,
        base_url="https://wf.example.com",
        token="test-token",
    )


def make_response(body: bytes = b"{}") -> MagicMock:
    response = MagicMock()
    response.ok = True
    response.read = AsyncMock(return_value=body)
    return response


def make_error_response(status: int, text: str) -> MagicMock:
    response = MagicMock()
    response.ok = False
    response.status = status
    response.text = AsyncMock(return_value=text)
    response.raise_for_status.side_effect = ClientResponseError(
        request_info=MagicMock(),
        history=(),
        status=status,
        message="Error",
    )
    return response


def test_build_request(wavefront_client: WavefrontClient) -> None:
    request = wavefront_client.build_request(
        "post", "/api/v2/user", params={"sendEmail": "true"}, body=b"{}"
    )

    assert request == Request(
        method="POST",
        url=URL("https://wf.example.com/api/v2/user"),
        params={"sendEmail": "true"},
        body=b"{}",
    )


def test_build_request_keeps_address_path(mock_http_session: AsyncMock) -> None:
    wavefront_client = WavefrontClient(
        http=mock_http_session,
        base_url="https://proxy.example.com/wavefront",
        token="test-token",
    )

    request = wavefront_client.build_request("GET", "/api/v2/user/john@example.com")

    assert request.url == URL(
        "https://proxy.example.com/wavefront/api/v2/user/john@example.com"
    )


def test_build_request_unsupported_method(wavefront_client: WavefrontClient) -> None:
    with pytest.raises(TransportError):
        wavefront_client.build_request("TRACE", "/api/v2/user")


def test_build_request_relative_path(wavefront_client: WavefrontClient) -> None:
    with pytest.raises(TransportError):
        wavefront_client.build_request("GET", "api/v2/user")


async def test_execute_success(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    response = make_response(b'{"identifier": "john@example.com"}')
    mock_http_session.request.return_value = response
    request = wavefront_client.build_request(
        "PUT", "/api/v2/user/john@example.com", body=b'{"identifier": "john"}'
    )

    async with wavefront_client.execute(request) as resp:
        body = await resp.read()

    assert body == b'{"identifier": "john@example.com"}'
    response.release.assert_called_once()
    call = mock_http_session.request.await_args
    assert call.args == ("PUT", URL("https://wf.example.com/api/v2/user/john@example.com"))
    assert call.kwargs["data"] == b'{"identifier": "john"}'
    assert call.kwargs["headers"] == {
        "Authorization": "Bearer test-token",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


async def test_execute_releases_response_on_error_inside_block(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    response = make_response()
    mock_http_session.request.return_value = response
    request = wavefront_client.build_request("GET", "/api/v2/user/john")

    with pytest.raises(RuntimeError):
        async with wavefront_client.execute(request):
            raise RuntimeError("boom")

    response.release.assert_called_once()


async def test_execute_not_found(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    """Test 404 responses raise NotFound carrying the response text"""
    response = make_error_response(404, "User not found")
    mock_http_session.request.return_value = response
    request = wavefront_client.build_request("GET", "/api/v2/user/john")

    with pytest.raises(NotFound) as exc_info:
        async with wavefront_client.execute(request):
            pass

    assert exc_info.value.status == 404
    assert exc_info.value.body == "User not found"
    response.release.assert_called_once()


async def test_execute_server_error(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    """Test that 5xx responses raise ServerError"""
    mock_http_session.request.return_value = make_error_response(
        503, "Service unavailable"
    )
    request = wavefront_client.build_request("GET", "/api/v2/user/john")

    with pytest.raises(ServerError):
        async with wavefront_client.execute(request):
            pass


async def test_execute_bad_request(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    mock_http_session.request.return_value = make_error_response(400, "Bad request")
    request = wavefront_client.build_request("POST", "/api/v2/user", body=b"{}")

    with pytest.raises(TransportError) as exc_info:
        async with wavefront_client.execute(request):
            pass

    assert type(exc_info.value) is TransportError
    assert exc_info.value.status == 400


async def test_execute_connection_error(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    mock_http_session.request.side_effect = aiohttp.ClientConnectionError("refused")
    request = wavefront_client.build_request("GET", "/api/v2/user/john")

    with pytest.raises(TransportError):
        async with wavefront_client.execute(request):
            pass


async def test_execute_timeout(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    mock_http_session.request.side_effect = TimeoutError()
    request = wavefront_client.build_request("GET", "/api/v2/user/john")

    with pytest.raises(TransportError):
        async with wavefront_client.execute(request):
            pass


async def test_search(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    mock_http_session.request.return_value = make_response(
        orjson.dumps(
            {
                "status": {"result": "OK", "code": 200},
                "response": {
                    "items": [{"identifier": "john@example.com"}],
                    "offset": 100,
                    "limit": 100,
                    "moreItems": True,
                },
            }
        )
    )
    conditions = [
        SearchCondition(
            key="identifier",
            value="example.com",
            matching_method=MatchingMethod.CONTAINS,
        )
    ]

    page = await wavefront_client.search("user", conditions, offset=100)

    assert page.items == [{"identifier": "john@example.com"}]
    assert page.more_items is True
    assert page.next_offset == 200
    call = mock_http_session.request.await_args
    assert call.args == ("POST", URL("https://wf.example.com/api/v2/search/user"))
    assert orjson.loads(call.kwargs["data"]) == {
        "limit": 100,
        "offset": 100,
        "query": [
            {
                "key": "identifier",
                "value": "example.com",
                "matchingMethod": "CONTAINS",
                "negative": False,
            }
        ],
    }


async def test_search_deleted_sorted(mock_http_session: AsyncMock) -> None:
    wavefront_client = WavefrontClient(
        http=mock_http_session,
        base_url=URL("https://wf.example.com"),
        token="test-token",
        search_page_size=10,
    )
    mock_http_session.request.return_value = make_response(
        b'{"response": {"items": [], "moreItems": false}}'
    )

    page = await wavefront_client.search(
        "user", sort=SearchSort(field="identifier"), deleted=True
    )

    assert page.items == []
    assert page.more_items is False
    assert page.next_offset == 10
    call = mock_http_session.request.await_args
    assert call.args[1] == URL("https://wf.example.com/api/v2/search/user/deleted")
    assert orjson.loads(call.kwargs["data"]) == {
        "limit": 10,
        "offset": 0,
        "query": [],
        "sort": {"field": "identifier", "ascending": True},
    }


async def test_search_unexpected_response(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    mock_http_session.request.return_value = make_response(b"<html>oops</html>")

    with pytest.raises(DecodeError):
        await wavefront_client.search("user")


async def test_execute_body_read_failure(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    """A connection dropped while reading the body surfaces as TransportError"""
    response = make_response()
    response.read = AsyncMock(side_effect=aiohttp.ClientPayloadError("conn reset"))
    mock_http_session.request.return_value = response

    with pytest.raises(TransportError) as exc_info:
        await Users(wavefront_client).get(User(id="john@example.com"))

    assert isinstance(exc_info.value.__cause__, aiohttp.ClientPayloadError)
    response.release.assert_called_once()


async def test_execute_body_read_timeout(
    wavefront_client: WavefrontClient, mock_http_session: AsyncMock
) -> None:
    response = make_response()
    response.read = AsyncMock(side_effect=TimeoutError())
    mock_http_session.request.return_value = response

    with pytest.raises(TransportError):
        await wavefront_client.search("user")

    response.release.assert_called_once()
