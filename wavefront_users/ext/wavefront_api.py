import logging
import typing as t
from collections.abc import Mapping, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass

import aiohttp
import pydantic
from aiohttp import ClientResponse, ClientResponseError, ClientSession
from yarl import URL

from wavefront_users.config import WavefrontConfig
from wavefront_users.errors import (
    DecodeError,
    NotFound,
    ServerError,
    TransportError,
)
from wavefront_users.search import (
    DEFAULT_PAGE_SIZE,
    SEARCH_PATH,
    SearchCondition,
    SearchEnvelope,
    SearchPage,
    SearchParams,
    SearchSort,
)


logger = logging.getLogger(__name__)


ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class Request:
    method: str
    url: URL
    params: Mapping[str, str] | None = None
    body: bytes | None = None


class Response(t.Protocol):
    async def read(self) -> bytes: ...


class Wavefronter(t.Protocol):
    """Capabilities the entity services need from a Wavefront API client"""

    def build_request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> Request: ...

    def execute(self, request: Request) -> AbstractAsyncContextManager[Response]: ...

    async def search(
        self,
        search_type: str,
        conditions: Sequence[SearchCondition] | None = None,
        offset: int = 0,
    ) -> SearchPage: ...


class WavefrontClient:
    def __init__(
        self,
        http: ClientSession,
        base_url: URL | str,
        token: str,
        *,
        verify_ssl: bool = True,
        search_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._http = http
        self._base_url = URL(base_url)
        self._token = token
        self._verify_ssl = verify_ssl
        self._search_page_size = search_page_size

    @property
    def default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }

    def build_request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> Request:
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise TransportError(f"Unsupported HTTP method: {method}")
        if not path.startswith("/"):
            raise TransportError(f"Request path must be absolute: {path!r}")
        return Request(
            method=method,
            url=self._base_url / path.lstrip("/"),
            params=dict(params) if params else None,
            body=body,
        )

    @asynccontextmanager
    async def execute(self, request: Request) -> t.AsyncIterator[ClientResponse]:
        headers = self.default_headers
        if request.body is not None:
            headers["Content-Type"] = "application/json"
        logger.debug(f"{request.method} {request.url}")
        try:
            response = await self._http.request(
                request.method,
                request.url,
                params=request.params,
                data=request.body,
                headers=headers,
                ssl=self._verify_ssl,
            )
        except (TimeoutError, aiohttp.ClientError) as e:
            raise TransportError(
                f"{request.method} {request.url.path} failed: {e!r}"
            ) from e

        try:
            await self._raise_for_status(request, response)
            try:
                yield response
            except (TimeoutError, aiohttp.ClientError) as e:
                raise TransportError(
                    f"{request.method} {request.url.path} response failed: {e!r}"
                ) from e
        finally:
            response.release()

    async def _raise_for_status(
        self, request: Request, response: ClientResponse
    ) -> None:
        if response.ok:
            return
        # raise_for_status() releases the connection, read the body first
        raw_response = await response.text(errors="ignore")
        try:
            response.raise_for_status()
        except ClientResponseError as e:
            logger.error(f"Bad response: {raw_response}")
            message = f"{request.method} {request.url.path}: {e.status} {e.message}"
            match e.status:
                case 404:
                    raise NotFound(message, status=e.status, body=raw_response) from e
                case status if status >= 500:
                    raise ServerError(
                        message, status=e.status, body=raw_response
                    ) from e
                case _:
                    raise TransportError(
                        message, status=e.status, body=raw_response
                    ) from e

    async def search(
        self,
        search_type: str,
        conditions: Sequence[SearchCondition] | None = None,
        offset: int = 0,
        *,
        sort: SearchSort | None = None,
        deleted: bool = False,
    ) -> SearchPage:
        """Fetch a single page of ``search_type`` entities matching ``conditions``.

        Args:
            search_type: Entity type, e.g. "user" or "alert"
            conditions: Search conditions, all of them must match. None matches all
            offset: Index of the first item of the page
            sort: Optional ordering of the results
            deleted: Search among deleted entities instead

        Returns:
            The page with its raw JSON items and the offset of the next page
        """
        params = SearchParams(
            limit=self._search_page_size,
            offset=offset,
            query=list(conditions or []),
            sort=sort,
        )
        path = f"{SEARCH_PATH}/{search_type}"
        if deleted:
            path = f"{path}/deleted"
        request = self.build_request(
            "POST",
            path,
            body=params.model_dump_json(by_alias=True, exclude_none=True).encode(),
        )
        async with self.execute(request) as response:
            body = await response.read()

        try:
            envelope = SearchEnvelope.model_validate_json(body)
        except pydantic.ValidationError as e:
            raise DecodeError(f"Unexpected {search_type} search response") from e

        return SearchPage(
            items=envelope.response.items,
            more_items=envelope.response.more_items,
            next_offset=offset + params.limit,
        )


@asynccontextmanager
async def create_client(config: WavefrontConfig) -> t.AsyncIterator[WavefrontClient]:
    timeout = aiohttp.ClientTimeout(total=config.timeout_s)
    http = ClientSession(timeout=timeout)
    try:
        yield WavefrontClient(
            http=http,
            base_url=config.address,
            token=config.token,
            verify_ssl=config.verify_ssl,
            search_page_size=config.search_page_size,
        )
    finally:
        await http.close()
