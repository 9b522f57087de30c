'''
**restbuilder._client**

`RestClient` is a fluent, immutable request builder bound to one absolute URI.
Every setter returns a new client, so a configured client can be shared by
concurrent tasks and a later `retry(...)` never leaks into requests that are
already in flight.

    client = RestClient.uri('https://api.example.com/items').parameter('limit', '10')
    items = await client.get(on_error=lambda url, status, body: '[]')
'''
from __future__ import annotations

import asyncio
import dataclasses as dc
import io
import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, BinaryIO, Self, TypeVar, overload

import httpx

from restbuilder import http
from restbuilder._errors import ConfigurationError, HttpStatusFailure
from restbuilder._progress import ProgressSink, trace_failure, trace_request, trace_response
from restbuilder._result import ErrorCallback, Failed, Ok, Result
from restbuilder._retry import HttpRetryPolicy, RetryPolicy, execute_with_retries

if TYPE_CHECKING:
    from restbuilder._content import BytesRequest, TextRequest

logger = logging.getLogger(__name__)

F = TypeVar("F")

_EMPTY: Mapping[str, str] = MappingProxyType({})


def build_query(
    params: Mapping[str, str] | Iterable[tuple[str, str]],
    legacy_order: bool = False,
) -> str:
    '''
    Assemble an encoded query string.

    Parameters
    ----------
    params : Mapping[str, str] | Iterable[tuple[str, str]]
        Pairs are emitted in iteration (insertion) order.
    legacy_order : bool, optional
        Emit the pairs in reverse order, byte compatible with the
        legacy client that prepended each pair, by default False

    Returns
    -------
    str
    '''
    pairs = list(params.items() if isinstance(params, Mapping) else params)
    if legacy_order:
        pairs.reverse()
    return str(httpx.QueryParams(pairs))


def _upsert_header(headers: Mapping[str, str], key: str, value: str) -> dict[str, str]:
    updated = {
        name: existing
        for name, existing in headers.items()
        if name.lower() != key.lower()
    }
    updated[key] = value
    return updated


@dc.dataclass(frozen=True, slots=True)
class Endpoint:
    '''
    Everything a terminal operation needs to build its request.
    '''
    uri: httpx.URL
    params: Mapping[str, str] = dc.field(default_factory=lambda: _EMPTY)
    headers: Mapping[str, str] = dc.field(default_factory=lambda: _EMPTY)
    policy: RetryPolicy = dc.field(default_factory=HttpRetryPolicy)
    config: http.ClientConfig = dc.field(default_factory=http.ClientConfig)
    legacy_query_order: bool = False

    def prepare_url(self) -> httpx.URL:
        '''
        The base URI with the builder's parameters merged over any query
        it already carries (builder keys win).
        '''
        pairs = [
            (key, value)
            for key, value in self.uri.params.multi_items()
            if key not in self.params
        ]
        pairs.extend(self.params.items())
        if self.legacy_query_order:
            pairs.reverse()
        return self.uri.copy_with(params=httpx.QueryParams(pairs))


class RestClient:
    __slots__ = ('_endpoint',)

    def __init__(self, endpoint: Endpoint) -> None:
        self._endpoint = endpoint

    @classmethod
    def uri(
        cls,
        absolute_uri: str | httpx.URL,
        *,
        config: http.ClientConfig | None = None,
    ) -> Self:
        '''
        Create a client for an absolute http(s) URI with the default
        retry policy (3 attempts, transport failures and 5xx transient).

        Parameters
        ----------
        absolute_uri : str | httpx.URL
        config : http.ClientConfig | None, optional

        Returns
        -------
        RestClient

        Raises
        ------
        ConfigurationError
            If the URI is relative, malformed or not http(s).
        '''
        url = http.verify_http_url(absolute_uri)
        return cls(Endpoint(uri=url, config=config or http.ClientConfig()))

    def _replace(self, **changes: Any) -> Self:
        return type(self)(dc.replace(self._endpoint, **changes))

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def base_url(self) -> httpx.URL:
        return self._endpoint.uri

    @property
    def params(self) -> Mapping[str, str]:
        return self._endpoint.params

    @property
    def headers(self) -> Mapping[str, str]:
        return self._endpoint.headers

    @property
    def policy(self) -> RetryPolicy:
        return self._endpoint.policy

    def parameter(self, key: str, value: str | int | float) -> Self:
        params = dict(self._endpoint.params)
        params[key] = str(value)
        return self._replace(params=MappingProxyType(params))

    def header(self, key: str, value: str) -> Self:
        headers = _upsert_header(self._endpoint.headers, key, value)
        return self._replace(headers=MappingProxyType(headers))

    def content_type(self, value: str) -> Self:
        '''
        Shortcut for `header('Content-Type', value)`,
        e.g. "application/x-www-form-urlencoded".
        '''
        return self.header('Content-Type', value)

    def retry(self, count: int, not_found_is_transient: bool = False) -> Self:
        '''
        Replace the retry policy with one allowing `count` attempts.
        `not_found_is_transient` retries 404 responses too.
        '''
        return self._replace(
            policy=HttpRetryPolicy(
                attempts=count,
                not_found_is_transient=not_found_is_transient,
            )
        )

    def with_policy(self, policy: RetryPolicy) -> Self:
        if not isinstance(policy, RetryPolicy):
            raise ConfigurationError(f"{policy!r} does not implement RetryPolicy")
        return self._replace(policy=policy)

    def legacy_query_order(self, enabled: bool = True) -> Self:
        return self._replace(legacy_query_order=enabled)

    def prepare_url(self) -> httpx.URL:
        return self._endpoint.prepare_url()

    @overload
    def content(self, data: str) -> TextRequest: ...

    @overload
    def content(self, data: bytes | bytearray | memoryview | BinaryIO) -> BytesRequest: ...

    def content(self, data):
        '''
        Snapshot a payload for a content bearing request.
        Streams are rewound when possible and read fully into memory,
        the stream itself is not referenced afterwards.

        Parameters
        ----------
        data : bytes | bytearray | memoryview | str | BinaryIO

        Returns
        -------
        BytesRequest | TextRequest

        Raises
        ------
        ConfigurationError
            If `data` is None or cannot be read into bytes.
        '''
        from restbuilder._content import BytesRequest, TextRequest

        if data is None:
            raise ConfigurationError("Request content cannot be None")

        if isinstance(data, str):
            return TextRequest(self, data)

        if isinstance(data, (bytes, bytearray, memoryview)):
            return BytesRequest(self, bytes(data))

        read = getattr(data, 'read', None)
        if not callable(read):
            raise ConfigurationError(
                f"Unsupported content type: {type(data).__name__}"
            )

        if getattr(data, 'seekable', lambda: False)():
            data.seek(0)
        buffered = read()
        if isinstance(buffered, str):
            return TextRequest(self, buffered)
        if not isinstance(buffered, (bytes, bytearray)):
            raise ConfigurationError("Content stream did not return bytes")
        return BytesRequest(self, bytes(buffered))

    async def _send(
        self,
        method: str,
        *,
        content: bytes | None = None,
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> httpx.Response:
        endpoint = self._endpoint
        url = endpoint.prepare_url()

        async def attempt() -> httpx.Response:
            async with http.create_async_client(endpoint.config) as client:
                request = client.build_request(
                    method,
                    url,
                    headers=dict(endpoint.headers),
                    content=content,
                )
                trace_request(progress, method, request.url)
                response = await client.send(request)
                if not response.is_success:
                    raise HttpStatusFailure.from_response(response)

                trace_response(
                    progress,
                    method,
                    request.url,
                    response.status_code,
                    len(response.content),
                )
                return response

        return await execute_with_retries(endpoint.policy, attempt, cancel=cancel)

    async def _dispatch(
        self,
        method: str,
        *,
        as_stream: bool = False,
        content: bytes | None = None,
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Result:
        try:
            response = await self._send(
                method,
                content=content,
                progress=progress,
                cancel=cancel,
            )
        except HttpStatusFailure as failure:
            trace_failure(
                progress,
                method,
                failure.url,
                failure.status_code,
                len(failure.body),
            )
            logger.debug(f'{method} {failure.url} failed with {failure.status_code}')
            body = io.BytesIO(failure.body) if as_stream else failure.text
            return Failed(failure.url, failure.status_code, body, failure)

        if as_stream:
            return Ok(io.BytesIO(response.content))
        return Ok(response.text)

    async def fetch_text(
        self,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Result[str, str]:
        return await self._dispatch('GET', progress=progress, cancel=cancel)

    async def fetch_stream(
        self,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Result[io.BytesIO, io.BytesIO]:
        return await self._dispatch('GET', as_stream=True, progress=progress, cancel=cancel)

    async def fetch_delete(
        self,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Result[str, str]:
        return await self._dispatch('DELETE', progress=progress, cancel=cancel)

    async def get(
        self,
        on_error: ErrorCallback[str, F] | None = None,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> str | F:
        '''
        GET the endpoint and return the response body as text.

        Parameters
        ----------
        on_error : Callable[[httpx.URL, int, str], F] | None, optional
            Called once with (url, status_code, body) when the request
            still fails after retries, its return value becomes the
            result. Without it the error body is returned, by default None
        progress : ProgressSink | None, optional
            Receives human readable trace lines, by default None
        cancel : asyncio.Event | None, optional
            Stops further retries once set, by default None

        Returns
        -------
        str | F

        Raises
        ------
        NoAttemptsLeftError
            When no response was ever received.
        '''
        result = await self.fetch_text(progress, cancel=cancel)
        return complete(result, on_error)

    async def get_stream(
        self,
        on_error: ErrorCallback[io.BytesIO, F] | None = None,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> io.BytesIO | F:
        '''
        Same as `get` but returns the body as a rewound in-memory buffer,
        for binary payloads.
        '''
        result = await self.fetch_stream(progress, cancel=cancel)
        return complete(result, on_error)

    async def delete(
        self,
        on_error: ErrorCallback[str, F] | None = None,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> str | F:
        result = await self.fetch_delete(progress, cancel=cancel)
        return complete(result, on_error)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({str(self.prepare_url())!r})'


def complete(result: Result, on_error: ErrorCallback | None):
    '''
    Turn a result into the value a terminal operation returns:
    the payload, the callback's fallback, or the raw error body.
    '''
    if isinstance(result, Ok):
        return result.value
    if on_error is None:
        return result.body
    return result.recover(on_error)
