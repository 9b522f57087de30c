import asyncio
import dataclasses as dc
from typing import Generic, Self, TypeVar

from restbuilder._client import RestClient, complete
from restbuilder._errors import ConfigurationError
from restbuilder._progress import ProgressSink
from restbuilder._result import ErrorCallback, Result

F = TypeVar("F")
P = TypeVar("P", bytes, str)


def _charset_of(content_type: str | None) -> str:
    if not content_type:
        return 'utf-8'
    for part in content_type.split(';')[1:]:
        name, _, value = part.strip().partition('=')
        if name.lower() == 'charset' and value:
            return value.strip('"\' ')
    return 'utf-8'


@dc.dataclass(frozen=True, slots=True)
class _ContentRequest(Generic[P]):
    '''
    A `RestClient` plus a payload snapshot. Query parameters, headers and
    the retry policy still come from the wrapped client, so they can be
    adjusted after the content is attached.
    '''
    client: RestClient
    payload: P

    def _with_client(self, client: RestClient) -> Self:
        return dc.replace(self, client=client)

    def parameter(self, key: str, value: str | int | float) -> Self:
        return self._with_client(self.client.parameter(key, value))

    def header(self, key: str, value: str) -> Self:
        return self._with_client(self.client.header(key, value))

    def content_type(self, value: str) -> Self:
        return self._with_client(self.client.content_type(value))

    def retry(self, count: int, not_found_is_transient: bool = False) -> Self:
        return self._with_client(self.client.retry(count, not_found_is_transient))

    def encode(self) -> bytes:
        raise NotImplementedError

    async def fetch(
        self,
        method: str,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Result[str, str]:
        return await self.client._dispatch(
            method.upper(),
            content=self.encode(),
            progress=progress,
            cancel=cancel,
        )

    async def send(
        self,
        method: str,
        on_error: ErrorCallback[str, F] | None = None,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> str | F:
        '''
        Send the payload with `method` and return the response text.
        Failures follow the same retry and `on_error` rules as `RestClient.get`.
        '''
        result = await self.fetch(method, progress, cancel=cancel)
        return complete(result, on_error)

    async def put(
        self,
        on_error: ErrorCallback[str, F] | None = None,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> str | F:
        return await self.send('PUT', on_error, progress, cancel=cancel)

    async def post(
        self,
        on_error: ErrorCallback[str, F] | None = None,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> str | F:
        return await self.send('POST', on_error, progress, cancel=cancel)

    async def patch(
        self,
        on_error: ErrorCallback[str, F] | None = None,
        progress: ProgressSink | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> str | F:
        return await self.send('PATCH', on_error, progress, cancel=cancel)


@dc.dataclass(frozen=True, slots=True)
class BytesRequest(_ContentRequest[bytes]):
    def encode(self) -> bytes:
        return self.payload


@dc.dataclass(frozen=True, slots=True)
class TextRequest(_ContentRequest[str]):
    def encode(self) -> bytes:
        '''
        UTF-8 unless the configured Content-Type names another charset.
        '''
        content_type = next(
            (
                value
                for name, value in self.client.headers.items()
                if name.lower() == 'content-type'
            ),
            None,
        )
        charset = _charset_of(content_type)
        try:
            return self.payload.encode(charset)
        except LookupError as exc:
            raise ConfigurationError(f"Unknown charset in Content-Type: {charset}") from exc
