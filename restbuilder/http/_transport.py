import logging
import socket

import httpx

from restbuilder._errors import ConfigurationError

logger = logging.getLogger(__name__)


class URLRejectedError(ConfigurationError):
    '''
    Raised when a URL is not an absolute http(s) address.

    Parent: ConfigurationError
    '''


def default_socket_options() -> list[tuple]:
    '''
    cross platform socket options for TCP connections

    Returns
    -------
    list[SockOpt]
    '''
    opts = []

    if hasattr(socket, "TCP_NODELAY"):
        opts.append((socket.IPPROTO_TCP, socket.TCP_NODELAY, 1))

    if hasattr(socket, "SO_KEEPALIVE"):
        opts.append((socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1))

    if hasattr(socket, "TCP_KEEPIDLE"):
        opts.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, 30))

    if hasattr(socket, "TCP_KEEPINTVL"):
        opts.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, 10))

    return opts


def normalize_idna_host(host: str) -> str:
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return host


def verify_http_url(newurl: str | httpx.URL) -> httpx.URL:
    '''
    Verifies that a URL is absolute, uses http or https and
    has a host, normalizing the host to its IDNA form.

    Parameters
    ----------
    newurl : str | httpx.URL

    Returns
    -------
    httpx.URL

    Raises
    ------
    URLRejectedError
        If the URL cannot be parsed, is relative, or uses another scheme.
    '''
    try:
        url = httpx.URL(newurl)
    except (httpx.InvalidURL, TypeError) as exc:
        raise URLRejectedError(f"Rejected malformed URL: {newurl!r}") from exc

    if not url.is_absolute_url:
        raise URLRejectedError(f"Rejected relative URL: {newurl!r}")

    if url.scheme not in ("http", "https"):
        raise URLRejectedError(f"Rejected unsupported URL scheme: {url.scheme}")

    if not url.host:
        raise URLRejectedError(f"Rejected URL without a host: {newurl!r}")

    return url.copy_with(host=normalize_idna_host(url.host))


class RestTransport(httpx.AsyncBaseTransport):
    '''
    HTTP/1.1 transport with TCP keepalive socket options that
    re-validates every outgoing URL.
    '''
    def __init__(
        self,
        *,
        trust_env: bool = False,
        retries: int = 0
    ) -> None:
        self._inner: httpx.AsyncHTTPTransport = httpx.AsyncHTTPTransport(
            http1=True,
            http2=False,
            socket_options=default_socket_options(),
            trust_env=trust_env,
            retries=retries
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        request.url = verify_http_url(request.url)
        logger.debug(f'Sending request: {request.method} {request.url}')
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()


class SharedTransport(httpx.AsyncBaseTransport):
    '''
    Wraps a caller supplied transport so that closing the short lived
    per-attempt client leaves the caller's transport open.
    '''
    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self._inner = inner

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        ...
