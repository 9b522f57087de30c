import dataclasses as dc
import logging
import os
from typing import Self

import httpx

from restbuilder.__about__ import __version__
from restbuilder.http._transport import RestTransport, SharedTransport

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 10.0
_DEFAULT_CONNECT_TIMEOUT_S = 5.0
_DEFAULT_USER_AGENT = f'restbuilder/{__version__}'


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f'Ignoring malformed {name}={raw!r}, using {default}')
        return default


def _base_timeouts(
    total_s: float = _DEFAULT_TIMEOUT_S,
    connect_s: float = _DEFAULT_CONNECT_TIMEOUT_S,
) -> httpx.Timeout:
    return httpx.Timeout(
        connect=connect_s,
        read=total_s,
        write=total_s,
        pool=connect_s,
    )


def _default_headers() -> dict[str, str]:
    return {
        'Cache-Control': 'max-age=0',
        'Accept-Language': 'en-US,en;q=0.9',
    }


@dc.dataclass(slots=True)
class ClientConfig:
    '''
    Transport level options shared by every request made from a
    `RestClient`. Good defaults are provided for most use cases.

    `transport` lets callers (and tests) supply their own
    `httpx.AsyncBaseTransport`; it is shared between attempts and
    never closed by restbuilder.
    '''
    timeout: httpx.Timeout = dc.field(default_factory=_base_timeouts)
    trust_env: bool = False
    transport_retries: int = 0
    user_agent: str = _DEFAULT_USER_AGENT
    default_headers: dict[str, str] = dc.field(default_factory=_default_headers)
    transport: httpx.AsyncBaseTransport | None = None

    @classmethod
    def from_env(cls, **overrides) -> Self:
        '''
        Build a config from `RESTBUILDER_HTTP_*` environment variables,
        falling back to the defaults for missing or malformed values.

        Returns
        -------
        ClientConfig
        '''
        total_s = max(0.1, _get_float_env('RESTBUILDER_HTTP_TIMEOUT_S', _DEFAULT_TIMEOUT_S))
        connect_s = max(0.1, _get_float_env('RESTBUILDER_HTTP_CONNECT_TIMEOUT_S', _DEFAULT_CONNECT_TIMEOUT_S))
        kwargs = {
            'timeout': _base_timeouts(total_s, min(connect_s, total_s)),
            'user_agent': os.getenv('RESTBUILDER_HTTP_USER_AGENT', _DEFAULT_USER_AGENT),
        }
        kwargs.update(overrides)
        return cls(**kwargs)


def create_async_client(config: ClientConfig | None = None) -> httpx.AsyncClient:
    '''
    Create the short lived client used for a single attempt.
    Redirects are not followed and HTTP/2 is never negotiated.

    Parameters
    ----------
    config : ClientConfig | None, optional

    Returns
    -------
    httpx.AsyncClient
    '''
    config = config or ClientConfig()

    transport: httpx.AsyncBaseTransport
    if config.transport is not None:
        transport = SharedTransport(config.transport)
    else:
        transport = RestTransport(
            trust_env=config.trust_env,
            retries=config.transport_retries,
        )

    headers = dict(config.default_headers)
    headers['User-Agent'] = config.user_agent

    return httpx.AsyncClient(
        transport=transport,
        timeout=config.timeout,
        headers=headers,
        follow_redirects=False,
        trust_env=config.trust_env,
    )
