'''
**restbuilder.http**
---------

The HTTP plumbing for restbuilder: the per-attempt `httpx.AsyncClient` factory,
its configuration dataclass and the URL validating transport underneath it.
Used internally by `RestClient`, but you can also use it directly if needed.
'''
from restbuilder.http._client import (
    ClientConfig,
    create_async_client,
)
from restbuilder.http._transport import (
    RestTransport,
    SharedTransport,
    URLRejectedError,
    default_socket_options,
    verify_http_url,
)

__all__ = [
    'ClientConfig',
    'create_async_client',
    'RestTransport',
    'SharedTransport',
    'URLRejectedError',
    'default_socket_options',
    'verify_http_url',
]
