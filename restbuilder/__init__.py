'''
**restbuilder**
---------

A resilient async REST client: a fluent builder bound to one absolute URI
with query parameters, headers and a pluggable retry policy applied to every
request. Failed HTTP responses are handed to a caller supplied callback (or
returned as a `Failed` result) once the retry policy gives up.

    from restbuilder import RestClient

    body = await (
        RestClient.uri('https://api.example.com/items')
        .parameter('limit', '10')
        .retry(5)
        .get(on_error=lambda url, status, body: '{"items":[]}')
    )
'''
from restbuilder.__about__ import __version__
from restbuilder._client import Endpoint, RestClient, build_query, complete
from restbuilder._content import BytesRequest, TextRequest
from restbuilder._errors import (
    ConfigurationError,
    HttpStatusFailure,
    NoAttemptsLeftError,
    OperationCancelledError,
    RestClientError,
)
from restbuilder._progress import LoggingProgress, ProgressSink
from restbuilder._result import ErrorCallback, Failed, Ok, Result
from restbuilder._retry import (
    ConstantBackoff,
    ExponentialBackoff,
    HttpRetryPolicy,
    RetryPolicy,
    execute_with_retries,
)
from restbuilder.http import ClientConfig

__all__ = [
    '__version__',
    'RestClient',
    'Endpoint',
    'build_query',
    'complete',
    'BytesRequest',
    'TextRequest',
    'RestClientError',
    'ConfigurationError',
    'HttpStatusFailure',
    'NoAttemptsLeftError',
    'OperationCancelledError',
    'LoggingProgress',
    'ProgressSink',
    'ErrorCallback',
    'Ok',
    'Failed',
    'Result',
    'ConstantBackoff',
    'ExponentialBackoff',
    'HttpRetryPolicy',
    'RetryPolicy',
    'execute_with_retries',
    'ClientConfig',
]
