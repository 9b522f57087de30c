import httpx


class RestClientError(Exception):
    '''
    Base class for every error raised by restbuilder.
    '''


class ConfigurationError(RestClientError, ValueError):
    '''
    Raised before any network attempt when a request is misconfigured
    (relative URI, missing content, bad attempt count...).

    Parent: RestClientError, ValueError
    '''


class HttpStatusFailure(RestClientError):
    '''
    Raised by a single attempt that received a non-success response.
    The retry policy decides whether it is transient, after that the
    terminal operation turns it into a `Failed` result.
    '''

    def __init__(
        self,
        url: httpx.URL,
        status_code: int,
        body: bytes,
        headers: httpx.Headers | None = None,
        encoding: str = 'utf-8',
    ) -> None:
        super().__init__(f'HTTP {status_code} for {url}')
        self.url = url
        self.status_code = status_code
        self.body = body
        self.headers = headers or httpx.Headers()
        self.encoding = encoding

    @property
    def text(self) -> str:
        return self.body.decode(self.encoding, errors='replace')

    @classmethod
    def from_response(cls, response: httpx.Response) -> 'HttpStatusFailure':
        return cls(
            url=response.request.url,
            status_code=response.status_code,
            body=response.content,
            headers=response.headers,
            encoding=response.encoding or 'utf-8',
        )


class NoAttemptsLeftError(RestClientError):
    '''
    Raised from the last transport error when every attempt failed
    without a response to extract an error from.
    '''


class OperationCancelledError(RestClientError):
    '''
    Raised when the caller's cancel event is set while a request
    is still retrying.
    '''
