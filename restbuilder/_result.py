import dataclasses as dc
from collections.abc import Callable
from typing import Generic, TypeVar

import httpx

from restbuilder._errors import HttpStatusFailure

T = TypeVar("T")
B = TypeVar("B")
F = TypeVar("F")

ErrorCallback = Callable[[httpx.URL, int, B], F]


@dc.dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def recover(self, on_error: ErrorCallback) -> T:
        return self.value

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default) -> T:
        return self.value


@dc.dataclass(frozen=True, slots=True)
class Failed(Generic[B]):
    '''
    A request that ended with a non-success response once the retry
    policy gave up. `body` is the response text, or a rewound
    `io.BytesIO` for stream operations.
    '''
    url: httpx.URL
    status_code: int
    body: B
    failure: HttpStatusFailure | None = dc.field(default=None, repr=False, compare=False)

    @property
    def is_ok(self) -> bool:
        return False

    def recover(self, on_error: ErrorCallback[B, F]) -> F:
        '''
        Map the failure to a fallback value.

        Parameters
        ----------
        on_error : Callable[[httpx.URL, int, B], F]
            Called exactly once with the request URL, status code and body.
            It may raise its own exception instead of returning.

        Returns
        -------
        F
        '''
        return on_error(self.url, self.status_code, self.body)

    def unwrap(self):
        if self.failure is not None:
            raise self.failure
        raise HttpStatusFailure(self.url, self.status_code, b'')

    def unwrap_or(self, default: F) -> F:
        return default


Result = Ok[T] | Failed[B]
