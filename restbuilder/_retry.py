'''
retry policies for restbuilder requests

A policy only answers three questions: how many attempts, is this failure
transient, and how long to wait before the next attempt. The loop that asks
them lives in `execute_with_retries`.

Raises
------
NoAttemptsLeftError
    _raised from the last transport error when all attempts are exhausted_
OperationCancelledError
    _raised when the cancel event is set between attempts_
'''

import asyncio
import dataclasses as dc
import logging
import os
import random
from collections.abc import Awaitable, Callable
from typing import Protocol, Self, TypeVar, runtime_checkable

import httpcore
import httpx

from restbuilder._errors import (
    ConfigurationError,
    HttpStatusFailure,
    NoAttemptsLeftError,
    OperationCancelledError,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

_DEFAULT_ATTEMPTS = 3
_DEFAULT_BACKOFF_BASE_S = 0.25

_TRANSPORT_ERRORS = (
    ConnectionError,
    asyncio.TimeoutError,
    httpx.TransportError,
    httpcore.ConnectError,
    httpcore.ReadError,
    httpcore.WriteError,
    httpcore.RemoteProtocolError,
)


@runtime_checkable
class RetryPolicy(Protocol):
    max_attempts: int

    def is_transient(self, failure: BaseException) -> bool: ...

    def backoff_delay(self, attempt_no: int) -> float: ...


@dc.dataclass(frozen=True, slots=True)
class ConstantBackoff:
    delay_s: float = _DEFAULT_BACKOFF_BASE_S

    def delay(self, attempt_no: int) -> float:
        return max(0.0, self.delay_s)


@dc.dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    '''
    Parameters
    ----------
    base : float, optional
        The delay after the first attempt, by default 0.25
    factor : float, optional
        The multiplier applied per attempt, by default 2.0
    max_delay : float, optional
        Upper bound before jitter, by default 10.0
    jitter : float, optional
        The jitter factor to apply to the delay, by default 0.1
    '''
    base: float = _DEFAULT_BACKOFF_BASE_S
    factor: float = 2.0
    max_delay: float = 10.0
    jitter: float = 0.1

    def delay(self, attempt_no: int) -> float:
        base = min(self.max_delay, self.base * self.factor ** max(0, attempt_no - 1))

        if self.jitter:
            j = base * self.jitter
            base += random.uniform(-j, j)

        return max(0.0, base)


Backoff = ConstantBackoff | ExponentialBackoff


@dc.dataclass(frozen=True, slots=True)
class HttpRetryPolicy:
    '''
    The default policy: transport failures and 5xx responses are transient,
    4xx responses are fatal unless opted in through `not_found_is_transient`
    (some backends answer 404 while they are still catching up) or
    `transient_statuses`.
    '''
    attempts: int = _DEFAULT_ATTEMPTS
    not_found_is_transient: bool = False
    transient_statuses: frozenset[int] = frozenset()
    backoff: Backoff = dc.field(default_factory=ExponentialBackoff)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ConfigurationError(
                f"Retry policy needs at least one attempt, got {self.attempts}"
            )

    @property
    def max_attempts(self) -> int:
        return self.attempts

    def is_transient(self, failure: BaseException) -> bool:
        if isinstance(failure, HttpStatusFailure):
            return self.is_transient_status(failure.status_code)
        return isinstance(failure, _TRANSPORT_ERRORS)

    def is_transient_status(self, status_code: int) -> bool:
        if status_code >= 500:
            return True
        if status_code == 404 and self.not_found_is_transient:
            return True
        return status_code in self.transient_statuses

    def backoff_delay(self, attempt_no: int) -> float:
        return self.backoff.delay(attempt_no)

    def with_attempts(self, count: int, not_found_is_transient: bool = False) -> Self:
        return dc.replace(
            self,
            attempts=count,
            not_found_is_transient=not_found_is_transient,
        )

    @classmethod
    def from_env(cls) -> Self:
        '''
        Build the default policy from `RESTBUILDER_HTTP_RETRIES` and
        `RESTBUILDER_HTTP_BACKOFF_BASE_S`, ignoring malformed values.
        '''
        attempts = _DEFAULT_ATTEMPTS
        base = _DEFAULT_BACKOFF_BASE_S

        if raw := os.getenv('RESTBUILDER_HTTP_RETRIES'):
            try:
                attempts = max(1, int(raw))
            except ValueError:
                logger.warning(f'Ignoring malformed RESTBUILDER_HTTP_RETRIES={raw!r}')

        if raw := os.getenv('RESTBUILDER_HTTP_BACKOFF_BASE_S'):
            try:
                base = max(0.0, float(raw))
            except ValueError:
                logger.warning(f'Ignoring malformed RESTBUILDER_HTTP_BACKOFF_BASE_S={raw!r}')

        return cls(attempts=attempts, backoff=ExponentialBackoff(base=base))


async def _wait(delay: float, cancel: asyncio.Event | None) -> None:
    if cancel is None:
        await asyncio.sleep(delay)
        return

    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise OperationCancelledError("Cancelled while waiting to retry")


async def execute_with_retries(
    policy: RetryPolicy,
    func: Callable[[], Awaitable[R]],
    *,
    cancel: asyncio.Event | None = None,
) -> R:
    '''
    Await `func` until it succeeds or `policy` gives up.

    Parameters
    ----------
    policy : RetryPolicy
    func : Callable[[], Awaitable[R]]
        A zero argument coroutine factory, called once per attempt.
    cancel : asyncio.Event | None, optional
        When set, no further attempt is started, by default None

    Returns
    -------
    R

    Raises
    ------
    HttpStatusFailure
        The last status failure once it is fatal or attempts are exhausted.
    NoAttemptsLeftError
        When transient failures without a response exhausted the attempts.
    OperationCancelledError
        When `cancel` is set.
    '''
    for attempt_no in range(1, policy.max_attempts + 1):
        if cancel is not None and cancel.is_set():
            raise OperationCancelledError(f"Cancelled before attempt {attempt_no}")

        try:
            return await func()
        except Exception as exc:
            if not policy.is_transient(exc):
                raise

            if attempt_no == policy.max_attempts:
                if isinstance(exc, HttpStatusFailure):
                    raise
                logger.error(f"Failed after {policy.max_attempts} attempts: {exc!r}")
                raise NoAttemptsLeftError(
                    f"Failed after {policy.max_attempts} attempts: {exc}"
                ) from exc

            delay = policy.backoff_delay(attempt_no)
            logger.warning(
                f"Attempt {attempt_no}/{policy.max_attempts} failed ({exc!r}), "
                f"retrying in {delay:.2f}s"
            )
            await _wait(delay, cancel)

    raise NoAttemptsLeftError(f"Retry policy allowed {policy.max_attempts} attempts")
