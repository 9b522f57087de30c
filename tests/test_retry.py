from __future__ import annotations

import httpcore
import httpx
import pytest

from restbuilder import (
    ConfigurationError,
    ConstantBackoff,
    ExponentialBackoff,
    HttpRetryPolicy,
    HttpStatusFailure,
    NoAttemptsLeftError,
    RetryPolicy,
    execute_with_retries,
)


def status_failure(status_code: int) -> HttpStatusFailure:
    return HttpStatusFailure(httpx.URL("https://api.example.com/"), status_code, b"")


@pytest.mark.parametrize("status_code", [500, 502, 503, 504, 599])
def test_server_errors_are_transient(status_code: int) -> None:
    assert HttpRetryPolicy().is_transient(status_failure(status_code))


@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 409, 429])
def test_client_errors_are_fatal_by_default(status_code: int) -> None:
    assert not HttpRetryPolicy().is_transient(status_failure(status_code))


def test_not_found_can_be_transient() -> None:
    policy = HttpRetryPolicy(not_found_is_transient=True)

    assert policy.is_transient(status_failure(404))
    assert not policy.is_transient(status_failure(400))


def test_extra_transient_statuses() -> None:
    policy = HttpRetryPolicy(transient_statuses=frozenset({408, 429}))

    assert policy.is_transient(status_failure(429))
    assert policy.is_transient(status_failure(408))
    assert not policy.is_transient(status_failure(404))


@pytest.mark.parametrize(
    "failure",
    [
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
        httpx.RemoteProtocolError("garbled"),
        httpcore.ConnectError("refused"),
        ConnectionResetError(),
        TimeoutError(),
    ],
)
def test_transport_errors_are_transient(failure: BaseException) -> None:
    assert HttpRetryPolicy().is_transient(failure)


def test_programming_errors_are_fatal() -> None:
    policy = HttpRetryPolicy()

    assert not policy.is_transient(ValueError("bug"))
    assert not policy.is_transient(ConfigurationError("bad uri"))


def test_with_attempts_returns_new_policy() -> None:
    policy = HttpRetryPolicy()
    replaced = policy.with_attempts(7, not_found_is_transient=True)

    assert policy.max_attempts == 3
    assert replaced.max_attempts == 7
    assert replaced.not_found_is_transient


def test_policy_needs_an_attempt() -> None:
    with pytest.raises(ConfigurationError):
        HttpRetryPolicy(attempts=0)


def test_default_policy_is_a_retry_policy() -> None:
    assert isinstance(HttpRetryPolicy(), RetryPolicy)


def test_exponential_backoff_without_jitter() -> None:
    backoff = ExponentialBackoff(base=0.25, factor=2.0, max_delay=1.0, jitter=0)

    assert [backoff.delay(n) for n in range(1, 6)] == [0.25, 0.5, 1.0, 1.0, 1.0]


def test_exponential_backoff_jitter_stays_in_bounds() -> None:
    backoff = ExponentialBackoff(base=1.0, jitter=0.1)

    for _ in range(50):
        assert 0.9 <= backoff.delay(1) <= 1.1


def test_constant_backoff() -> None:
    backoff = ConstantBackoff(0.5)

    assert backoff.delay(1) == backoff.delay(10) == 0.5
    assert ConstantBackoff(-1).delay(1) == 0.0


def test_policy_delegates_backoff() -> None:
    policy = HttpRetryPolicy(backoff=ConstantBackoff(2.0))

    assert policy.backoff_delay(3) == 2.0


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESTBUILDER_HTTP_RETRIES", "5")
    monkeypatch.setenv("RESTBUILDER_HTTP_BACKOFF_BASE_S", "0.5")

    policy = HttpRetryPolicy.from_env()

    assert policy.max_attempts == 5
    assert policy.backoff == ExponentialBackoff(base=0.5)


def test_from_env_ignores_malformed_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESTBUILDER_HTTP_RETRIES", "many")
    monkeypatch.delenv("RESTBUILDER_HTTP_BACKOFF_BASE_S", raising=False)

    assert HttpRetryPolicy.from_env() == HttpRetryPolicy()


class Flaky:
    def __init__(self, *outcomes: object) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self) -> object:
        outcome = self._outcomes[min(self.calls, len(self._outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RetryEverything:
    max_attempts = 2

    def is_transient(self, failure: BaseException) -> bool:
        return True

    def backoff_delay(self, attempt_no: int) -> float:
        return 0.0


@pytest.mark.asyncio
async def test_execute_returns_first_success(delays) -> None:
    func = Flaky(httpx.ConnectError("refused"), "ok")

    assert await execute_with_retries(HttpRetryPolicy(), func) == "ok"
    assert func.calls == 2
    assert len(delays) == 1


@pytest.mark.asyncio
async def test_execute_passes_attempt_number_to_backoff(delays) -> None:
    func = Flaky(status_failure(503), status_failure(503), "ok")
    policy = HttpRetryPolicy(backoff=ExponentialBackoff(base=1.0, jitter=0))

    await execute_with_retries(policy, func)

    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_execute_reraises_last_status_failure(delays) -> None:
    func = Flaky(status_failure(503))

    with pytest.raises(HttpStatusFailure) as exc_info:
        await execute_with_retries(HttpRetryPolicy(attempts=2), func)

    assert exc_info.value.status_code == 503
    assert func.calls == 2


@pytest.mark.asyncio
async def test_execute_propagates_fatal_errors_unchanged(delays) -> None:
    func = Flaky(KeyError("missing"))

    with pytest.raises(KeyError):
        await execute_with_retries(HttpRetryPolicy(), func)

    assert func.calls == 1
    assert delays == []


@pytest.mark.asyncio
async def test_execute_accepts_custom_policies() -> None:
    func = Flaky(ValueError("flaky"))

    with pytest.raises(NoAttemptsLeftError) as exc_info:
        await execute_with_retries(RetryEverything(), func)

    assert isinstance(exc_info.value.__cause__, ValueError)
    assert func.calls == 2
