import logging
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    def __call__(self, message: str) -> None: ...


class LoggingProgress:
    '''
    A progress sink that writes trace lines to a logger.
    '''
    __slots__ = ('_logger', '_level')

    def __init__(
        self,
        target: logging.Logger | None = None,
        level: int = logging.INFO,
    ) -> None:
        self._logger = target or logger
        self._level = level

    def __call__(self, message: str) -> None:
        self._logger.log(self._level, message)


def emit(progress: ProgressSink | None, message: str) -> None:
    '''
    Hand a trace line to `progress`. A failing sink is logged
    and otherwise ignored, it never changes the request outcome.
    '''
    if progress is None:
        return
    try:
        progress(message)
    except Exception:
        logger.warning(f'Progress sink {progress!r} failed', exc_info=True)


def trace_request(progress: ProgressSink | None, method: str, url: httpx.URL) -> None:
    emit(progress, f'{method} {url}')


def trace_response(
    progress: ProgressSink | None,
    method: str,
    url: httpx.URL,
    status_code: int,
    length: int,
) -> None:
    emit(progress, f'{method} {url} -> {status_code} (Length={length})')


def trace_failure(
    progress: ProgressSink | None,
    method: str,
    url: httpx.URL,
    status_code: int,
    length: int,
) -> None:
    emit(progress, f'{method} {url} failed -> {status_code} (Length={length})')
