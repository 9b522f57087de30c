from collections.abc import Callable
from typing import Protocol, TypeVar

from restbuilder._retry import RetryPolicy

TModel = TypeVar("TModel", covariant=True)
R = TypeVar("R")


class ReadModel(Protocol[TModel]):
    '''
    A queryable projection store. `query` applies `projection` to the
    model and returns its result, optionally retrying with `retry`.
    '''

    async def query(
        self,
        projection: Callable[[TModel], R],
        retry: RetryPolicy | None = None,
    ) -> R: ...
