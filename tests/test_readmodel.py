from __future__ import annotations

import dataclasses as dc
from collections.abc import Callable
from typing import TypeVar

import pytest

from restbuilder import HttpRetryPolicy, RetryPolicy, execute_with_retries
from restbuilder.readmodel import ReadModel

R = TypeVar("R")


@dc.dataclass
class Inventory:
    items: list[str]


class InMemoryReadModel:
    def __init__(self, model: Inventory) -> None:
        self._model = model

    async def query(self, projection: Callable[[Inventory], R], retry: RetryPolicy | None = None) -> R:
        async def run() -> R:
            return projection(self._model)

        return await execute_with_retries(retry or HttpRetryPolicy(attempts=1), run)


async def count_items(model: ReadModel[Inventory]) -> int:
    return await model.query(lambda inventory: len(inventory.items))


@pytest.mark.asyncio
async def test_read_model_contract() -> None:
    model = InMemoryReadModel(Inventory(["a", "b"]))

    assert await count_items(model) == 2
    assert await model.query(lambda inventory: inventory.items[0], HttpRetryPolicy()) == "a"
