"""Batch execution of independent sub-operations."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Iterable, TypeVar

I = TypeVar("I")
R = TypeVar("R")


@dataclass
class BatchFailure(Generic[I]):
    """One sub-operation that raised."""

    input: I
    error: Exception


@dataclass
class BatchResult(Generic[I, R]):
    """
    Outcome of a batch: every input lands in exactly one of the two lists,
    each in input order.
    """

    succeeded: list[tuple[I, R]] = field(default_factory=list)
    failed: list[BatchFailure[I]] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


async def run_batch(
    items: Iterable[I],
    operation: Callable[[I], Awaitable[R]],
    concurrent: bool = True,
) -> BatchResult[I, R]:
    """
    Run operation for every item without short-circuiting on failure.

    With concurrent=True all calls are issued together and awaited as a
    group; otherwise they run one after another. Either way one item's
    failure never prevents the others from being attempted. Cancellation
    is not treated as an item failure.
    """
    items = list(items)
    if concurrent:
        outcomes = await asyncio.gather(
            *(operation(item) for item in items),
            return_exceptions=True,
        )
    else:
        outcomes = []
        for item in items:
            try:
                outcomes.append(await operation(item))
            except Exception as exc:
                outcomes.append(exc)

    result: BatchResult[I, R] = BatchResult()
    for item, outcome in zip(items, outcomes):
        if isinstance(outcome, Exception):
            result.failed.append(BatchFailure(item, outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.succeeded.append((item, outcome))
    return result
