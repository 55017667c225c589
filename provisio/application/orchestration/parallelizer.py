"""
Parallelizer Module

Architectural Intent:
- Bounded fan-out shared across every provisioning operation, so the total
  number of in-flight provider calls never exceeds one configured limit
- Protects rate-limited provisioning APIs from overload

Parallelization Strategy:
- A shared semaphore caps in-flight operations across all fan-outs; a
  per-call limit may tighten (never loosen) the cap for one fan-out
- Once the bound is reached no further items start until a slot frees
- No early cancellation: when an item fails every sibling still runs, and
  the aggregate result carries one outcome per item in input order
- parallelize() returns a non-blocking handle; map() awaits it
- The shared semaphore is kept per event loop, so one Parallelizer serves
  successive run_sync() calls and any number of asyncio.run() invocations
"""

from __future__ import annotations
import asyncio
import contextlib
import logging
import weakref
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, Iterator, Optional, TypeVar

from provisio.domain.errors import ParallelizationError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class ParallelOutcome(Generic[T, R]):
    index: int
    item: T
    result: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ParallelResult(Generic[T, R]):
    """Per-item outcomes of one fan-out, in input order."""

    def __init__(self, outcomes: list[ParallelOutcome[T, R]]) -> None:
        self._outcomes = sorted(outcomes, key=lambda o: o.index)

    @property
    def outcomes(self) -> list[ParallelOutcome[T, R]]:
        return list(self._outcomes)

    @property
    def succeeded(self) -> list[ParallelOutcome[T, R]]:
        return [o for o in self._outcomes if o.ok]

    @property
    def failed(self) -> list[ParallelOutcome[T, R]]:
        return [o for o in self._outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self._outcomes)

    @property
    def errors(self) -> list[BaseException]:
        return [o.error for o in self._outcomes if o.error is not None]

    def results(self) -> list[Optional[R]]:
        """Results in input order; None where the item failed."""
        return [o.result for o in self._outcomes]

    def raise_for_errors(self) -> None:
        errors = self.errors
        if errors:
            raise ParallelizationError(errors)

    def __iter__(self) -> Iterator[ParallelOutcome[T, R]]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def __getitem__(self, index: int) -> ParallelOutcome[T, R]:
        return self._outcomes[index]


class ParallelRun(Generic[T, R]):
    """Handle for a fan-out in progress. Await it to collect the result."""

    def __init__(self, tasks: list[asyncio.Task]) -> None:
        self._tasks = tasks

    def done(self) -> bool:
        return all(t.done() for t in self._tasks)

    async def wait(self) -> ParallelResult[T, R]:
        outcomes = await asyncio.gather(*self._tasks)
        return ParallelResult(list(outcomes))

    def __await__(self):
        return self.wait().__await__()


class Parallelizer:
    """Shared, bounded fan-out for provider calls."""

    def __init__(self, max_simultaneous: int = 10) -> None:
        if max_simultaneous < 1:
            raise ValueError(
                f"max_simultaneous must be at least 1, got {max_simultaneous}"
            )
        self.max_simultaneous = max_simultaneous
        self._semaphores: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, asyncio.Semaphore
        ] = weakref.WeakKeyDictionary()
        self._in_flight = 0
        self._peak_in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of operations observed running at once."""
        return self._peak_in_flight

    def parallelize(
        self,
        items: Iterable[T],
        operation: Callable[[T], Awaitable[R]],
        max_simultaneous: Optional[int] = None,
    ) -> ParallelRun[T, R]:
        """
        Starts `operation` for every item and returns immediately.

        Must be called from within a running event loop.
        """
        local_limit: Optional[asyncio.Semaphore] = None
        if max_simultaneous is not None:
            if max_simultaneous < 1:
                raise ValueError(
                    f"max_simultaneous must be at least 1, got {max_simultaneous}"
                )
            if max_simultaneous < self.max_simultaneous:
                local_limit = asyncio.Semaphore(max_simultaneous)

        shared = self._shared_semaphore()
        tasks = [
            asyncio.ensure_future(
                self._run_one(index, item, operation, shared, local_limit)
            )
            for index, item in enumerate(items)
        ]
        return ParallelRun(tasks)

    async def map(
        self,
        items: Iterable[T],
        operation: Callable[[T], Awaitable[R]],
        max_simultaneous: Optional[int] = None,
    ) -> ParallelResult[T, R]:
        """Runs `operation` over every item and waits for all of them."""
        return await self.parallelize(items, operation, max_simultaneous)

    def run_sync(
        self,
        items: Iterable[T],
        operation: Callable[[T], Awaitable[R]],
        max_simultaneous: Optional[int] = None,
    ) -> ParallelResult[T, R]:
        """
        Blocks the calling thread until every item finishes. For synchronous
        callers only; raises RuntimeError inside a running event loop.
        """
        return asyncio.run(self.map(items, operation, max_simultaneous))

    def _shared_semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        semaphore = self._semaphores.get(loop)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self.max_simultaneous)
            self._semaphores[loop] = semaphore
        return semaphore

    async def _run_one(
        self,
        index: int,
        item: T,
        operation: Callable[[T], Awaitable[R]],
        shared: asyncio.Semaphore,
        local_limit: Optional[asyncio.Semaphore],
    ) -> ParallelOutcome[T, R]:
        async with contextlib.AsyncExitStack() as slots:
            # Take the per-call slot first so a queued item never holds a
            # shared slot while it waits.
            if local_limit is not None:
                await slots.enter_async_context(local_limit)
            await slots.enter_async_context(shared)

            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                result = await operation(item)
            except Exception as e:
                logger.debug("Parallel item %d failed: %s", index, e)
                return ParallelOutcome(index=index, item=item, error=e)
            finally:
                self._in_flight -= 1
        return ParallelOutcome(index=index, item=item, result=result)
