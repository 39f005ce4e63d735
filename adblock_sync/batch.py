# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""Bounded fan-out of independent API calls with a fail-fast barrier.

Every call gets an :class:`Outcome`. When one call fails, calls that have not
started yet are never started and are recorded as skipped. Calls already in
flight run to completion and keep their real outcome, since the server may
have applied them, so the caller sees exactly which remote objects were
touched before the halt.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

DONE = "done"
FAILED = "failed"
SKIPPED = "skipped"


class _Halted(Exception):
    """Raised inside a call that was never started because the batch failed."""


@dataclass
class Outcome:
    index: int
    status: str
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status == DONE


@dataclass
class BatchResult:
    outcomes: List[Outcome] = field(default_factory=list)

    @property
    def completed(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.status == DONE]

    @property
    def failed(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.status == FAILED]

    @property
    def skipped(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.status == SKIPPED]

    @property
    def all_ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    def results(self) -> List[Any]:
        """Results of the completed calls, in submission order."""
        return [o.result for o in self.completed]

    def raise_first_error(self) -> None:
        failed = self.failed
        if failed:
            raise failed[0].error


async def run_batch(calls: Sequence[Callable[[], Awaitable[Any]]],
                    max_concurrency: int) -> BatchResult:
    """Run ``calls`` with at most ``max_concurrency`` in flight.

    Semaphore waiters are served in submission order, so with a limit of 1 the
    calls run strictly one after another.

    After the first failure no further call starts and those are reported as
    skipped; calls already in flight finish with their own outcome.
    """
    if not calls:
        return BatchResult()

    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    halted = False

    async def guarded(call):
        nonlocal halted
        async with semaphore:
            # a waiter woken by the failing call's release must not start
            if halted:
                raise _Halted()
            try:
                return await call()
            except Exception:
                halted = True
                raise

    tasks = [asyncio.ensure_future(guarded(call)) for call in calls]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    # in-flight calls finish; waiters bail out through the halted check
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    outcomes = []
    for index, task in enumerate(tasks):
        if task.cancelled() or isinstance(task.exception(), _Halted):
            outcomes.append(Outcome(index, SKIPPED))
        elif task.exception() is not None:
            outcomes.append(Outcome(index, FAILED, error=task.exception()))
        else:
            outcomes.append(Outcome(index, DONE, result=task.result()))
    return BatchResult(outcomes)
