"""Fixed-size worker pool driving target pipelines."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from .outcome import RunOutcome

LOGGER = logging.getLogger(__name__)

DEFAULT_WORKERS = 5

TargetRunner = Callable[[str], Awaitable[RunOutcome]]
OutcomeCallback = Callable[[RunOutcome], None]


async def _worker(
    worker_id: int,
    queue: "asyncio.Queue[str]",
    run: TargetRunner,
    outcomes: List[RunOutcome],
    on_outcome: Optional[OutcomeCallback],
) -> None:
    while True:
        try:
            target = queue.get_nowait()
        except asyncio.QueueEmpty:
            return
        LOGGER.debug("worker-%d picked %s", worker_id, target)
        try:
            outcome = await run(target)
        except Exception as exc:
            LOGGER.exception("[ERR ] %s -> INTERNAL ERROR", target)
            outcome = RunOutcome(
                target=target, kind="internal_error", error_message=str(exc)
            )
        finally:
            queue.task_done()
        outcomes.append(outcome)
        if on_outcome is not None:
            on_outcome(outcome)


async def run_pool(
    targets: Iterable[str],
    run: TargetRunner,
    *,
    workers: int = DEFAULT_WORKERS,
    on_outcome: Optional[OutcomeCallback] = None,
) -> List[RunOutcome]:
    """Run *run* on every target with at most *workers* in flight.

    Targets are handed out in list order; outcomes are returned in completion
    order once every worker has drained the queue. *on_outcome*, if given, is
    called with each outcome as soon as its target finishes. An exception
    escaping *run* becomes an ``internal_error`` outcome for that target only.
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")

    queue: "asyncio.Queue[str]" = asyncio.Queue()
    for target in targets:
        queue.put_nowait(target)
    if queue.empty():
        return []

    outcomes: List[RunOutcome] = []
    pool_size = min(workers, queue.qsize())
    LOGGER.debug("Starting %d worker(s) for %d target(s)", pool_size, queue.qsize())
    await asyncio.gather(
        *(_worker(i, queue, run, outcomes, on_outcome) for i in range(pool_size))
    )
    return outcomes
