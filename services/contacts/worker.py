"""Bounded worker pool for contact finder jobs.

Workers pull jobs from an IContactQueue, start at most `max_jobs_per_second`
jobs globally and run at most `concurrency` at once. A message is deleted
only after its job succeeds; failed jobs become visible again and the
queue's own redrive policy decides what happens next.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from loguru import logger
from pydantic import BaseModel

from services.contacts.queue import IContactQueue, QueueMessage
from services.contacts.service import ContactFinderService


class JobRateLimiter:
    """Spaces job starts at least 1/max_per_second apart across all workers."""

    def __init__(
        self,
        max_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.interval = 1.0 / max_per_second if max_per_second > 0 else 0.0
        self._clock = clock
        self._sleep = sleep
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._next_slot > now:
                await self._sleep(self._next_slot - now)
                now = self._next_slot
            self._next_slot = now + self.interval


class PoolStats(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    invalid: int = 0
    contacts_saved: int = 0


async def _run_job(
    msg: QueueMessage,
    queue: IContactQueue,
    service: ContactFinderService,
    limiter: JobRateLimiter,
    stats: PoolStats,
) -> None:
    await limiter.acquire()
    job = msg.job
    try:
        result = await service.process_job(job)
    except Exception as e:
        stats.processed += 1
        stats.failed += 1
        logger.error(f"Job failed for prospect {job.prospect_id} ({job.domain or job.url}): {type(e).__name__}: {e}")
        return
    stats.processed += 1
    stats.succeeded += 1
    stats.contacts_saved += result.found
    await asyncio.to_thread(queue.delete_message, msg.receipt_handle)


async def run_worker_pool(
    queue: IContactQueue,
    service: ContactFinderService,
    concurrency: int = 10,
    max_jobs_per_second: float = 30.0,
    max_empty_polls: Optional[int] = 3,
    stop_event: Optional[asyncio.Event] = None,
    limiter: Optional[JobRateLimiter] = None,
) -> PoolStats:
    """Consume the queue until it stays empty or stop_event is set.

    max_empty_polls=None keeps polling forever (long-running consumer).
    """
    limiter = limiter or JobRateLimiter(max_jobs_per_second)
    semaphore = asyncio.Semaphore(concurrency)
    stats = PoolStats()
    running: set[asyncio.Task] = set()
    empty_polls = 0

    async def run_one(msg: QueueMessage):
        try:
            await _run_job(msg, queue, service, limiter, stats)
        finally:
            semaphore.release()

    logger.info(f"Starting contact finder workers (concurrency={concurrency}, rate={max_jobs_per_second}/s)")
    while not (stop_event and stop_event.is_set()):
        messages = await asyncio.to_thread(queue.receive_messages, min(concurrency, 10))
        if not messages:
            empty_polls += 1
            if max_empty_polls is not None and empty_polls >= max_empty_polls:
                logger.info(f"Queue empty ({empty_polls} consecutive empty polls), stopping.")
                break
            continue
        empty_polls = 0

        for msg in messages:
            if msg.job is None:
                # Unparseable payloads would fail forever; drop them
                stats.invalid += 1
                await asyncio.to_thread(queue.delete_message, msg.receipt_handle)
                continue
            await semaphore.acquire()
            task = asyncio.create_task(run_one(msg))
            running.add(task)
            task.add_done_callback(running.discard)

        logger.info(
            f"Progress: {stats.processed} processed, {stats.succeeded} ok, "
            f"{stats.failed} failed, {stats.contacts_saved} contacts saved"
        )

    if running:
        await asyncio.gather(*running)

    logger.info(
        f"Workers stopped. Total: {stats.processed} processed, {stats.failed} failed, "
        f"{stats.invalid} invalid, {stats.contacts_saved} contacts saved"
    )
    return stats
