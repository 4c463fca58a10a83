"""Single-flight, per-provider FIFO request queue.

# ─── HOW THE QUEUE WORKS (Junior Developer Guide) ──────────────────────
#
# Every provider ("opendota", "dotabuff", ...) owns an independent FIFO
# and at most one worker task.  The worker pops one job at a time:
#
#     wait_for_rate_limit -> record_request -> run executor -> settle future
#
# so jobs of one provider never overlap, while different providers run
# fully concurrently.  The worker exits when its FIFO is empty and is
# recreated lazily by the next submit.
#
# Single-flight: a (provider, signature) pair is "active" from submit until
# its job settles.  Submitting an active signature again does NOT attach
# to the running job; it returns QueuedResult(already_in_flight=True)
# immediately.  The running job writes the shared result to the cache,
# so callers that need the value poll the cache, not the queue.
#
# Failures: an executor exception rejects only that job's future.  The
# signature is released either way, so the next submit retries.  A
# RateLimitError additionally starts a backoff on the rate limiter.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import itertools
import time
from collections import deque
from typing import Any, Callable

from src.models.queue import Executor, ProviderQueueStatus, QueuedResult, QueueJob
from src.services.rate_limiter import RateLimiter
from src.utils.errors import ProviderTimeoutError, QueueClearedError, RateLimitError
from src.utils.logging import get_logger


def _consume_exception(future: asyncio.Future) -> None:
    # Fire-and-forget submitters never await their future.
    if not future.cancelled():
        future.exception()


class RequestQueue:
    """Executes queued work per provider, one job at a time, behind the rate limiter.

    Parameters
    ----------
    rate_limiter:
        Consulted before every job.
    job_timeout:
        Default per-executor timeout in seconds; ``None`` or ``0`` disables it.
    clock:
        Time source for ``enqueued_at`` stamps and durations.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        job_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._job_timeout = job_timeout or None
        self._clock = clock
        self._queues: dict[str, deque[QueueJob]] = {}
        self._active: dict[str, set[str]] = {}
        self._current: dict[str, QueueJob | None] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._ids = itertools.count(1)
        self._logger = get_logger(__name__)

    @property
    def job_timeout(self) -> float | None:
        return self._job_timeout

    def set_job_timeout(self, seconds: float | None) -> None:
        self._job_timeout = seconds or None

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def is_active(self, provider: str, signature: str) -> bool:
        """Return ``True`` while a job for (*provider*, *signature*) is queued or executing."""
        return signature in self._active.get(provider, ())

    def submit(
        self,
        provider: str,
        signature: str,
        executor: Executor,
        timeout_scale: float = 1.0,
    ) -> asyncio.Future | QueuedResult:
        """Queue *executor* without waiting for it.

        Returns the job's future, or a :class:`QueuedResult` with
        ``already_in_flight=True`` if the signature is already active.
        *timeout_scale* multiplies the job timeout for executors that make
        several upstream calls.  Must be called from within a running
        event loop.
        """
        active = self._active.setdefault(provider, set())
        if signature in active:
            self._logger.debug("queue_duplicate_signature", provider=provider, signature=signature)
            return QueuedResult(provider=provider, signature=signature, already_in_flight=True)

        future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        job = QueueJob(
            id=f"{provider}-{next(self._ids)}",
            provider=provider,
            signature=signature,
            executor=executor,
            enqueued_at=self._clock(),
            timeout_scale=timeout_scale,
            future=future,
        )
        active.add(signature)
        queue = self._queues.setdefault(provider, deque())
        queue.append(job)
        self._logger.debug(
            "queue_job_enqueued",
            provider=provider,
            signature=signature,
            job_id=job.id,
            queue_length=len(queue),
        )
        self._ensure_worker(provider)
        return future

    async def enqueue(
        self, provider: str, signature: str, executor: Executor, timeout_scale: float = 1.0
    ) -> Any:
        """Queue *executor* and wait for its result.

        Returns the executor's result, or a :class:`QueuedResult` if the
        signature was already in flight.  Re-raises the executor's
        exception if it failed.
        """
        submitted = self.submit(provider, signature, executor, timeout_scale)
        if isinstance(submitted, QueuedResult):
            return submitted
        return await submitted

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _ensure_worker(self, provider: str) -> None:
        if provider not in self._workers:
            self._workers[provider] = asyncio.create_task(
                self._run_worker(provider), name=f"request-queue-{provider}"
            )

    async def _run_worker(self, provider: str) -> None:
        queue = self._queues[provider]
        try:
            while queue:
                job = queue.popleft()
                self._current[provider] = job
                try:
                    await self._execute(job)
                finally:
                    self._current[provider] = None
        finally:
            self._workers.pop(provider, None)

    async def _invoke(self, job: QueueJob) -> Any:
        if not self._job_timeout:
            return await job.executor()
        timeout = self._job_timeout * max(job.timeout_scale, 1.0)
        try:
            return await asyncio.wait_for(job.executor(), timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(
                f"Job {job.signature} exceeded {timeout}s",
                provider_name=job.provider,
            ) from exc

    async def _execute(self, job: QueueJob) -> None:
        await self._rate_limiter.wait_for_rate_limit(job.provider)
        self._rate_limiter.record_request(job.provider)
        started = self._clock()
        self._logger.debug("queue_job_started", provider=job.provider, signature=job.signature, job_id=job.id)

        result: Any = None
        error: Exception | None = None
        try:
            result = await self._invoke(job)
        except RateLimitError as exc:
            self._rate_limiter.record_rate_limit_hit(job.provider, exc.retry_after)
            error = exc
        except Exception as exc:  # noqa: BLE001
            error = exc
        finally:
            self._active.get(job.provider, set()).discard(job.signature)

        duration_ms = round((self._clock() - started) * 1000, 2)
        if error is not None:
            self._logger.warning(
                "queue_job_failed",
                provider=job.provider,
                signature=job.signature,
                error_type=type(error).__name__,
                error=str(error),
                duration_ms=duration_ms,
            )
            if job.future is not None and not job.future.done():
                job.future.set_exception(error)
            return

        self._logger.info(
            "queue_job_completed",
            provider=job.provider,
            signature=job.signature,
            duration_ms=duration_ms,
        )
        if job.future is not None and not job.future.done():
            job.future.set_result(result)

    # ------------------------------------------------------------------
    # Control & introspection
    # ------------------------------------------------------------------

    def clear_queue(self, provider: str) -> int:
        """Drop every not-yet-started job of *provider* and release its signature.

        A job already executing runs to completion.  Returns the number of
        dropped jobs.
        """
        queue = self._queues.get(provider)
        if not queue:
            return 0
        dropped = 0
        while queue:
            job = queue.popleft()
            self._active.get(provider, set()).discard(job.signature)
            if job.future is not None and not job.future.done():
                job.future.set_exception(
                    QueueClearedError(f"Job {job.signature} was cleared", provider_name=provider)
                )
            dropped += 1
        self._logger.info("queue_cleared", provider=provider, dropped=dropped)
        return dropped

    def get_status(self, provider: str) -> ProviderQueueStatus:
        current = self._current.get(provider)
        active = sorted(self._active.get(provider, ()))
        return ProviderQueueStatus(
            length=len(self._queues.get(provider, ())),
            processing=current is not None,
            active_signatures=len(active),
            active_signatures_list=active,
            currently_processing=current.signature if current else None,
        )

    def get_all_status(self) -> dict[str, ProviderQueueStatus]:
        providers = set(self._queues) | set(self._active)
        return {provider: self.get_status(provider) for provider in sorted(providers)}

    async def drain(self) -> None:
        """Wait until every provider queue is empty and idle.

        Jobs submitted while draining (e.g. cascaded work) are waited for too.
        """
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def close(self) -> None:
        """Drop pending jobs and cancel running workers."""
        for provider in list(self._queues):
            self.clear_queue(provider)
        running = [job for job in self._current.values() if job is not None]
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
        for job in running:
            if job.future is not None and not job.future.done():
                job.future.cancel()
        for provider, active in self._active.items():
            active.clear()
            self._current[provider] = None
        self._logger.info("request_queue_closed", workers=len(workers))
