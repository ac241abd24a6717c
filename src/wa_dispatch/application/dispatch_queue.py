"""Fila de despacho atrasado: primeira tentativa de cada job.

Jobs entram com `not_before` (ritmo humano + jitter) e saem em ordem de
horário, um por unidade de orçamento do rate limiter. Se o orçamento acabar,
o tick para: nunca pula para jobs posteriores.

O envio de cada job liberado roda em task própria; o poller nunca espera I/O
de rede.
"""

from __future__ import annotations

import asyncio
import contextlib
import heapq
import itertools
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any

from wa_dispatch.domain.enums import JobState
from wa_dispatch.domain.models import DispatchJob
from wa_dispatch.infra.rate_limiter import FixedWindowRateLimiter
from wa_dispatch.infra.ttl_cache import Clock
from wa_dispatch.observability.logging import get_logger, mask_recipient

logger: logging.Logger = get_logger(__name__)

JobHandler = Callable[[DispatchJob], Awaitable[Any]]


class DelayedDispatchQueue:
    """Heap de jobs por (next_attempt_at, seq) com poller assíncrono."""

    def __init__(
        self,
        rate_limiter: FixedWindowRateLimiter,
        handler: JobHandler,
        *,
        poll_interval_seconds: float = 1.0,
        clock: Clock | None = None,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._handler = handler
        self._poll_interval = poll_interval_seconds
        self._clock = clock or time.time
        self._heap: list[tuple[float, int, DispatchJob]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self._inflight: set[asyncio.Task[None]] = set()
        self._wake_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._stopping = False

    def schedule(self, job: DispatchJob, not_before: float) -> None:
        """Agenda o job para não antes de `not_before` (epoch seconds)."""
        job.next_attempt_at = not_before
        job.state = JobState.PENDING
        with self._lock:
            heapq.heappush(self._heap, (not_before, next(self._seq), job))
        logger.debug(
            "dispatch_scheduled",
            extra={
                "job_id": job.id,
                "fingerprint": job.fingerprint,
                "recipient": mask_recipient(job.recipient),
                "delay_seconds": round(not_before - self._clock(), 3),
                "urgent": job.urgent,
            },
        )

    def wake(self) -> None:
        """Acorda o poller antes do próximo intervalo (jobs urgentes)."""
        if self._wake_event is not None:
            self._wake_event.set()

    async def tick(self) -> int:
        """Libera jobs vencidos enquanto houver orçamento.

        Returns:
            Quantidade de jobs liberados neste tick
        """
        released = 0
        while True:
            entry = self._pop_due()
            if entry is None:
                break
            _, job = entry
            if not self._rate_limiter.try_acquire():
                # Devolve sem custo; a ordem é preservada pelo seq original.
                self._push_back(entry)
                logger.debug(
                    "dispatch_rate_limited",
                    extra={
                        "job_id": job.id,
                        "reset_in_seconds": self._rate_limiter.seconds_until_reset(),
                    },
                )
                break
            self._spawn(job)
            released += 1
        return released

    def _pop_due(self) -> tuple[int, DispatchJob] | None:
        now = self._clock()
        with self._lock:
            if not self._heap or self._heap[0][0] > now:
                return None
            _, seq, job = heapq.heappop(self._heap)
        return seq, job

    def _push_back(self, entry: tuple[int, DispatchJob]) -> None:
        seq, job = entry
        with self._lock:
            heapq.heappush(self._heap, (job.next_attempt_at, seq, job))

    def _spawn(self, job: DispatchJob) -> None:
        job.state = JobState.IN_FLIGHT
        task = asyncio.create_task(self._run_job(job))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_job(self, job: DispatchJob) -> None:
        try:
            await self._handler(job)
        except Exception:
            logger.exception(
                "dispatch_job_failed",
                extra={"job_id": job.id, "fingerprint": job.fingerprint},
            )

    async def drain(self) -> None:
        """Aguarda os envios em andamento."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def start(self) -> None:
        """Inicia o poller em background (idempotente)."""
        if self._task is not None and not self._task.done():
            return
        self._stopping = False
        self._wake_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="dispatch-queue")
        logger.info(
            "dispatch_queue_started",
            extra={"poll_interval_seconds": self._poll_interval},
        )

    async def stop(self) -> None:
        """Para o poller e aguarda os envios já liberados."""
        self._stopping = True
        self.wake()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self.drain()
        logger.info("dispatch_queue_stopped", extra={"pending": len(self)})

    async def _run(self) -> None:
        while not self._stopping:
            try:
                await self.tick()
            except Exception:
                logger.exception("dispatch_tick_failed")
            await self._wait_for_wakeup(self._poll_interval)

    async def _wait_for_wakeup(self, timeout: float) -> None:
        assert self._wake_event is not None
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._wake_event.wait(), timeout=timeout)
        self._wake_event.clear()

    def snapshot(self) -> list[dict[str, Any]]:
        """Jobs pendentes em ordem de liberação."""
        with self._lock:
            entries = sorted(self._heap, key=lambda item: (item[0], item[1]))
        return [job.to_dict() for _, _, job in entries]

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)
