"""Fila de retry com backoff exponencial e exclusão mútua por job.

Fluxo do tick:
1. Seleciona até `batch_size` jobs vencidos e não travados; trava sob lock
2. Para cada job: re-check de idempotência → reserva em voo → rate limiter → envio
3. Sucesso: DONE e remove
4. Retentável: attempts += 1; esgotou → ABANDONED e remove; senão reagenda
5. Fatal: DISCARDED e remove

Recusa do rate limiter destrava o job sem contar tentativa e encerra o tick.
Nenhum lock é mantido durante chamada de rede.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from typing import TYPE_CHECKING, Any

from wa_dispatch.domain.enums import JobState
from wa_dispatch.domain.models import DispatchJob, SendResult
from wa_dispatch.infra.idempotency import IdempotencyCache
from wa_dispatch.infra.rate_limiter import FixedWindowRateLimiter
from wa_dispatch.infra.ttl_cache import Clock
from wa_dispatch.observability.logging import get_logger, mask_recipient
from wa_dispatch.observability.timing import timed

if TYPE_CHECKING:
    from wa_dispatch.adapters.whatsapp.transport import GatewayTransport

logger: logging.Logger = get_logger(__name__)

DEFAULT_BACKOFF_BASE_SECONDS = 2.0


def backoff_delay(attempts: int, base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS) -> float:
    """Atraso acumulado desde a primeira tentativa: base * 2^(attempts-1)."""
    return base_seconds * (2 ** max(0, attempts - 1))


def next_attempt_time(
    job: DispatchJob,
    now: float,
    base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS,
) -> float:
    """Próximo horário de tentativa, ancorado na primeira tentativa do job.

    Com base=2s e 3 tentativas: t0, t0+2s, t0+4s.
    """
    anchor = job.first_attempt_at if job.first_attempt_at is not None else now
    return max(now, anchor + backoff_delay(job.attempts, base_seconds))


class RetryJobQueue:
    """Container de jobs em retry com worker assíncrono único."""

    def __init__(
        self,
        transport: GatewayTransport,
        rate_limiter: FixedWindowRateLimiter,
        idempotency: IdempotencyCache,
        *,
        backoff_base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS,
        batch_size: int = 1,
        poll_interval_seconds: float = 1.0,
        clock: Clock | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size deve ser >= 1")
        self._transport = transport
        self._rate_limiter = rate_limiter
        self._idempotency = idempotency
        self._backoff_base = backoff_base_seconds
        self._batch_size = batch_size
        self._poll_interval = poll_interval_seconds
        self._clock = clock or time.time
        self._jobs: dict[str, DispatchJob] = {}
        self._lock = threading.Lock()
        self._task: asyncio.Task[None] | None = None
        self._stopping = False

    def enqueue(self, job: DispatchJob) -> None:
        """Adiciona job ao container (respeita `next_attempt_at` do job)."""
        with self._lock:
            job.locked = False
            job.state = JobState.PENDING
            self._jobs[job.id] = job
        logger.info(
            "retry_job_enqueued",
            extra={
                "job_id": job.id,
                "fingerprint": job.fingerprint,
                "recipient": mask_recipient(job.recipient),
                "attempts": job.attempts,
                "max_attempts": job.max_attempts,
                "next_attempt_at": job.next_attempt_at,
            },
        )

    def get(self, job_id: str) -> DispatchJob | None:
        with self._lock:
            return self._jobs.get(job_id)

    def _select_due(self) -> list[DispatchJob]:
        now = self._clock()
        with self._lock:
            due = sorted(
                (j for j in self._jobs.values() if not j.locked and j.next_attempt_at <= now),
                key=lambda j: j.next_attempt_at,
            )[: self._batch_size]
            for job in due:
                job.locked = True
                job.state = JobState.IN_FLIGHT
        return due

    def _unlock(self, job: DispatchJob, state: JobState = JobState.PENDING) -> None:
        with self._lock:
            job.locked = False
            job.state = state

    def _finish(self, job: DispatchJob, state: JobState) -> None:
        with self._lock:
            job.state = state
            job.locked = False
            self._jobs.pop(job.id, None)

    async def tick(self) -> int:
        """Processa um lote de jobs vencidos.

        Returns:
            Quantidade de jobs que chegaram a ser enviados
        """
        batch = self._select_due()
        if not batch:
            return 0

        sent = 0
        with timed("retry_tick", batch=len(batch)):
            for index, job in enumerate(batch):
                try:
                    proceed = await self._process(job)
                except Exception:
                    logger.exception(
                        "retry_job_error",
                        extra={"job_id": job.id, "fingerprint": job.fingerprint},
                    )
                    self._unlock(job)
                    continue
                if proceed is None:
                    # Orçamento esgotado: devolve o restante do lote
                    for pending in batch[index + 1 :]:
                        self._unlock(pending)
                    break
                if proceed:
                    sent += 1
        return sent

    async def _process(self, job: DispatchJob) -> bool | None:
        """Processa um job travado.

        Returns:
            None se o rate limiter recusou; True se houve envio; False se pulado
        """
        if self._idempotency.is_sent(job.fingerprint):
            self._finish(job, JobState.SKIPPED)
            logger.info(
                "retry_job_skipped_duplicate",
                extra={"job_id": job.id, "fingerprint": job.fingerprint},
            )
            return False

        if not self._idempotency.begin_flight(job.fingerprint, job.id):
            # Outro job envia o mesmo conteúdo agora; tenta no próximo tick
            self._unlock(job)
            return False

        if not self._rate_limiter.try_acquire():
            self._idempotency.end_flight(job.fingerprint, job.id)
            self._unlock(job)
            logger.debug(
                "retry_rate_limited",
                extra={
                    "job_id": job.id,
                    "reset_in_seconds": self._rate_limiter.seconds_until_reset(),
                },
            )
            return None

        now = self._clock()
        if job.first_attempt_at is None:
            job.first_attempt_at = now

        try:
            result = await self._transport.send(
                job.recipient,
                job.kind,
                job.payload,
                job_id=job.id,
                fingerprint=job.fingerprint,
            )
        finally:
            self._idempotency.end_flight(job.fingerprint, job.id)
        self._apply_result(job, result)
        return True

    def _apply_result(self, job: DispatchJob, result: SendResult) -> JobState:
        """Aplica o resultado de uma tentativa ao job do container."""
        job.last_correlation_id = result.correlation_id

        if result.succeeded:
            self._finish(job, JobState.DONE)
            logger.info(
                "retry_job_completed",
                extra={
                    "job_id": job.id,
                    "fingerprint": job.fingerprint,
                    "attempts": job.attempts + 1,
                    "correlation_id": result.correlation_id,
                },
            )
            return JobState.DONE

        job.last_error = result.error
        if result.is_fatal:
            self._finish(job, JobState.DISCARDED)
            self._idempotency.release(job.fingerprint)
            logger.error(
                "retry_job_discarded",
                extra={
                    "job_id": job.id,
                    "fingerprint": job.fingerprint,
                    "status_code": result.status_code,
                    "correlation_id": result.correlation_id,
                },
            )
            return JobState.DISCARDED

        job.attempts += 1
        if job.attempts >= job.max_attempts:
            self._finish(job, JobState.ABANDONED)
            self._idempotency.release(job.fingerprint)
            logger.error(
                "retry_job_abandoned",
                extra={
                    "job_id": job.id,
                    "fingerprint": job.fingerprint,
                    "recipient": mask_recipient(job.recipient),
                    "attempts": job.attempts,
                    "last_error": job.last_error,
                    "correlation_id": result.correlation_id,
                },
            )
            return JobState.ABANDONED

        job.next_attempt_at = next_attempt_time(job, self._clock(), self._backoff_base)
        self._unlock(job, JobState.RESCHEDULED)
        logger.warning(
            "retry_job_rescheduled",
            extra={
                "job_id": job.id,
                "fingerprint": job.fingerprint,
                "attempts": job.attempts,
                "next_attempt_at": job.next_attempt_at,
                "status_code": result.status_code,
                "correlation_id": result.correlation_id,
            },
        )
        return JobState.RESCHEDULED

    async def start(self) -> None:
        """Inicia o worker em background (idempotente)."""
        if self._task is not None and not self._task.done():
            return
        self._stopping = False
        self._task = asyncio.create_task(self._run(), name="retry-queue")
        logger.info(
            "retry_queue_started",
            extra={
                "poll_interval_seconds": self._poll_interval,
                "batch_size": self._batch_size,
            },
        )

    async def stop(self) -> None:
        """Para o worker; jobs restantes são perdidos (sem persistência)."""
        self._stopping = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("retry_queue_stopped", extra={"pending": len(self)})

    async def _run(self) -> None:
        while not self._stopping:
            try:
                await self.tick()
            except Exception:
                logger.exception("retry_tick_failed")
            await asyncio.sleep(self._poll_interval)

    def snapshot(self) -> list[dict[str, Any]]:
        """Jobs do container, mais próximos primeiro."""
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda j: j.next_attempt_at)
            return [job.to_dict() for job in jobs]

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
