"""Fachada do motor de envio outbound.

Ponto único de entrada da aplicação:
- enqueue(): fire-and-forget, idempotente por fingerprint
- is_phantom_echo(): consulta ao ledger para eventos inbound
- start()/stop(): ciclo de vida dos workers
- snapshot(): introspecção das filas e do rate limiter

Todos os componentes são instâncias próprias, injetadas aqui; nada de
estado global de módulo.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any

from wa_dispatch.adapters.whatsapp.payload_builders import build_wire_requests
from wa_dispatch.adapters.whatsapp.transport import GatewayTransport
from wa_dispatch.application.dispatch_queue import DelayedDispatchQueue
from wa_dispatch.application.phantom import PhantomDeliveryDetector
from wa_dispatch.application.retry_queue import RetryJobQueue, next_attempt_time
from wa_dispatch.config.settings import Settings
from wa_dispatch.domain.enums import JobState, MessageKind
from wa_dispatch.domain.fingerprint import fingerprint
from wa_dispatch.domain.models import DispatchJob, EnqueueResult, MessagePayload
from wa_dispatch.infra.http import HttpClient, create_http_client
from wa_dispatch.infra.idempotency import IdempotencyCache
from wa_dispatch.infra.ledger import OutboundLedger
from wa_dispatch.infra.rate_limiter import FixedWindowRateLimiter
from wa_dispatch.infra.ttl_cache import Clock
from wa_dispatch.observability.logging import get_logger, mask_recipient

logger: logging.Logger = get_logger(__name__)


class EngineConfigError(RuntimeError):
    """Configuração inválida para montar o motor (fail-closed)."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class OutboundEngine:
    """Orquestra fingerprint, idempotência, filas e transporte."""

    def __init__(
        self,
        *,
        transport: GatewayTransport,
        rate_limiter: FixedWindowRateLimiter,
        idempotency: IdempotencyCache,
        ledger: OutboundLedger,
        max_attempts: int = 3,
        backoff_base_seconds: float = 2.0,
        retry_batch_size: int = 1,
        retry_poll_interval_seconds: float = 1.0,
        dispatch_poll_interval_seconds: float = 1.0,
        jitter_seconds: tuple[float, float] = (2.0, 6.0),
        fingerprint_bucket_seconds: int = 60,
        http_client: HttpClient | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._transport = transport
        self._rate_limiter = rate_limiter
        self._idempotency = idempotency
        self._ledger = ledger
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base_seconds
        self._jitter = jitter_seconds
        self._bucket_seconds = fingerprint_bucket_seconds
        self._http_client = http_client
        self._clock = clock or time.time
        self._rng = rng or random.Random()

        self.phantom = PhantomDeliveryDetector(ledger)
        self.retry_queue = RetryJobQueue(
            transport,
            rate_limiter,
            idempotency,
            backoff_base_seconds=backoff_base_seconds,
            batch_size=retry_batch_size,
            poll_interval_seconds=retry_poll_interval_seconds,
            clock=self._clock,
        )
        self.dispatch_queue = DelayedDispatchQueue(
            rate_limiter,
            self._first_attempt,
            poll_interval_seconds=dispatch_poll_interval_seconds,
            clock=self._clock,
        )

    @property
    def ledger(self) -> OutboundLedger:
        return self._ledger

    @property
    def idempotency(self) -> IdempotencyCache:
        return self._idempotency

    @property
    def rate_limiter(self) -> FixedWindowRateLimiter:
        return self._rate_limiter

    def enqueue(
        self,
        recipient: str,
        kind: MessageKind | str,
        payload: MessagePayload,
        *,
        urgent: bool = False,
    ) -> EnqueueResult:
        """Aceita uma mensagem para envio; nunca espera a entrega.

        Duplicata (mesmo fingerprint aceito ou em voo) é no-op bem-sucedido
        e referencia o mesmo fingerprint.

        Raises:
            PayloadValidationError: tipo não suportado ou payload incompleto
        """
        msg_kind = MessageKind(kind)
        build_wire_requests(recipient, msg_kind, payload)

        now = self._clock()
        fp = fingerprint(
            recipient, msg_kind, payload, bucket_seconds=self._bucket_seconds, now=now
        )
        job = DispatchJob(
            recipient=recipient,
            kind=msg_kind,
            payload=payload,
            fingerprint=fp,
            max_attempts=self._max_attempts,
            next_attempt_at=now,
            urgent=urgent,
            created_at=now,
        )

        dedupe = self._idempotency.claim(fp, job.id)
        if dedupe.is_duplicate:
            logger.info(
                "enqueue_duplicate_ignored",
                extra={
                    "fingerprint": fp,
                    "recipient": mask_recipient(recipient),
                    "original_job_id": dedupe.original_job_id,
                    "status": dedupe.status,
                },
            )
            return EnqueueResult(
                fingerprint=fp,
                duplicate=True,
                original_job_id=dedupe.original_job_id,
            )

        not_before = now if urgent else now + self._rng.uniform(*self._jitter)
        self.dispatch_queue.schedule(job, not_before)
        if urgent:
            self.dispatch_queue.wake()

        logger.info(
            "enqueue_accepted",
            extra={
                "job_id": job.id,
                "fingerprint": fp,
                "recipient": mask_recipient(recipient),
                "kind": str(msg_kind),
                "urgent": urgent,
            },
        )
        return EnqueueResult(fingerprint=fp, job_id=job.id)

    async def _first_attempt(self, job: DispatchJob) -> None:
        """Primeira tentativa (liberada pela fila atrasada com orçamento)."""
        if self._idempotency.is_sent(job.fingerprint):
            job.state = JobState.SKIPPED
            logger.info(
                "dispatch_job_skipped_duplicate",
                extra={"job_id": job.id, "fingerprint": job.fingerprint},
            )
            return

        if not self._idempotency.begin_flight(job.fingerprint, job.id):
            job.state = JobState.SKIPPED
            return

        job.first_attempt_at = self._clock()
        try:
            result = await self._transport.send(
                job.recipient,
                job.kind,
                job.payload,
                job_id=job.id,
                fingerprint=job.fingerprint,
            )
        except Exception:
            # Job perdido: libera o claim para não bloquear o fingerprint
            self._idempotency.release(job.fingerprint)
            raise
        finally:
            self._idempotency.end_flight(job.fingerprint, job.id)
        job.last_correlation_id = result.correlation_id

        if result.succeeded:
            job.attempts = 1
            job.state = JobState.DONE
            return

        job.last_error = result.error
        if result.is_fatal:
            job.state = JobState.DISCARDED
            self._idempotency.release(job.fingerprint)
            logger.error(
                "dispatch_job_discarded",
                extra={
                    "job_id": job.id,
                    "fingerprint": job.fingerprint,
                    "status_code": result.status_code,
                    "correlation_id": result.correlation_id,
                },
            )
            return

        job.attempts = 1
        if job.attempts >= job.max_attempts:
            job.state = JobState.ABANDONED
            self._idempotency.release(job.fingerprint)
            logger.error(
                "dispatch_job_abandoned",
                extra={
                    "job_id": job.id,
                    "fingerprint": job.fingerprint,
                    "attempts": job.attempts,
                    "correlation_id": result.correlation_id,
                },
            )
            return

        job.next_attempt_at = next_attempt_time(job, self._clock(), self._backoff_base)
        self.retry_queue.enqueue(job)

    def is_phantom_echo(self, recipient: str, text: str) -> bool:
        """True se o inbound é eco de um envio nosso dentro da janela."""
        return self.phantom.is_phantom_echo(recipient, text)

    async def start(self) -> None:
        await self.dispatch_queue.start()
        await self.retry_queue.start()
        logger.info(
            "outbound_engine_started",
            extra={
                "rate_limit_budget": self._rate_limiter.budget,
                "rate_limit_window_seconds": self._rate_limiter.window_seconds,
                "ledger_ttl_seconds": self._ledger.ttl_seconds,
            },
        )

    async def stop(self) -> None:
        await self.dispatch_queue.stop()
        await self.retry_queue.stop()
        if self._http_client is not None:
            await self._http_client.close()
        logger.info("outbound_engine_stopped")

    def snapshot(self) -> dict[str, Any]:
        """Estado das filas e do rate limiter (introspecção)."""
        return {
            "dispatch": self.dispatch_queue.snapshot(),
            "retry": self.retry_queue.snapshot(),
            "rate_limit": self._rate_limiter.snapshot(),
        }


def create_engine(
    settings: Settings,
    *,
    http_client: HttpClient | None = None,
    clock: Clock | None = None,
) -> OutboundEngine:
    """Monta o motor a partir do Settings.

    Raises:
        EngineConfigError: configuração obrigatória ausente ou inconsistente
    """
    errors = settings.validate_engine_config()
    if errors:
        logger.error("engine_config_invalid", extra={"errors": errors})
        raise EngineConfigError(errors)
    budget = settings.rate_limit_budget
    ledger_ttl = settings.ledger_ttl_seconds
    if budget is None or ledger_ttl is None:
        raise EngineConfigError(["rate_limit_budget e ledger_ttl_seconds são obrigatórios"])

    client = http_client or create_http_client(settings)
    rate_limiter = FixedWindowRateLimiter(
        budget,
        settings.rate_limit_window_seconds,
        clock=clock,
    )
    idempotency = IdempotencyCache(
        ttl_seconds=settings.idempotency_ttl_seconds,
        max_entries=settings.idempotency_max_entries,
        clock=clock,
    )
    ledger = OutboundLedger(
        ttl_seconds=ledger_ttl,
        max_entries=settings.ledger_max_entries,
        clock=clock,
    )
    transport = GatewayTransport.from_settings(settings, client, idempotency, ledger)

    return OutboundEngine(
        transport=transport,
        rate_limiter=rate_limiter,
        idempotency=idempotency,
        ledger=ledger,
        max_attempts=settings.retry_max_attempts,
        backoff_base_seconds=settings.retry_backoff_base_seconds,
        retry_batch_size=settings.retry_batch_size,
        retry_poll_interval_seconds=settings.retry_poll_interval_seconds,
        dispatch_poll_interval_seconds=settings.dispatch_poll_interval_seconds,
        jitter_seconds=(
            settings.dispatch_jitter_min_seconds,
            settings.dispatch_jitter_max_seconds,
        ),
        fingerprint_bucket_seconds=settings.fingerprint_bucket_seconds,
        http_client=client if http_client is None else None,
        clock=clock,
    )
