"""Cache de idempotência outbound (fingerprint → marcador com TTL curto).

Responsabilidades:
- Responder se um fingerprint já foi aceito pelo transporte ou está em voo
- Registrar aceitação pelo transporte (mark)
- Transformar enqueues duplicados em no-op (claim atômico)
- Garantir um único envio em voo por fingerprint (begin_flight/end_flight)

É a autoridade para "devo enviar?". O ledger é só informativo.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import NamedTuple

from wa_dispatch.domain.models import DedupeResult
from wa_dispatch.infra.ttl_cache import BoundedTTLCache, Clock
from wa_dispatch.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_SENT = "sent"


class IdempotencyRecord(NamedTuple):
    status: str  # pending | sent
    job_id: str | None


class IdempotencyCache:
    """Store em memória de fingerprints aceitos/em voo.

    Estrutura interna:
        {fingerprint: IdempotencyRecord(status, job_id)} com TTL por entrada

    Registros nunca são editados: `mark` grava um registro novo (sent) no
    lugar do claim pendente.

    Claims pendentes não expiram por tempo: vivem até `mark` ou `release`,
    mesmo que o job espere orçamento por muito mais que o TTL. O TTL vale
    só para marcadores `sent`.
    """

    DEFAULT_TTL_SECONDS = 30

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_entries: int = 10000,
        clock: Clock | None = None,
    ) -> None:
        self._store: BoundedTTLCache[str, IdempotencyRecord] = BoundedTTLCache(
            max_entries=max_entries,
            ttl_seconds=ttl_seconds,
            clock=clock,
        )
        self._in_flight: dict[str, str] = {}
        self._flight_lock = threading.Lock()

    def seen(self, fingerprint: str) -> bool:
        """True se há envio aceito ou em voo para o fingerprint."""
        return fingerprint in self._store

    def is_sent(self, fingerprint: str) -> bool:
        """True apenas se o transporte já aceitou o envio."""
        record = self._store.get(fingerprint)
        return bool(record and record.status == STATUS_SENT)

    def claim(self, fingerprint: str, job_id: str) -> DedupeResult:
        """Verifica e marca como pendente (set-if-not-exists atômico)."""
        inserted, record = self._store.add_if_absent(
            fingerprint, IdempotencyRecord(STATUS_PENDING, job_id), ttl_seconds=math.inf
        )
        if inserted:
            logger.debug("idempotency_claimed", extra={"fingerprint": fingerprint})
            return DedupeResult(is_duplicate=False)

        logger.debug(
            "idempotency_hit",
            extra={"fingerprint": fingerprint, "status": record.status},
        )
        return DedupeResult(
            is_duplicate=True,
            original_job_id=record.job_id,
            status=record.status,
        )

    def mark(self, fingerprint: str, job_id: str | None = None) -> None:
        """Marca como aceito pelo transporte (TTL reinicia)."""
        self._store.set(fingerprint, IdempotencyRecord(STATUS_SENT, job_id))

    def release(self, fingerprint: str) -> bool:
        """Remove um claim pendente (job abandonado ou descartado).

        Marcadores `sent` nunca são removidos antes do TTL.

        Returns:
            True se um claim pendente foi removido
        """
        return self._store.pop_if(
            fingerprint, lambda record: record.status == STATUS_PENDING
        )

    def begin_flight(self, fingerprint: str, job_id: str) -> bool:
        """Reserva o envio do fingerprint para um único job por vez.

        Returns:
            False se outro job já está enviando o mesmo fingerprint
        """
        with self._flight_lock:
            owner = self._in_flight.setdefault(fingerprint, job_id)
        if owner != job_id:
            logger.info(
                "idempotency_in_flight_elsewhere",
                extra={"fingerprint": fingerprint, "job_id": job_id, "owner_job_id": owner},
            )
            return False
        return True

    def end_flight(self, fingerprint: str, job_id: str) -> None:
        with self._flight_lock:
            if self._in_flight.get(fingerprint) == job_id:
                del self._in_flight[fingerprint]

    def in_flight(self, fingerprint: str) -> bool:
        with self._flight_lock:
            return fingerprint in self._in_flight

    def __len__(self) -> int:
        return len(self._store)
