"""Ledger outbound: rastro de toda tentativa de envio (sucesso ou falha).

Chave = destinatário normalizado + hash de conteúdo (sem bucket de tempo).
Usado apenas para correlação com o tráfego inbound (phantom delivery);
nunca decide se uma mensagem deve ser enviada.
"""

from __future__ import annotations

import logging
import time

from wa_dispatch.domain.enums import MessageKind
from wa_dispatch.domain.fingerprint import content_digest, normalize_recipient
from wa_dispatch.domain.models import LedgerEntry, MessagePayload
from wa_dispatch.infra.ttl_cache import BoundedTTLCache, Clock
from wa_dispatch.observability.logging import get_logger, mask_recipient

logger: logging.Logger = get_logger(__name__)

# Tentativas guardadas por chave (as mais recentes).
MAX_ENTRIES_PER_KEY = 16


def ledger_key(recipient: str, kind: MessageKind | str, payload: MessagePayload) -> str:
    """Chave do ledger: destinatário + digest de conteúdo."""
    return f"{normalize_recipient(recipient)}:{content_digest(kind, payload)}"


class OutboundLedger:
    """Ledger append-only com retenção limitada (janela de phantom delivery).

    Cada tentativa vira um LedgerEntry próprio; entradas nunca são editadas.
    """

    def __init__(
        self,
        ttl_seconds: int,
        max_entries: int = 10000,
        clock: Clock | None = None,
    ) -> None:
        self._clock = clock or time.time
        self._ttl = ttl_seconds
        self._entries: BoundedTTLCache[str, tuple[LedgerEntry, ...]] = BoundedTTLCache(
            max_entries=max_entries,
            ttl_seconds=ttl_seconds,
            clock=self._clock,
        )

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def record_attempt(
        self,
        recipient: str,
        kind: MessageKind | str,
        payload: MessagePayload,
        correlation_id: str,
        succeeded: bool,
        fingerprint: str = "",
    ) -> LedgerEntry:
        """Registra uma tentativa (sempre como entrada nova)."""
        entry = LedgerEntry(
            fingerprint=fingerprint,
            timestamp=self._clock(),
            correlation_id=correlation_id,
            succeeded=succeeded,
        )

        def _append(existing: tuple[LedgerEntry, ...] | None) -> tuple[LedgerEntry, ...]:
            return ((existing or ()) + (entry,))[-MAX_ENTRIES_PER_KEY:]

        self._entries.update(ledger_key(recipient, kind, payload), _append)
        logger.debug(
            "ledger_attempt_recorded",
            extra={
                "recipient": mask_recipient(recipient),
                "correlation_id": correlation_id,
                "fingerprint": fingerprint,
                "succeeded": succeeded,
            },
        )
        return entry

    def entries_for(
        self,
        recipient: str,
        kind: MessageKind | str,
        payload: MessagePayload,
    ) -> list[LedgerEntry]:
        """Entradas ainda dentro da janela, mais antigas primeiro."""
        entries = self._entries.get(ledger_key(recipient, kind, payload)) or ()
        cutoff = self._clock() - self._ttl
        return [e for e in entries if e.timestamp > cutoff]

    def was_sent_by_us(
        self,
        recipient: str,
        kind: MessageKind | str,
        payload: MessagePayload,
    ) -> str | None:
        """Retorna o correlation_id mais recente para o conteúdo, ou None.

        Tentativas falhas também contam: o gateway pode entregar depois de
        reportar erro.
        """
        entries = self.entries_for(recipient, kind, payload)
        if not entries:
            return None
        return entries[-1].correlation_id

    def __len__(self) -> int:
        return len(self._entries)
