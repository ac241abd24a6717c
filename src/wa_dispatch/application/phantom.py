"""Detecção de phantom delivery (eco inbound de um envio nosso).

O gateway pode entregar uma mensagem mesmo após reportar erro, e às vezes
devolve nossa própria mensagem como evento inbound. Se o conteúdo bate com
uma tentativa registrada no ledger dentro da janela, o evento é eco e não
deve disparar lógica de negócio.
"""

from __future__ import annotations

import logging

from wa_dispatch.domain.enums import MessageKind
from wa_dispatch.domain.models import MessagePayload
from wa_dispatch.infra.ledger import OutboundLedger
from wa_dispatch.observability.logging import get_logger, mask_recipient

logger: logging.Logger = get_logger(__name__)


class PhantomDeliveryDetector:
    """Consulta o ledger para decidir se um inbound é eco de um outbound."""

    def __init__(self, ledger: OutboundLedger) -> None:
        self._ledger = ledger

    def is_phantom_echo(
        self,
        recipient: str,
        text: str | None = None,
        *,
        media: str | None = None,
        caption: str | None = None,
    ) -> bool:
        """True se (recipient, conteúdo) corresponde a envio nosso recente.

        Args:
            recipient: Contraparte da conversa (número/JID)
            text: Corpo de texto recebido
            media: Referência de mídia recebida (documentos)
            caption: Legenda da mídia
        """
        candidates: list[tuple[MessageKind, MessagePayload]] = []
        if text and text.strip():
            candidates.append((MessageKind.TEXT, MessagePayload.text(text)))
        if media:
            candidates.append(
                (MessageKind.DOCUMENT, MessagePayload(body=caption, media=media))
            )

        for kind, payload in candidates:
            correlation_id = self._ledger.was_sent_by_us(recipient, kind, payload)
            if correlation_id is not None:
                logger.info(
                    "phantom_echo_detected",
                    extra={
                        "recipient": mask_recipient(recipient),
                        "kind": str(kind),
                        "matched_correlation_id": correlation_id,
                    },
                )
                return True
        return False
