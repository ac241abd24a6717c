"""Responder padrão: toda mensagem inbound recebe o documento configurado."""

from __future__ import annotations

import logging
from typing import Protocol

from wa_dispatch.adapters.whatsapp.normalizer import IncomingMessage
from wa_dispatch.application.engine import OutboundEngine
from wa_dispatch.domain.enums import MessageKind
from wa_dispatch.domain.models import EnqueueResult, MessagePayload
from wa_dispatch.observability.logging import get_logger, mask_recipient

logger: logging.Logger = get_logger(__name__)


class InboundResponder(Protocol):
    """Contrato da lógica de negócio acionada por mensagem inbound."""

    def handle(self, incoming: IncomingMessage) -> EnqueueResult | None:
        ...


class DocumentResponder:
    """Enfileira o documento pré-enviado (MEDIA_ID) para o remetente."""

    def __init__(
        self,
        engine: OutboundEngine,
        media_id: str | None,
        filename: str,
        caption: str | None = None,
    ) -> None:
        self._engine = engine
        self._media_id = media_id
        self._filename = filename
        self._caption = caption

    def handle(self, incoming: IncomingMessage) -> EnqueueResult | None:
        if not incoming.from_number:
            logger.warning(
                "responder_missing_sender",
                extra={"message_id": incoming.message_id},
            )
            return None
        if not self._media_id:
            logger.error(
                "responder_media_id_missing",
                extra={"message_id": incoming.message_id},
            )
            return None

        result = self._engine.enqueue(
            incoming.from_number,
            MessageKind.DOCUMENT,
            MessagePayload.document(self._media_id, self._filename, self._caption),
        )
        logger.info(
            "responder_document_enqueued",
            extra={
                "message_id": incoming.message_id,
                "recipient": mask_recipient(incoming.from_number),
                "job_id": result.job_id,
                "duplicate": result.duplicate,
            },
        )
        return result
