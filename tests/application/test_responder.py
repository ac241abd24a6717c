"""Testes para application/responder.py (responder padrão)."""

from __future__ import annotations

from unittest.mock import MagicMock

from wa_dispatch.adapters.whatsapp.normalizer import IncomingMessage
from wa_dispatch.application.engine import OutboundEngine
from wa_dispatch.application.responder import DocumentResponder
from wa_dispatch.domain.enums import MessageKind
from wa_dispatch.domain.models import EnqueueResult, MessagePayload


def test_enqueues_configured_document_to_sender() -> None:
    engine = MagicMock(spec=OutboundEngine)
    engine.enqueue.return_value = EnqueueResult(fingerprint="fp", job_id="job-1")
    responder = DocumentResponder(engine, media_id="media-1", filename="catalogo.pdf")

    result = responder.handle(IncomingMessage(message_id="m1", from_number="5511999990000"))

    assert result is not None and result.job_id == "job-1"
    engine.enqueue.assert_called_once_with(
        "5511999990000",
        MessageKind.DOCUMENT,
        MessagePayload.document("media-1", "catalogo.pdf"),
    )


def test_missing_media_id_does_nothing() -> None:
    engine = MagicMock(spec=OutboundEngine)
    responder = DocumentResponder(engine, media_id=None, filename="catalogo.pdf")
    assert responder.handle(IncomingMessage(message_id="m1", from_number="5511")) is None
    engine.enqueue.assert_not_called()


def test_missing_sender_does_nothing() -> None:
    engine = MagicMock(spec=OutboundEngine)
    responder = DocumentResponder(engine, media_id="media-1", filename="catalogo.pdf")
    assert responder.handle(IncomingMessage(message_id="m1", from_number=None)) is None
    engine.enqueue.assert_not_called()
