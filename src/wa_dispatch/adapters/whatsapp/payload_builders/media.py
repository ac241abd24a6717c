"""Builder para mensagens de documento.

O gateway não aceita a mesma codificação de forma consistente; por isso o
documento sai primeiro em JSON compacto e, em falha retentável, em
multipart/form-data com os mesmos nomes de campo.
"""

from __future__ import annotations

from typing import Any

from wa_dispatch.adapters.whatsapp.payload_builders.base import (
    PayloadValidationError,
    WireRequest,
    build_base_payload,
)
from wa_dispatch.domain.enums import WireEncoding
from wa_dispatch.domain.models import MessagePayload

DOCUMENT_TYPE = "document"


def _build_document_fields(recipient: str, payload: MessagePayload) -> dict[str, Any]:
    """Campos `{to, media, filename, type}` (+ caption opcional)."""
    fields = build_base_payload(recipient)
    fields["media"] = str(payload.media)
    fields["filename"] = payload.filename
    fields["type"] = DOCUMENT_TYPE
    if payload.body:
        fields["caption"] = payload.body
    return fields


class DocumentPayloadBuilder:
    """Builder para mensagens de documento (JSON → multipart)."""

    def build(self, recipient: str, payload: MessagePayload) -> list[WireRequest]:
        if not payload.media:
            raise PayloadValidationError("documento requer media (referência de mídia)")
        if not payload.filename:
            raise PayloadValidationError("documento requer filename")
        fields = _build_document_fields(recipient, payload)
        return [
            WireRequest(WireEncoding.JSON, fields),
            WireRequest(WireEncoding.MULTIPART, dict(fields)),
        ]
