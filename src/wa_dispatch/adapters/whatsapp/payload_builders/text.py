"""Builder para mensagens de texto."""

from __future__ import annotations

from wa_dispatch.adapters.whatsapp.payload_builders.base import (
    PayloadValidationError,
    WireRequest,
    build_base_payload,
)
from wa_dispatch.domain.enums import WireEncoding
from wa_dispatch.domain.models import MessagePayload


class TextPayloadBuilder:
    """Builder para mensagens de texto simples (codificação única)."""

    def build(self, recipient: str, payload: MessagePayload) -> list[WireRequest]:
        """Constrói payload `{to, body}`."""
        if not payload.body:
            raise PayloadValidationError("mensagem de texto requer body")
        fields = build_base_payload(recipient)
        fields["body"] = payload.body
        return [WireRequest(WireEncoding.JSON, fields)]
