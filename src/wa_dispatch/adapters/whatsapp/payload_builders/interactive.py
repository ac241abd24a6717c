"""Builder para mensagens interativas (botões, listas)."""

from __future__ import annotations

from wa_dispatch.adapters.whatsapp.payload_builders.base import (
    PayloadValidationError,
    WireRequest,
    build_base_payload,
)
from wa_dispatch.domain.enums import WireEncoding
from wa_dispatch.domain.models import MessagePayload


class InteractivePayloadBuilder:
    """Builder para mensagens interativas.

    O corpo interativo já vem no formato do gateway (type, body, action...);
    o builder só acrescenta o destinatário.
    """

    def build(self, recipient: str, payload: MessagePayload) -> list[WireRequest]:
        spec = payload.interactive
        if not spec:
            raise PayloadValidationError("mensagem interativa requer corpo interativo")
        if "to" in spec:
            raise PayloadValidationError("corpo interativo não pode definir 'to'")
        fields = build_base_payload(recipient)
        fields.update(spec)
        return [WireRequest(WireEncoding.JSON, fields)]
