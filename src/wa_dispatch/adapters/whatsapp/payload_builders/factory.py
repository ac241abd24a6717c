"""Factory para obter o builder correto por tipo de mensagem."""

from __future__ import annotations

from wa_dispatch.adapters.whatsapp.payload_builders.base import (
    PayloadBuilder,
    PayloadValidationError,
    WireRequest,
)
from wa_dispatch.adapters.whatsapp.payload_builders.interactive import (
    InteractivePayloadBuilder,
)
from wa_dispatch.adapters.whatsapp.payload_builders.media import (
    DocumentPayloadBuilder,
)
from wa_dispatch.adapters.whatsapp.payload_builders.text import (
    TextPayloadBuilder,
)
from wa_dispatch.domain.enums import MessageKind
from wa_dispatch.domain.models import MessagePayload

# Mapeamento de tipo de mensagem para builder
_BUILDERS: dict[MessageKind, PayloadBuilder] = {
    MessageKind.TEXT: TextPayloadBuilder(),
    MessageKind.DOCUMENT: DocumentPayloadBuilder(),
    MessageKind.INTERACTIVE: InteractivePayloadBuilder(),
}


def get_payload_builder(kind: MessageKind) -> PayloadBuilder | None:
    """Retorna o builder para o tipo de mensagem (ou None se não suportado)."""
    return _BUILDERS.get(kind)


def build_wire_requests(
    recipient: str,
    kind: MessageKind | str,
    payload: MessagePayload,
) -> list[WireRequest]:
    """Constrói as codificações a tentar para a mensagem.

    Raises:
        PayloadValidationError: Tipo não suportado ou payload incompleto
    """
    try:
        msg_kind = MessageKind(kind)
    except ValueError as exc:
        raise PayloadValidationError(f"Tipo de mensagem não suportado: {kind}") from exc

    builder = get_payload_builder(msg_kind)
    if builder is None:
        raise PayloadValidationError(f"Tipo de mensagem não suportado: {msg_kind}")
    return builder.build(recipient, payload)
