"""Builders de payload para o gateway WhatsApp.

Este pacote contém builders especializados por tipo de mensagem; cada
builder devolve as codificações a tentar, em ordem.
"""

from wa_dispatch.adapters.whatsapp.payload_builders.base import (
    PayloadBuilder,
    PayloadValidationError,
    WireRequest,
    build_base_payload,
)
from wa_dispatch.adapters.whatsapp.payload_builders.factory import (
    build_wire_requests,
    get_payload_builder,
)

__all__ = [
    "PayloadBuilder",
    "PayloadValidationError",
    "WireRequest",
    "build_base_payload",
    "build_wire_requests",
    "get_payload_builder",
]
