"""Interfaces e utilidades base para builders de payload."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from wa_dispatch.domain.enums import WireEncoding
from wa_dispatch.domain.models import MessagePayload


class PayloadValidationError(ValueError):
    """Payload incompatível com o tipo de mensagem."""


@dataclass(slots=True, frozen=True)
class WireRequest:
    """Uma codificação candidata para a mesma mensagem."""

    encoding: WireEncoding
    fields: dict[str, Any]

    def httpx_kwargs(self) -> dict[str, Any]:
        """Argumentos para httpx conforme a codificação.

        Multipart usa `files` com filename None: cada campo vira uma parte
        form-data simples (sem upload de arquivo).
        """
        if self.encoding == WireEncoding.MULTIPART:
            return {"files": {name: (None, str(value)) for name, value in self.fields.items()}}
        return {"json": self.fields}


class PayloadBuilder(Protocol):
    """Protocolo para builders de payload por tipo de mensagem."""

    def build(self, recipient: str, payload: MessagePayload) -> list[WireRequest]:
        """Constrói as codificações a tentar, em ordem.

        Args:
            recipient: Destinatário já normalizado
            payload: Conteúdo da mensagem

        Returns:
            Lista ordenada (primária primeiro, fallbacks depois)
        """
        ...


def build_base_payload(recipient: str) -> dict[str, Any]:
    """Constrói payload base comum a todas as mensagens.

    Args:
        recipient: Destinatário

    Returns:
        Payload com campos obrigatórios
    """
    return {"to": recipient}
