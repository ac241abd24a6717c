"""Extração de mensagem inbound dos formatos de webhook suportados.

Formatos aceitos (primeira mensagem de cada payload):
- Whapi: `{"messages": [...]}`
- Variante de eventos: `{"data": [...]}`
- Meta Cloud API: `{"entry": [{"changes": [{"value": {"messages": [...]}}]}]}`
- Plano: a própria mensagem no corpo
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from wa_dispatch.observability.logging import get_logger

logger = get_logger(__name__)

_ID_KEYS = ("id", "msg_id", "message_id")
_FROM_KEYS = ("from", "sender", "chat_id", "phone")


@dataclass(slots=True, frozen=True)
class IncomingMessage:
    """Mensagem inbound normalizada (campos mínimos para o roteamento)."""

    message_id: str | None
    from_number: str | None
    text: str | None = None
    media_id: str | None = None
    caption: str | None = None
    from_me: bool = False
    raw: dict[str, Any] | None = None


def _first_of(block: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = block.get(key)
        if value:
            return str(value)
    return None


def _first_item(value: Any) -> dict[str, Any] | None:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return None


def _extract_text(msg: dict[str, Any]) -> str | None:
    text_block = msg.get("text")
    if isinstance(text_block, dict):
        return text_block.get("body")
    if isinstance(text_block, str):
        return text_block
    body = msg.get("body")
    return body if isinstance(body, str) else None


def _extract_media(msg: dict[str, Any]) -> tuple[str | None, str | None]:
    for media_type in ("document", "image", "video", "audio"):
        block = msg.get(media_type)
        if isinstance(block, dict):
            media_id = block.get("id") or block.get("media_id")
            return (str(media_id) if media_id else None), block.get("caption")
    return None, None


def _locate_message(body: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Retorna (mensagem, contexto) para o formato detectado."""
    message = _first_item(body.get("messages"))
    if message is not None:
        return message, body

    data_item = _first_item(body.get("data"))
    if data_item is not None:
        nested = data_item.get("message")
        context = nested if isinstance(nested, dict) else {}
        return data_item, context

    entry = _first_item(body.get("entry"))
    if entry is not None:
        change = _first_item(entry.get("changes")) or {}
        value = change.get("value") if isinstance(change.get("value"), dict) else entry
        message = _first_item(value.get("messages")) or value.get("message")
        if not isinstance(message, dict):
            message = value
        return message, value

    return body, body


def extract_incoming(body: Any) -> IncomingMessage:
    """Extrai a primeira mensagem do payload do webhook.

    Nunca levanta: payload irreconhecível vira IncomingMessage vazio.
    """
    if not isinstance(body, dict) or not body:
        return IncomingMessage(message_id=None, from_number=None)

    msg, context = _locate_message(body)
    media_id, caption = _extract_media(msg)
    from_number = _first_of(msg, _FROM_KEYS) or _first_of(context, _FROM_KEYS)

    incoming = IncomingMessage(
        message_id=_first_of(msg, _ID_KEYS),
        from_number=from_number,
        text=_extract_text(msg),
        media_id=media_id,
        caption=caption,
        from_me=bool(msg.get("from_me", False)),
        raw=msg,
    )
    logger.debug(
        "incoming_extracted",
        extra={
            "message_id": incoming.message_id,
            "from_me": incoming.from_me,
            "has_text": incoming.text is not None,
            "has_media": incoming.media_id is not None,
        },
    )
    return incoming
