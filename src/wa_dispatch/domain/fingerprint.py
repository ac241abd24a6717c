"""Fingerprint de mensagens outbound: chave de idempotência.

Responsabilidades:
- Normalizar o destinatário
- Hashear o conteúdo da mensagem (independente de tempo)
- Gerar fingerprint determinístico por janela de tempo (bucket)

Não é fronteira de segurança: só uma chave de deduplicação. Nunca inclui
secrets no material hasheado.
"""

from __future__ import annotations

import hashlib
import json
import re
import time

from wa_dispatch.domain.enums import MessageKind
from wa_dispatch.domain.models import MessagePayload

FINGERPRINT_LENGTH = 16
DEFAULT_BUCKET_SECONDS = 60

_JID_SUFFIXES = ("@s.whatsapp.net", "@c.us")
_PHONE_PATTERN = re.compile(r"^\+?[\d\s().-]+$")


def normalize_recipient(recipient: str) -> str:
    """Normaliza o destinatário para uma forma estável.

    Remove espaços, `+` inicial e sufixos de JID. Números de telefone ficam
    apenas com dígitos; outros endereços (ex.: grupos `...@g.us`) são
    preservados em minúsculas.
    """
    value = recipient.strip()
    lowered = value.lower()
    for suffix in _JID_SUFFIXES:
        if lowered.endswith(suffix):
            value = value[: -len(suffix)]
            break
    if _PHONE_PATTERN.match(value):
        return re.sub(r"\D", "", value)
    return value.lower()


def content_digest(kind: MessageKind | str, payload: MessagePayload) -> str:
    """Gera hash SHA256 do conteúdo da mensagem.

    Determinística: ignora ordem de chaves (ordena antes de serializar).
    """
    material = {"kind": str(kind), **payload.content(MessageKind(kind))}
    serialized = json.dumps(material, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def time_bucket(now: float, bucket_seconds: int = DEFAULT_BUCKET_SECONDS) -> int:
    """Retorna o identificador do bucket de tempo que contém `now`."""
    return int(now // max(1, bucket_seconds))


def fingerprint(
    recipient: str,
    kind: MessageKind | str,
    payload: MessagePayload,
    *,
    bucket_seconds: int = DEFAULT_BUCKET_SECONDS,
    now: float | None = None,
) -> str:
    """Gera fingerprint para (destinatário, tipo, conteúdo, bucket).

    Mesma entrada dentro do mesmo bucket produz o mesmo fingerprint; chamadas
    separadas por uma fronteira de bucket podem reenviar legitimamente.

    Returns:
        Hex SHA256 truncado em FINGERPRINT_LENGTH caracteres
    """
    ts = time.time() if now is None else now
    bucket = time_bucket(ts, bucket_seconds)
    combined = f"{normalize_recipient(recipient)}:{kind}:{content_digest(kind, payload)}:{bucket}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
