"""Modelos de domínio do motor de envio outbound.

Responsabilidades:
- Representar conteúdo (MessagePayload) de forma independente do wire format
- Representar unidades de trabalho (DispatchJob) e seus resultados
- Definir DTOs trocados entre fila, transporte e ledger
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from wa_dispatch.domain.enums import JobState, MessageKind, SendOutcome, WireEncoding
from wa_dispatch.observability.logging import mask_recipient


@dataclass(slots=True, frozen=True)
class MessagePayload:
    """Conteúdo de uma mensagem outbound.

    - text: `body`
    - document: `media` (referência/ID de mídia), `filename`, `body` como legenda
    - interactive: `interactive` (corpo já no formato do gateway)
    """

    body: str | None = None
    media: str | None = None
    filename: str | None = None
    interactive: dict[str, Any] | None = None

    @classmethod
    def text(cls, body: str) -> MessagePayload:
        return cls(body=body)

    @classmethod
    def document(
        cls,
        media: str,
        filename: str,
        caption: str | None = None,
    ) -> MessagePayload:
        return cls(body=caption, media=media, filename=filename)

    @classmethod
    def interactive_message(cls, spec: dict[str, Any]) -> MessagePayload:
        return cls(interactive=dict(spec))

    def content(self, kind: MessageKind) -> dict[str, Any]:
        """Retorna o conteúdo relevante para hashing (sem destinatário).

        Texto e legenda sem espaços nas pontas: o eco inbound pode chegar
        aparado pelo gateway.
        """
        if kind == MessageKind.TEXT:
            return {"body": (self.body or "").strip()}
        if kind == MessageKind.DOCUMENT:
            return {"media": self.media or "", "caption": (self.body or "").strip()}
        return {"interactive": self.interactive or {}}


def new_job_id() -> str:
    """Gera um job_id único."""

    return f"job-{uuid.uuid4().hex[:12]}"


@dataclass(slots=True)
class DispatchJob:
    """Um envio pendente ou em andamento.

    `locked` é o invariante de exclusão mútua: só um worker processa o job
    por vez. Demais campos são mutados apenas sob o lock do container.
    """

    recipient: str
    kind: MessageKind
    payload: MessagePayload
    fingerprint: str
    max_attempts: int
    next_attempt_at: float
    id: str = field(default_factory=new_job_id)
    attempts: int = 0
    locked: bool = False
    state: JobState = JobState.PENDING
    urgent: bool = False
    created_at: float = 0.0
    first_attempt_at: float | None = None
    last_error: str | None = None
    last_correlation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Visão serializável para introspecção (sem número completo)."""
        return {
            "id": self.id,
            "recipient": mask_recipient(self.recipient),
            "kind": str(self.kind),
            "fingerprint": self.fingerprint,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "next_attempt_at": _iso(self.next_attempt_at),
            "locked": self.locked,
            "state": str(self.state),
            "urgent": self.urgent,
            "last_error": self.last_error,
            "last_correlation_id": self.last_correlation_id,
        }


def _iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=UTC).isoformat().replace("+00:00", "Z")


@dataclass(slots=True, frozen=True)
class SendResult:
    """Resultado de uma invocação do Transport Adapter."""

    outcome: SendOutcome
    correlation_id: str
    status_code: int | None = None
    message_id: str | None = None
    encoding: WireEncoding | None = None
    error: str | None = None
    elapsed_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome == SendOutcome.SUCCESS

    @property
    def is_fatal(self) -> bool:
        return self.outcome == SendOutcome.FATAL


@dataclass(slots=True, frozen=True)
class EnqueueResult:
    """Retorno do enqueue (fire-and-forget).

    Em duplicata, `job_id` é None e `fingerprint` referencia o envio original.
    """

    fingerprint: str
    job_id: str | None = None
    duplicate: bool = False
    original_job_id: str | None = None


@dataclass(slots=True, frozen=True)
class DedupeResult:
    """Resultado de verificação de idempotência."""

    is_duplicate: bool
    original_job_id: str | None = None
    status: str | None = None  # pending | sent


@dataclass(slots=True, frozen=True)
class LedgerEntry:
    """Registro imutável de uma tentativa de envio."""

    fingerprint: str
    timestamp: float
    correlation_id: str
    succeeded: bool
