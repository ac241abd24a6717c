"""Enums de domínio para tipos de mensagem, estados de job e outcomes de envio."""

from __future__ import annotations

from enum import StrEnum


class MessageKind(StrEnum):
    """Tipos de conteúdo enviados pelo motor."""

    TEXT = "text"
    DOCUMENT = "document"
    INTERACTIVE = "interactive"


class JobState(StrEnum):
    """Ciclo de vida de um DispatchJob.

    PENDING → IN_FLIGHT → {DONE | RESCHEDULED (→ PENDING) | ABANDONED}
    DISCARDED (erro fatal) e SKIPPED (duplicata) também são terminais.
    """

    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    RESCHEDULED = "RESCHEDULED"
    DONE = "DONE"
    ABANDONED = "ABANDONED"
    DISCARDED = "DISCARDED"
    SKIPPED = "SKIPPED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {JobState.DONE, JobState.ABANDONED, JobState.DISCARDED, JobState.SKIPPED}
)


class SendOutcome(StrEnum):
    """Classificação do resultado de uma tentativa no gateway."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class WireEncoding(StrEnum):
    """Codificação usada na requisição ao gateway."""

    JSON = "json"
    MULTIPART = "multipart"
