"""Domínio do motor de envio: tipos, fingerprint e DTOs (sem infraestrutura)."""

from wa_dispatch.domain.enums import JobState, MessageKind, SendOutcome, WireEncoding
from wa_dispatch.domain.fingerprint import (
    content_digest,
    fingerprint,
    normalize_recipient,
)
from wa_dispatch.domain.models import (
    DedupeResult,
    DispatchJob,
    EnqueueResult,
    LedgerEntry,
    MessagePayload,
    SendResult,
)

__all__ = [
    "DedupeResult",
    "DispatchJob",
    "EnqueueResult",
    "JobState",
    "LedgerEntry",
    "MessageKind",
    "MessagePayload",
    "SendOutcome",
    "SendResult",
    "WireEncoding",
    "content_digest",
    "fingerprint",
    "normalize_recipient",
]
