"""Testes para domain/fingerprint.py."""

from __future__ import annotations

from tests.conftest import CLOCK_START
from wa_dispatch.domain.enums import MessageKind
from wa_dispatch.domain.fingerprint import (
    FINGERPRINT_LENGTH,
    content_digest,
    fingerprint,
    normalize_recipient,
    time_bucket,
)
from wa_dispatch.domain.models import MessagePayload


class TestNormalizeRecipient:
    def test_strips_plus_and_formatting(self) -> None:
        assert normalize_recipient(" +55 (11) 99999-0000 ") == "5511999990000"

    def test_strips_jid_suffix(self) -> None:
        assert normalize_recipient("5511999990000@s.whatsapp.net") == "5511999990000"
        assert normalize_recipient("5511999990000@c.us") == "5511999990000"

    def test_group_jid_preserved_lowercase(self) -> None:
        assert normalize_recipient("1203630-ABC@g.us") == "1203630-abc@g.us"


class TestContentDigest:
    def test_independent_of_interactive_key_order(self) -> None:
        a = MessagePayload.interactive_message({"type": "button", "body": {"text": "x"}})
        b = MessagePayload.interactive_message({"body": {"text": "x"}, "type": "button"})
        assert content_digest(MessageKind.INTERACTIVE, a) == content_digest(
            MessageKind.INTERACTIVE, b
        )

    def test_document_ignores_filename(self) -> None:
        a = MessagePayload.document("m1", "a.pdf")
        b = MessagePayload.document("m1", "b.pdf")
        assert content_digest(MessageKind.DOCUMENT, a) == content_digest(MessageKind.DOCUMENT, b)

    def test_kind_changes_digest(self) -> None:
        payload = MessagePayload(body="oi")
        assert content_digest(MessageKind.TEXT, payload) != content_digest(
            MessageKind.INTERACTIVE, payload
        )


class TestFingerprint:
    def test_deterministic_within_bucket(self) -> None:
        payload = MessagePayload.text("olá")
        fp1 = fingerprint("5511999990000", MessageKind.TEXT, payload, now=CLOCK_START)
        fp2 = fingerprint("+5511999990000", MessageKind.TEXT, payload, now=CLOCK_START + 59)
        assert fp1 == fp2
        assert len(fp1) == FINGERPRINT_LENGTH
        int(fp1, 16)

    def test_changes_across_bucket_boundary(self) -> None:
        payload = MessagePayload.text("olá")
        fp1 = fingerprint("5511999990000", MessageKind.TEXT, payload, now=CLOCK_START + 59)
        fp2 = fingerprint("5511999990000", MessageKind.TEXT, payload, now=CLOCK_START + 60)
        assert fp1 != fp2

    def test_different_content_or_recipient(self) -> None:
        base = fingerprint("5511999990000", "text", MessagePayload.text("a"), now=CLOCK_START)
        assert base != fingerprint(
            "5511999990000", "text", MessagePayload.text("b"), now=CLOCK_START
        )
        assert base != fingerprint(
            "5511999990001", "text", MessagePayload.text("a"), now=CLOCK_START
        )

    def test_custom_bucket(self) -> None:
        base = CLOCK_START - CLOCK_START % 300
        assert time_bucket(base + 299, 300) == time_bucket(base, 300)
        payload = MessagePayload.text("a")
        fp1 = fingerprint("1", "text", payload, bucket_seconds=300, now=base)
        fp2 = fingerprint("1", "text", payload, bucket_seconds=300, now=base + 120)
        fp3 = fingerprint("1", "text", payload, bucket_seconds=300, now=base + 300)
        assert fp1 == fp2
        assert fp1 != fp3

    def test_surrounding_whitespace_ignored(self) -> None:
        padded = fingerprint("1", "text", MessagePayload.text("  Oi!\n"), now=CLOCK_START)
        plain = fingerprint("1", "text", MessagePayload.text("Oi!"), now=CLOCK_START)
        assert padded == plain
