"""Testes para infra/ledger.py (rastro de tentativas outbound)."""

from __future__ import annotations

import pytest

from tests.conftest import FakeClock
from wa_dispatch.domain.enums import MessageKind
from wa_dispatch.domain.models import MessagePayload
from wa_dispatch.infra.ledger import MAX_ENTRIES_PER_KEY, OutboundLedger

RECIPIENT = "5511999990000"


@pytest.fixture
def ledger(clock: FakeClock) -> OutboundLedger:
    return OutboundLedger(ttl_seconds=120, clock=clock)


class TestOutboundLedger:
    def test_was_sent_by_us_returns_latest_correlation(self, ledger: OutboundLedger) -> None:
        payload = MessagePayload.text("oi")
        ledger.record_attempt(RECIPIENT, MessageKind.TEXT, payload, "cid-1", succeeded=False)
        ledger.record_attempt(RECIPIENT, MessageKind.TEXT, payload, "cid-2", succeeded=True)
        assert ledger.was_sent_by_us(RECIPIENT, MessageKind.TEXT, payload) == "cid-2"
        entries = ledger.entries_for(RECIPIENT, MessageKind.TEXT, payload)
        assert [e.succeeded for e in entries] == [False, True]

    def test_failed_attempt_counts(self, ledger: OutboundLedger) -> None:
        payload = MessagePayload.text("oi")
        ledger.record_attempt(RECIPIENT, MessageKind.TEXT, payload, "cid-x", succeeded=False)
        assert ledger.was_sent_by_us(RECIPIENT, MessageKind.TEXT, payload) == "cid-x"

    def test_recipient_normalized_and_time_independent(
        self, ledger: OutboundLedger, clock: FakeClock
    ) -> None:
        payload = MessagePayload.text("oi")
        ledger.record_attempt("+" + RECIPIENT, MessageKind.TEXT, payload, "cid-1", True)
        clock.advance(90)  # outro bucket de fingerprint, mesma janela do ledger
        assert (
            ledger.was_sent_by_us(f"{RECIPIENT}@s.whatsapp.net", MessageKind.TEXT, payload)
            == "cid-1"
        )

    def test_expires_after_window(self, ledger: OutboundLedger, clock: FakeClock) -> None:
        payload = MessagePayload.text("oi")
        ledger.record_attempt(RECIPIENT, MessageKind.TEXT, payload, "cid-1", True)
        clock.advance(121)
        assert ledger.was_sent_by_us(RECIPIENT, MessageKind.TEXT, payload) is None

    def test_other_content_not_matched(self, ledger: OutboundLedger) -> None:
        ledger.record_attempt(RECIPIENT, MessageKind.TEXT, MessagePayload.text("a"), "c", True)
        assert ledger.was_sent_by_us(RECIPIENT, MessageKind.TEXT, MessagePayload.text("b")) is None

    def test_entries_bounded_per_key(self, ledger: OutboundLedger) -> None:
        payload = MessagePayload.text("oi")
        for i in range(MAX_ENTRIES_PER_KEY + 5):
            ledger.record_attempt(RECIPIENT, MessageKind.TEXT, payload, f"cid-{i}", False)
        entries = ledger.entries_for(RECIPIENT, MessageKind.TEXT, payload)
        assert len(entries) == MAX_ENTRIES_PER_KEY
        assert entries[-1].correlation_id == f"cid-{MAX_ENTRIES_PER_KEY + 4}"
