"""Testes para adapters/whatsapp/transport.py (GatewayTransport)."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from tests.conftest import FakeClock, mock_http_client
from wa_dispatch.adapters.whatsapp.transport import GatewayTransport, extract_message_id
from wa_dispatch.domain.enums import MessageKind, SendOutcome, WireEncoding
from wa_dispatch.domain.models import MessagePayload
from wa_dispatch.infra.idempotency import IdempotencyCache
from wa_dispatch.infra.ledger import OutboundLedger

RECIPIENT = "+55 11 99999-0000"
ENDPOINTS = {
    MessageKind.TEXT: "https://gw.test/messages/text",
    MessageKind.DOCUMENT: "https://gw.test/messages/document",
    MessageKind.INTERACTIVE: "https://gw.test/messages/interactive",
}

Handler = Callable[[httpx.Request], httpx.Response]


class Harness:
    """Transporte com gateway simulado e componentes reais."""

    def __init__(self, responses: list[httpx.Response], clock: FakeClock) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)
        self.idempotency = IdempotencyCache(clock=clock)
        self.ledger = OutboundLedger(ttl_seconds=600, clock=clock)
        self.transport = GatewayTransport(
            mock_http_client(self._handle),
            self.idempotency,
            self.ledger,
            endpoints=ENDPOINTS,
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)


@pytest.fixture
def make_harness(clock: FakeClock) -> Callable[..., Harness]:
    def _make(*responses: httpx.Response) -> Harness:
        return Harness(list(responses), clock)

    return _make


class TestTextSend:
    @pytest.mark.asyncio
    async def test_success_marks_idempotency_and_ledger(self, make_harness) -> None:
        h = make_harness(httpx.Response(200, json={"sent": True, "message": {"id": "wamid-1"}}))
        payload = MessagePayload.text("olá")

        result = await h.transport.send(
            RECIPIENT, MessageKind.TEXT, payload, job_id="job-1", fingerprint="fp-1"
        )

        assert result.outcome == SendOutcome.SUCCESS
        assert result.message_id == "wamid-1"
        assert result.encoding == WireEncoding.JSON
        assert h.idempotency.is_sent("fp-1") is True
        assert h.ledger.was_sent_by_us(RECIPIENT, MessageKind.TEXT, payload) == result.correlation_id

        request = h.requests[0]
        assert str(request.url) == ENDPOINTS[MessageKind.TEXT]
        assert request.headers["X-Correlation-ID"] == result.correlation_id
        assert json.loads(request.content) == {"to": "5511999990000", "body": "olá"}

    @pytest.mark.asyncio
    async def test_retryable_failure_writes_ledger_only(self, make_harness) -> None:
        h = make_harness(httpx.Response(500, text="erro"))
        payload = MessagePayload.text("olá")

        result = await h.transport.send(RECIPIENT, "text", payload, fingerprint="fp-2")

        assert result.outcome == SendOutcome.RETRYABLE
        assert result.status_code == 500
        assert h.idempotency.seen("fp-2") is False
        [entry] = h.ledger.entries_for(RECIPIENT, MessageKind.TEXT, payload)
        assert entry.succeeded is False
        assert entry.correlation_id == result.correlation_id

    @pytest.mark.asyncio
    async def test_fresh_correlation_id_per_invocation(self, make_harness) -> None:
        h = make_harness(httpx.Response(200, json={}), httpx.Response(200, json={}))
        payload = MessagePayload.text("a")
        first = await h.transport.send(RECIPIENT, "text", payload)
        second = await h.transport.send(RECIPIENT, "text", payload)
        assert first.correlation_id != second.correlation_id

    @pytest.mark.asyncio
    async def test_invalid_payload_is_fatal_without_request(self, make_harness) -> None:
        h = make_harness()
        result = await h.transport.send(RECIPIENT, "text", MessagePayload())
        assert result.outcome == SendOutcome.FATAL
        assert h.requests == []


class TestDocumentSend:
    @pytest.mark.asyncio
    async def test_json_first(self, make_harness) -> None:
        h = make_harness(httpx.Response(200, json={"id": "doc-1"}))
        payload = MessagePayload.document("media-1", "doc.pdf")

        result = await h.transport.send(RECIPIENT, MessageKind.DOCUMENT, payload)

        assert result.succeeded
        assert result.encoding == WireEncoding.JSON
        assert len(h.requests) == 1
        assert json.loads(h.requests[0].content) == {
            "to": "5511999990000",
            "media": "media-1",
            "filename": "doc.pdf",
            "type": "document",
        }

    @pytest.mark.asyncio
    async def test_multipart_fallback_on_retryable(self, make_harness) -> None:
        h = make_harness(
            httpx.Response(400, json={"error": "media must be string"}),
            httpx.Response(200, json={"sent": True}),
        )
        payload = MessagePayload.document("media-1", "doc.pdf")

        result = await h.transport.send(RECIPIENT, MessageKind.DOCUMENT, payload)

        assert result.succeeded
        assert result.encoding == WireEncoding.MULTIPART
        assert len(h.requests) == 2
        fallback = h.requests[1]
        assert fallback.headers["content-type"].startswith("multipart/form-data")
        assert b'name="media"' in fallback.content
        assert b"media-1" in fallback.content
        # Mesma invocação lógica: mesmo correlation_id nas duas codificações
        assert (
            h.requests[0].headers["X-Correlation-ID"] == fallback.headers["X-Correlation-ID"]
        )
        assert len(h.ledger.entries_for(RECIPIENT, MessageKind.DOCUMENT, payload)) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_fatal_skips_fallback(self, make_harness, status_code: int) -> None:
        h = make_harness(httpx.Response(status_code, text="bad token"))
        payload = MessagePayload.document("media-1", "doc.pdf")

        result = await h.transport.send(RECIPIENT, MessageKind.DOCUMENT, payload)

        assert result.outcome == SendOutcome.FATAL
        assert result.status_code == status_code
        assert len(h.requests) == 1

    @pytest.mark.asyncio
    async def test_both_encodings_fail(self, make_harness) -> None:
        h = make_harness(httpx.Response(502), httpx.Response(503))
        payload = MessagePayload.document("media-1", "doc.pdf")

        result = await h.transport.send(RECIPIENT, MessageKind.DOCUMENT, payload)

        assert result.outcome == SendOutcome.RETRYABLE
        assert result.status_code == 503
        assert result.encoding == WireEncoding.MULTIPART


class TestTransportErrors:
    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self, clock: FakeClock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        transport = GatewayTransport(
            mock_http_client(handler),
            IdempotencyCache(clock=clock),
            OutboundLedger(ttl_seconds=60, clock=clock),
            endpoints=ENDPOINTS,
        )
        result = await transport.send(RECIPIENT, "text", MessagePayload.text("x"))
        assert result.outcome == SendOutcome.RETRYABLE
        assert result.status_code is None


class TestExtractMessageId:
    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ({"message": {"id": "a"}}, "a"),
            ({"messages": [{"id": "b"}]}, "b"),
            ({"id": "c"}, "c"),
            ({"sent": True}, None),
            ([1, 2], None),
        ],
    )
    def test_formats(self, body: object, expected: str | None) -> None:
        assert extract_message_id(httpx.Response(200, json=body)) == expected

    def test_non_json(self) -> None:
        assert extract_message_id(httpx.Response(200, text="ok")) is None
