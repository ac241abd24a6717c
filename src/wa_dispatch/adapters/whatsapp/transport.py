"""Transport Adapter: uma invocação = um envio lógico ao gateway.

Responsabilidades:
- Gerar correlation_id novo por invocação (header configurável)
- Escolher endpoint e timeout por tipo de mensagem
- Tentar codificações em ordem (documento: JSON → multipart)
- Classificar o resultado (sucesso, retentável, fatal) sem levantar exceção
- Registrar aceite no cache de idempotência e toda tentativa no ledger
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from wa_dispatch.adapters.whatsapp.payload_builders import (
    PayloadValidationError,
    WireRequest,
    build_wire_requests,
)
from wa_dispatch.domain.enums import MessageKind, SendOutcome, WireEncoding
from wa_dispatch.domain.fingerprint import fingerprint as compute_fingerprint
from wa_dispatch.domain.fingerprint import normalize_recipient
from wa_dispatch.domain.models import MessagePayload, SendResult
from wa_dispatch.infra.http import HttpClient, HttpError
from wa_dispatch.infra.idempotency import IdempotencyCache
from wa_dispatch.infra.ledger import OutboundLedger
from wa_dispatch.observability.logging import get_logger, mask_recipient
from wa_dispatch.observability.middleware import new_correlation_id
from wa_dispatch.observability.timing import Stopwatch

if TYPE_CHECKING:
    from wa_dispatch.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
_MAX_ERROR_CHARS = 200


def extract_message_id(response: httpx.Response) -> str | None:
    """Extrai o ID da mensagem da resposta do gateway (formatos variados)."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    message = data.get("message")
    if isinstance(message, dict) and message.get("id"):
        return str(message["id"])
    messages = data.get("messages")
    if isinstance(messages, list) and messages and isinstance(messages[0], dict):
        found = messages[0].get("id")
        if found:
            return str(found)
    for key in ("id", "message_id"):
        if data.get(key):
            return str(data[key])
    return None


class GatewayTransport:
    """Adaptador do gateway HTTP de mensagens.

    Nunca levanta exceção para o chamador: toda falha vira SendResult.
    """

    def __init__(
        self,
        http_client: HttpClient,
        idempotency: IdempotencyCache,
        ledger: OutboundLedger,
        *,
        endpoints: Mapping[MessageKind, str],
        timeouts: Mapping[MessageKind, float] | None = None,
        correlation_header: str = "X-Correlation-ID",
        fingerprint_bucket_seconds: int = 60,
    ) -> None:
        self._http = http_client
        self._idempotency = idempotency
        self._ledger = ledger
        self._endpoints = dict(endpoints)
        self._timeouts = dict(timeouts or {})
        self._correlation_header = correlation_header
        self._bucket_seconds = fingerprint_bucket_seconds

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: HttpClient,
        idempotency: IdempotencyCache,
        ledger: OutboundLedger,
    ) -> GatewayTransport:
        """Monta o transporte com endpoints e timeouts do Settings."""
        return cls(
            http_client,
            idempotency,
            ledger,
            endpoints={
                MessageKind.TEXT: settings.endpoint_for(settings.gateway_text_path),
                MessageKind.DOCUMENT: settings.endpoint_for(settings.gateway_document_path),
                MessageKind.INTERACTIVE: settings.endpoint_for(
                    settings.gateway_interactive_path
                ),
            },
            timeouts={
                MessageKind.TEXT: settings.text_timeout_seconds,
                MessageKind.DOCUMENT: settings.document_timeout_seconds,
                MessageKind.INTERACTIVE: settings.text_timeout_seconds,
            },
            correlation_header=settings.correlation_id_header,
            fingerprint_bucket_seconds=settings.fingerprint_bucket_seconds,
        )

    async def send(
        self,
        recipient: str,
        kind: MessageKind | str,
        payload: MessagePayload,
        timeout: float | None = None,
        *,
        job_id: str | None = None,
        fingerprint: str | None = None,
    ) -> SendResult:
        """Envia uma mensagem (uma invocação lógica, com fallback de codificação).

        Args:
            recipient: Destinatário (número ou JID)
            kind: Tipo da mensagem
            payload: Conteúdo
            timeout: Timeout por requisição (default por tipo)
            job_id: Job de origem, para logs e idempotência
            fingerprint: Fingerprint já calculado no enqueue

        Returns:
            SendResult classificado; nunca levanta
        """
        correlation_id = new_correlation_id()
        watch = Stopwatch()

        try:
            msg_kind = MessageKind(kind)
            to = normalize_recipient(recipient)
            wire_requests = build_wire_requests(to, msg_kind, payload)
        except (PayloadValidationError, ValueError) as exc:
            # Nada foi enviado: não é tentativa no gateway
            logger.error(
                "outbound_payload_invalid",
                extra={
                    "correlation_id": correlation_id,
                    "job_id": job_id,
                    "kind": str(kind),
                    "error": str(exc),
                },
            )
            return SendResult(
                outcome=SendOutcome.FATAL,
                correlation_id=correlation_id,
                error=str(exc),
            )

        fp = fingerprint or compute_fingerprint(
            recipient, msg_kind, payload, bucket_seconds=self._bucket_seconds
        )
        url = self._endpoints[msg_kind]
        effective_timeout = timeout or self._timeouts.get(msg_kind, DEFAULT_TIMEOUT_SECONDS)

        result = await self._attempt_encodings(
            url,
            wire_requests,
            timeout=effective_timeout,
            correlation_id=correlation_id,
            job_id=job_id,
            fingerprint=fp,
            kind=msg_kind,
            watch=watch,
        )

        if result.succeeded:
            self._idempotency.mark(fp, job_id)
        self._ledger.record_attempt(
            recipient,
            msg_kind,
            payload,
            correlation_id=correlation_id,
            succeeded=result.succeeded,
            fingerprint=fp,
        )

        log = logger.info if result.succeeded else logger.warning
        log(
            "outbound_send_completed" if result.succeeded else "outbound_send_failed",
            extra={
                "correlation_id": correlation_id,
                "job_id": job_id,
                "fingerprint": fp,
                "recipient": mask_recipient(to),
                "kind": str(msg_kind),
                "encoding": str(result.encoding) if result.encoding else None,
                "status_code": result.status_code,
                "elapsed_ms": result.elapsed_ms,
                "outcome": str(result.outcome),
                "error": result.error,
            },
        )
        return result

    async def _attempt_encodings(
        self,
        url: str,
        wire_requests: list[WireRequest],
        *,
        timeout: float,
        correlation_id: str,
        job_id: str | None,
        fingerprint: str,
        kind: MessageKind,
        watch: Stopwatch,
    ) -> SendResult:
        """Tenta cada codificação em ordem; fatal interrompe o fallback."""
        outcome = SendOutcome.RETRYABLE
        status_code: int | None = None
        error: str | None = None
        encoding: WireEncoding | None = None

        for wire in wire_requests:
            encoding = wire.encoding
            try:
                response = await self._post(url, wire, timeout, correlation_id)
            except HttpError as exc:
                status_code = exc.status_code
                error = _describe_error(exc)
                outcome = SendOutcome.FATAL if exc.is_fatal else SendOutcome.RETRYABLE
                self._log_attempt(
                    correlation_id, job_id, fingerprint, kind, wire, status_code, watch, outcome
                )
                if exc.is_fatal:
                    break
                continue
            except Exception as exc:  # noqa: BLE001 - transporte nunca levanta
                logger.exception(
                    "outbound_unexpected_error",
                    extra={"correlation_id": correlation_id, "job_id": job_id},
                )
                status_code = None
                error = type(exc).__name__
                outcome = SendOutcome.RETRYABLE
                continue

            self._log_attempt(
                correlation_id,
                job_id,
                fingerprint,
                kind,
                wire,
                response.status_code,
                watch,
                SendOutcome.SUCCESS,
            )
            return SendResult(
                outcome=SendOutcome.SUCCESS,
                correlation_id=correlation_id,
                status_code=response.status_code,
                message_id=extract_message_id(response),
                encoding=wire.encoding,
                elapsed_ms=watch.elapsed_ms,
            )

        return SendResult(
            outcome=outcome,
            correlation_id=correlation_id,
            status_code=status_code,
            encoding=encoding,
            error=error,
            elapsed_ms=watch.elapsed_ms,
        )

    async def _post(
        self,
        url: str,
        wire: WireRequest,
        timeout: float,
        correlation_id: str,
    ) -> httpx.Response:
        kwargs: dict[str, Any] = wire.httpx_kwargs()
        return await self._http.request(
            "POST",
            url,
            correlation_id=correlation_id,
            headers={self._correlation_header: correlation_id},
            timeout=httpx.Timeout(timeout),
            **kwargs,
        )

    @staticmethod
    def _log_attempt(
        correlation_id: str,
        job_id: str | None,
        fingerprint: str,
        kind: MessageKind,
        wire: WireRequest,
        status_code: int | None,
        watch: Stopwatch,
        outcome: SendOutcome,
    ) -> None:
        logger.info(
            "gateway_attempt",
            extra={
                "correlation_id": correlation_id,
                "job_id": job_id,
                "fingerprint": fingerprint,
                "kind": str(kind),
                "encoding": str(wire.encoding),
                "status_code": status_code,
                "elapsed_ms": watch.elapsed_ms,
                "outcome": str(outcome),
            },
        )


def _describe_error(exc: HttpError) -> str:
    text = str(exc)
    if exc.body:
        text = f"{text}: {exc.body}"
    return text[:_MAX_ERROR_CHARS]
