"""Rotas HTTP: health, webhook do gateway e introspecção das filas."""

from __future__ import annotations

import json
import time
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from wa_dispatch.adapters.whatsapp.normalizer import extract_incoming
from wa_dispatch.api.dependencies import (
    get_engine,
    get_inbound_dedupe,
    get_responder,
    get_settings,
)
from wa_dispatch.application.engine import OutboundEngine
from wa_dispatch.application.responder import InboundResponder
from wa_dispatch.config.settings import Settings
from wa_dispatch.infra.ttl_cache import BoundedTTLCache
from wa_dispatch.observability.logging import get_logger, mask_recipient
from wa_dispatch.observability.middleware import get_correlation_id

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """Healthcheck simples."""
    return {
        "status": "ok",
        "service": settings.service_name,
        "version": settings.version,
        "media_id_present": bool(settings.media_id),
    }


@router.get("/webhook")
def webhook_verify(
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Handshake de verificação do webhook."""
    if not settings.verify_token:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="missing_verify_token",
        )

    if hub_mode != "subscribe" or hub_verify_token != settings.verify_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="verification_failed",
        )

    return Response(content=hub_challenge or "", media_type="text/plain")


@router.post("/webhook")
async def webhook(
    request: Request,
    engine: OutboundEngine = Depends(get_engine),
    responder: InboundResponder = Depends(get_responder),
    inbound_dedupe: BoundedTTLCache[str, float] = Depends(get_inbound_dedupe),
) -> dict[str, Any]:
    """Recebe eventos do gateway e responde imediatamente.

    Envio de resposta é fire-and-forget via motor outbound.
    """
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"{}")
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_json") from exc

    correlation_id = get_correlation_id()
    incoming = extract_incoming(payload)

    if incoming.from_me:
        logger.debug("inbound_from_me_ignored", extra={"message_id": incoming.message_id})
        return {"ok": True, "status": "ignored", "correlation_id": correlation_id}

    if incoming.message_id:
        inserted, _ = inbound_dedupe.add_if_absent(incoming.message_id, time.time())
        if not inserted:
            logger.info(
                "inbound_duplicate_skipped",
                extra={"message_id": incoming.message_id},
            )
            return {"ok": True, "status": "duplicate", "correlation_id": correlation_id}

    if incoming.from_number and engine.phantom.is_phantom_echo(
        incoming.from_number,
        incoming.text,
        media=incoming.media_id,
        caption=incoming.caption,
    ):
        return {"ok": True, "status": "phantom", "correlation_id": correlation_id}

    result = responder.handle(incoming)
    logger.info(
        "inbound_processed",
        extra={
            "message_id": incoming.message_id,
            "from": mask_recipient(incoming.from_number),
            "enqueued": bool(result and result.job_id),
        },
    )
    return {
        "ok": True,
        "status": "accepted",
        "enqueued": bool(result and result.job_id),
        "duplicate": bool(result and result.duplicate),
        "job_id": result.job_id if result else None,
        "correlation_id": correlation_id,
    }


@router.get("/outbound/jobs")
def outbound_jobs(engine: OutboundEngine = Depends(get_engine)) -> dict[str, Any]:
    """Introspecção: jobs pendentes nas filas e estado do rate limiter."""
    return engine.snapshot()
