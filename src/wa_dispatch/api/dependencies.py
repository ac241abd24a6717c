"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import Request

from wa_dispatch.application.engine import OutboundEngine
from wa_dispatch.application.responder import InboundResponder
from wa_dispatch.config.settings import Settings
from wa_dispatch.infra.ttl_cache import BoundedTTLCache


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""
    return request.app.state.settings


def get_engine(request: Request) -> OutboundEngine:
    """Retorna o motor de envio outbound."""
    return request.app.state.engine


def get_responder(request: Request) -> InboundResponder:
    """Retorna o responder acionado por mensagens inbound."""
    return request.app.state.responder


def get_inbound_dedupe(request: Request) -> BoundedTTLCache[str, float]:
    """Retorna cache de dedupe de eventos inbound (por message_id)."""
    return request.app.state.inbound_dedupe
