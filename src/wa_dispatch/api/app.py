"""Fábrica da aplicação FastAPI."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from wa_dispatch.api.routes import router
from wa_dispatch.application.engine import OutboundEngine, create_engine
from wa_dispatch.application.responder import DocumentResponder, InboundResponder
from wa_dispatch.config.settings import Settings, get_settings
from wa_dispatch.infra.ttl_cache import BoundedTTLCache
from wa_dispatch.observability.logging import configure_logging, get_logger
from wa_dispatch.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    engine: OutboundEngine = app.state.engine
    await engine.start()
    try:
        yield
    finally:
        await engine.stop()


def create_app(
    settings: Settings | None = None,
    *,
    engine: OutboundEngine | None = None,
    responder: InboundResponder | None = None,
) -> FastAPI:
    """Cria a aplicação FastAPI.

    Raises:
        EngineConfigError: configuração do motor inválida (fail-closed)
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name, settings.log_format)

    engine = engine or create_engine(settings)

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=_lifespan)
    app.add_middleware(CorrelationIdMiddleware, header_name=settings.correlation_id_header)
    app.include_router(router)

    app.state.settings = settings
    app.state.engine = engine
    app.state.responder = responder or DocumentResponder(
        engine,
        media_id=settings.media_id,
        filename=settings.document_filename,
    )
    app.state.inbound_dedupe = BoundedTTLCache(
        max_entries=settings.inbound_dedupe_max_entries,
        ttl_seconds=settings.inbound_dedupe_ttl_seconds,
    )

    if not settings.media_id:
        logger.warning("media_id_not_configured")

    return app
