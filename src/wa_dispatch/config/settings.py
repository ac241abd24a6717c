"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars (ou arquivo .env em dev).
Nunca hardcode secrets ou valores sensíveis.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from wa_dispatch.observability.logging import get_logger

# -----------------------------------------------------------------------------
# Constantes do gateway (Whapi.Cloud)
# -----------------------------------------------------------------------------
GATEWAY_BASE_URL: str = "https://gate.whapi.cloud"
GATEWAY_TEXT_PATH: str = "/messages/text"
GATEWAY_DOCUMENT_PATH: str = "/messages/document"
GATEWAY_INTERACTIVE_PATH: str = "/messages/interactive"


class Settings(BaseSettings):
    """Configurações lidas do ambiente.

    `rate_limit_budget` e `ledger_ttl_seconds` não têm default seguro:
    precisam ser definidos no deploy (ver validate_engine_config).
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    # Aplicação
    service_name: str = "wa_dispatch"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    correlation_id_header: str = "X-Correlation-ID"

    # Gateway (endpoints e credencial)
    gateway_base_url: str = GATEWAY_BASE_URL
    gateway_text_path: str = GATEWAY_TEXT_PATH
    gateway_document_path: str = GATEWAY_DOCUMENT_PATH
    gateway_interactive_path: str = GATEWAY_INTERACTIVE_PATH
    gateway_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gateway_api_key", "send_api_key"),
    )  # Bearer token
    verify_ssl: bool = True

    # Timeouts por tipo (segundos)
    text_timeout_seconds: float = 10.0
    document_timeout_seconds: float = 30.0

    # Limite externo de envios por janela fixa
    rate_limit_budget: int | None = None
    rate_limit_window_seconds: int = 60

    # Retry
    retry_backoff_base_seconds: float = 2.0
    retry_max_attempts: int = 3
    retry_batch_size: int = 1
    retry_poll_interval_seconds: float = 1.0

    # Fila de despacho atrasado (ritmo humano + jitter)
    dispatch_poll_interval_seconds: float = 1.0
    dispatch_jitter_min_seconds: float = 2.0
    dispatch_jitter_max_seconds: float = 6.0

    # Idempotência / ledger
    fingerprint_bucket_seconds: int = 60
    idempotency_ttl_seconds: int = 30
    idempotency_max_entries: int = 10000
    ledger_ttl_seconds: int | None = None  # Janela de phantom delivery
    ledger_max_entries: int = 10000

    # Webhook inbound
    verify_token: str | None = None
    inbound_dedupe_ttl_seconds: int = 300
    inbound_dedupe_max_entries: int = 10000

    # Documento enviado pelo responder padrão
    media_id: str | None = None
    document_filename: str = Field(
        default="document.pdf",
        validation_alias=AliasChoices("document_filename", "pdf_filename"),
    )
    media_upload_url: str | None = None

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_development(self) -> bool:
        """Retorna True se ambiente é desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")

    def endpoint_for(self, path: str) -> str:
        """Monta URL completa do gateway para um path."""
        return f"{self.gateway_base_url.rstrip('/')}/{path.lstrip('/')}"

    def validate_engine_config(self) -> list[str]:
        """Valida configuração do motor de envio.

        Retorna lista de erros (vazia = tudo OK).
        """
        errors: list[str] = []
        if not self.gateway_api_key:
            errors.append("GATEWAY_API_KEY (ou SEND_API_KEY) não configurado")
        if self.rate_limit_budget is None:
            errors.append("RATE_LIMIT_BUDGET obrigatório (limite externo do gateway)")
        elif self.rate_limit_budget < 1:
            errors.append("RATE_LIMIT_BUDGET deve ser >= 1")
        if self.rate_limit_window_seconds < 1:
            errors.append("RATE_LIMIT_WINDOW_SECONDS deve ser >= 1")
        if self.ledger_ttl_seconds is None:
            errors.append("LEDGER_TTL_SECONDS obrigatório (janela de phantom delivery)")
        elif self.ledger_ttl_seconds < 1:
            errors.append("LEDGER_TTL_SECONDS deve ser >= 1")
        if self.retry_max_attempts < 1:
            errors.append("RETRY_MAX_ATTEMPTS deve ser >= 1")
        if self.retry_batch_size < 1:
            errors.append("RETRY_BATCH_SIZE deve ser >= 1")
        if self.dispatch_jitter_min_seconds < 0:
            errors.append("DISPATCH_JITTER_MIN_SECONDS deve ser >= 0")
        if self.dispatch_jitter_max_seconds < self.dispatch_jitter_min_seconds:
            errors.append("DISPATCH_JITTER_MAX_SECONDS deve ser >= DISPATCH_JITTER_MIN_SECONDS")
        if self.fingerprint_bucket_seconds < 1:
            errors.append("FINGERPRINT_BUCKET_SECONDS deve ser >= 1")
        return errors

    def model_post_init(self, __context: Any) -> None:
        """Registra o ambiente carregado (sem expor secrets)."""
        logger: logging.Logger = get_logger(__name__)
        logger.debug(
            "settings_loaded",
            extra={
                "environment": self.environment,
                "gateway_api_key_present": bool(self.gateway_api_key),
                "rate_limit_budget": self.rate_limit_budget,
                "ledger_ttl_seconds": self.ledger_ttl_seconds,
            },
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings.

    A cache garante que mesmo múltiplas injeções não criam novos objetos.
    """
    return Settings()
