"""Cliente HTTP centralizado com timeout, classificação de erro e logging.

Este módulo fornece um cliente HTTP para o gateway, com:
- Timeouts configuráveis (por requisição)
- Classificação de falhas: fatal (401/403) vs retentável (todo o resto)
- Logging estruturado (sem tokens nem números completos)
- Injeção de headers padrão

Não faz retry: cada chamada é uma tentativa. Retry com backoff é
responsabilidade da fila de retry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from wa_dispatch.observability.logging import get_logger

if TYPE_CHECKING:
    from wa_dispatch.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

# Regex pré-compilado para sanitização de URL
_TOKEN_PATTERN = re.compile(r"(access_token|token|api_key)=[^&]+")

FATAL_STATUS_CODES = frozenset({401, 403})
MAX_LOGGED_BODY_CHARS = 500


def _sanitize_url(url: str) -> str:
    """Remove tokens e credenciais da URL para logging seguro."""
    return _TOKEN_PATTERN.sub(lambda m: f"{m.group(1)}=***", url)


def _truncate(text: str | None, limit: int = MAX_LOGGED_BODY_CHARS) -> str | None:
    """Trunca corpo de resposta para logs."""
    if text is None:
        return None
    return text if len(text) <= limit else f"{text[:limit]}..."


def is_fatal_status(status_code: int | None) -> bool:
    """Credencial/permissão rejeitada: nunca retentar."""
    return status_code in FATAL_STATUS_CODES


@dataclass
class HttpClientConfig:
    """Configuração do cliente HTTP.

    Valores padrão são seguros e conservadores.
    """

    timeout_seconds: float = 30.0
    default_headers: dict[str, str] = field(default_factory=dict)
    verify_ssl: bool = True


class HttpError(Exception):
    """Erro de requisição HTTP sem expor informações sensíveis."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        is_retryable: bool = True,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.is_retryable = is_retryable
        self.body = _truncate(body)

    @property
    def is_fatal(self) -> bool:
        return not self.is_retryable


def _log_request_start(method: str, url: str, correlation_id: str | None) -> None:
    """Loga início de requisição sem dados sensíveis."""
    logger.debug(
        "http_request_start",
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "correlation_id": correlation_id,
        },
    )


def _log_request_success(method: str, url: str, status_code: int, cid: str | None) -> None:
    """Loga sucesso de requisição."""
    logger.debug(
        "http_request_success",
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "status_code": status_code,
            "correlation_id": cid,
        },
    )


def _log_status_error(
    method: str,
    url: str,
    status_code: int,
    body: str | None,
    cid: str | None,
) -> None:
    """Loga resposta de erro do gateway."""
    logger.warning(
        "http_request_failed",
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "status_code": status_code,
            "fatal": is_fatal_status(status_code),
            "response_body": _truncate(body),
            "correlation_id": cid,
        },
    )


def _log_transient_error(msg: str, method: str, url: str, error: str, cid: str | None) -> None:
    """Loga erro transitório (timeout, conexão)."""
    logger.warning(
        msg,
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "error": error,
            "correlation_id": cid,
        },
    )


def _handle_transport_exception(
    exc: Exception,
    method: str,
    url: str,
    cid: str | None,
) -> HttpError:
    """Converte exceções do httpx (timeout, conexão, protocolo) em HttpError retentável."""
    if isinstance(exc, httpx.TimeoutException):
        _log_transient_error("http_timeout", method, url, str(exc), cid)
        return HttpError("Timeout", is_retryable=True)

    if isinstance(exc, httpx.ConnectError):
        _log_transient_error("http_connect_error", method, url, str(exc), cid)
        return HttpError("Erro de conexão", is_retryable=True)

    _log_transient_error("http_transport_error", method, url, type(exc).__name__, cid)
    return HttpError(f"Erro de transporte: {type(exc).__name__}", is_retryable=True)


class HttpClient:
    """Cliente HTTP assíncrono de tentativa única.

    Uso típico:
        async with HttpClient(config) as client:
            response = await client.post(url, json=payload)
    """

    def __init__(self, config: HttpClientConfig | None = None) -> None:
        """Inicializa cliente com configuração."""
        self._config = config or HttpClientConfig()
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> HttpClientConfig:
        return self._config

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente httpx (lazy loading)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers=self._config.default_headers,
                verify=self._config.verify_ssl,
            )
        return self._client

    async def close(self) -> None:
        """Fecha o cliente e libera recursos."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpClient:
        """Suporte a async context manager."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Fecha cliente ao sair do context."""
        await self.close()

    async def request(
        self,
        method: str,
        url: str,
        *,
        correlation_id: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Executa uma requisição e classifica a falha.

        Returns:
            Resposta HTTP 2xx

        Raises:
            HttpError: status não-2xx ou falha de transporte
        """
        client = await self._get_client()
        _log_request_start(method, url, correlation_id)

        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise _handle_transport_exception(exc, method, url, correlation_id) from exc

        if response.is_success:
            _log_request_success(method, url, response.status_code, correlation_id)
            return response

        body = response.text
        _log_status_error(method, url, response.status_code, body, correlation_id)
        raise HttpError(
            f"HTTP {response.status_code}",
            status_code=response.status_code,
            is_retryable=not is_fatal_status(response.status_code),
            body=body,
        )

    async def post(
        self,
        url: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Executa POST (uma tentativa)."""
        if json is not None:
            kwargs["json"] = json
        return await self.request("POST", url, **kwargs)


def create_http_client(settings: Settings) -> HttpClient:
    """Factory para criar cliente HTTP do gateway.

    O Bearer token entra como header padrão e nunca é logado.
    """
    headers = {"User-Agent": f"{settings.service_name}/{settings.version}"}
    if settings.gateway_api_key:
        headers["Authorization"] = f"Bearer {settings.gateway_api_key}"

    config = HttpClientConfig(
        timeout_seconds=max(settings.text_timeout_seconds, settings.document_timeout_seconds),
        default_headers=headers,
        verify_ssl=settings.verify_ssl,
    )

    logger.info(
        "http_client_created",
        extra={"timeout_seconds": config.timeout_seconds},
    )

    return HttpClient(config)
