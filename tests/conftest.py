from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from wa_dispatch.api.app import create_app
from wa_dispatch.application.engine import create_engine
from wa_dispatch.config.settings import Settings, get_settings
from wa_dispatch.infra.http import HttpClient, HttpClientConfig

# Múltiplo de 60: início exato de um bucket de fingerprint/rate limit.
CLOCK_START = 1_699_999_980.0


class FakeClock:
    """Relógio controlado manualmente (epoch seconds)."""

    def __init__(self, start: float = CLOCK_START) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def mock_http_client(handler) -> HttpClient:  # type: ignore[no-untyped-def]
    """HttpClient real com transporte httpx simulado."""
    client = HttpClient(HttpClientConfig())
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def engine_settings() -> Settings:
    """Settings completo para o motor (sem depender do ambiente)."""
    return Settings(
        gateway_api_key="test-key",
        gateway_base_url="https://gateway.test",
        rate_limit_budget=10,
        rate_limit_window_seconds=60,
        ledger_ttl_seconds=600,
        dispatch_jitter_min_seconds=30.0,
        dispatch_jitter_max_seconds=30.0,
        verify_token="test-token",
        media_id="media-123",
        document_filename="catalogo.pdf",
        log_format="text",
    )


@pytest.fixture()
def gateway_calls() -> list[httpx.Request]:
    return []


@pytest.fixture()
def client(engine_settings: Settings, gateway_calls: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        gateway_calls.append(request)
        return httpx.Response(200, json={"sent": True, "message": {"id": "wamid-1"}})

    get_settings.cache_clear()
    engine = create_engine(engine_settings, http_client=mock_http_client(handler))
    app = create_app(engine_settings, engine=engine)
    with TestClient(app) as test_client:
        yield test_client
