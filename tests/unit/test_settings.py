"""Testes unitários para config/settings.py."""

from __future__ import annotations

import pytest

from wa_dispatch.config.settings import (
    GATEWAY_BASE_URL,
    GATEWAY_DOCUMENT_PATH,
    Settings,
    get_settings,
)


class TestGatewayConstants:
    def test_defaults_point_to_whapi(self) -> None:
        assert GATEWAY_BASE_URL == "https://gate.whapi.cloud"
        assert GATEWAY_DOCUMENT_PATH == "/messages/document"


class TestSettingsDefaults:
    def test_engine_defaults(self) -> None:
        s = Settings()
        assert s.retry_backoff_base_seconds == 2.0
        assert s.retry_max_attempts == 3
        assert s.idempotency_ttl_seconds == 30
        assert s.fingerprint_bucket_seconds == 60
        assert s.text_timeout_seconds == 10.0
        assert s.document_timeout_seconds == 30.0

    def test_endpoint_for(self) -> None:
        s = Settings(gateway_base_url="https://gw.test/")
        assert s.endpoint_for("/messages/text") == "https://gw.test/messages/text"


class TestSettingsFromEnv:
    def test_legacy_env_aliases(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SEND_API_KEY", "legacy-key")
        monkeypatch.setenv("PDF_FILENAME", "tabela.pdf")
        monkeypatch.setenv("RATE_LIMIT_BUDGET", "20")
        s = Settings()
        assert s.gateway_api_key == "legacy-key"
        assert s.document_filename == "tabela.pdf"
        assert s.rate_limit_budget == 20

    def test_get_settings_cached(self) -> None:
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestValidateEngineConfig:
    def test_required_values_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("GATEWAY_API_KEY", "SEND_API_KEY", "RATE_LIMIT_BUDGET", "LEDGER_TTL_SECONDS"):
            monkeypatch.delenv(name, raising=False)
        errors = Settings().validate_engine_config()
        assert any("GATEWAY_API_KEY" in e for e in errors)
        assert any("RATE_LIMIT_BUDGET" in e for e in errors)
        assert any("LEDGER_TTL_SECONDS" in e for e in errors)

    def test_valid_config(self, engine_settings: Settings) -> None:
        assert engine_settings.validate_engine_config() == []

    def test_inconsistent_jitter(self, engine_settings: Settings) -> None:
        s = engine_settings.model_copy(
            update={"dispatch_jitter_min_seconds": 5.0, "dispatch_jitter_max_seconds": 1.0}
        )
        assert any("DISPATCH_JITTER_MAX_SECONDS" in e for e in s.validate_engine_config())
