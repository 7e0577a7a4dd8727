from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from backend.repurposer.config import load_settings
from backend.repurposer.dependencies import get_content_generator, reset_cached_dependencies
from backend.repurposer.services.generation import DEFAULT_PRIMARY_MODEL
from backend.repurposer.services.llm_client import DEFAULT_BASE_URL


def test_defaults(tmp_path: Path) -> None:
    settings = load_settings()

    assert settings.environment == "development"
    assert settings.is_production is False
    assert settings.openai_api_key is None
    assert settings.ai_model_primary == DEFAULT_PRIMARY_MODEL
    assert settings.ai_model_fallback is None
    assert settings.llm_base_url == DEFAULT_BASE_URL
    assert settings.rate_limit_max_requests == 10
    assert settings.rate_limit_window_seconds == 3600
    assert settings.fetch_max_bytes == 5 * 1024 * 1024
    assert settings.log_dir == (tmp_path / "runtime-data" / "logs").resolve()
    assert settings.telemetry_enabled is False


def test_bare_provider_env_names_are_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "  sk-test  ")
    monkeypatch.setenv("AI_MODEL_PRIMARY", "vendor/primary")
    monkeypatch.setenv("AI_MODEL_FALLBACK", "vendor/fallback")

    settings = load_settings()

    assert settings.openai_api_key == "sk-test"
    assert settings.ai_model_primary == "vendor/primary"
    assert settings.ai_model_fallback == "vendor/fallback"


def test_blank_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "   ")
    monkeypatch.setenv("AI_MODEL_PRIMARY", "")
    monkeypatch.setenv("AI_MODEL_FALLBACK", " ")

    settings = load_settings()

    assert settings.openai_api_key is None
    assert settings.ai_model_primary == DEFAULT_PRIMARY_MODEL
    assert settings.ai_model_fallback is None


def test_environment_is_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPURPOSER_ENVIRONMENT", " Production ")

    assert load_settings().is_production is True


def test_unknown_environment_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPURPOSER_ENVIRONMENT", "staging")

    with pytest.raises(ValidationError):
        load_settings()


def test_explicit_log_dir_wins(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REPURPOSER_LOG_DIR", str(tmp_path / "custom-logs"))

    assert load_settings().log_dir == (tmp_path / "custom-logs").resolve()


def test_generator_has_no_client_without_api_key() -> None:
    generator = get_content_generator()

    assert generator.primary_model == DEFAULT_PRIMARY_MODEL
    assert generator._client is None  # pyright: ignore[reportPrivateUsage]


def test_generator_uses_configured_models(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("AI_MODEL_PRIMARY", "vendor/primary")
    monkeypatch.setenv("AI_MODEL_FALLBACK", "vendor/fallback")
    reset_cached_dependencies()

    generator = get_content_generator()

    assert generator.primary_model == "vendor/primary"
    assert generator.fallback_model == "vendor/fallback"
    assert generator._client is not None  # pyright: ignore[reportPrivateUsage]
