from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.repurposer.services.fetcher import (
    DEFAULT_MAX_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
)
from backend.repurposer.services.generation import DEFAULT_PRIMARY_MODEL
from backend.repurposer.services.llm_client import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
)

DEFAULT_DATA_DIR = ".repurposer"
ENVIRONMENTS: frozenset[str] = frozenset({"development", "production"})
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (("log_dir", Path("logs")),)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = ("telemetry_enabled",)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from `REPURPOSER_*`; the LLM credential and model ids also
    accept the bare `OPENAI_API_KEY`, `AI_MODEL_PRIMARY` and `AI_MODEL_FALLBACK` names.
    """

    model_config = SettingsConfigDict(
        env_prefix="REPURPOSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    environment: Literal["development", "production"] = Field(
        default="development",
        description="Deployment environment. Error stack traces are only exposed outside production.",
    )
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for logs.",
    )

    # LLM provider.
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("REPURPOSER_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="API key for the OpenAI-compatible chat-completion endpoint.",
    )
    llm_base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL of the OpenAI-compatible endpoint (OpenRouter by default).",
    )
    ai_model_primary: str = Field(
        default=DEFAULT_PRIMARY_MODEL,
        validation_alias=AliasChoices("REPURPOSER_AI_MODEL_PRIMARY", "AI_MODEL_PRIMARY"),
        description="Model id used for every generation request.",
    )
    ai_model_fallback: str | None = Field(
        default=None,
        validation_alias=AliasChoices("REPURPOSER_AI_MODEL_FALLBACK", "AI_MODEL_FALLBACK"),
        description="Model id tried once when the primary model fails. Ignored when equal to primary.",
    )
    llm_temperature: float = Field(
        default=DEFAULT_TEMPERATURE,
        ge=0.0,
        le=2.0,
        description="Sampling temperature sent with every chat completion.",
    )
    llm_max_tokens: int = Field(
        default=DEFAULT_MAX_TOKENS,
        ge=1,
        description="Maximum completion tokens per call.",
    )
    llm_timeout_seconds: float = Field(
        default=60.0,
        description="Client-side timeout for a single chat-completion call.",
    )

    # Fetching.
    fetch_timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        description="Hard deadline for fetching one page.",
    )
    fetch_max_bytes: int = Field(
        default=DEFAULT_MAX_BYTES,
        ge=1,
        description="Largest accepted HTML body in bytes, declared or actual.",
    )
    fetch_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent sent when fetching pages.",
    )

    # Rate limiting.
    rate_limit_max_requests: int = Field(
        default=10,
        ge=1,
        le=10_000,
        description="Maximum repurpose requests allowed per client in each window.",
    )
    rate_limit_window_seconds: int = Field(
        default=3600,
        ge=1,
        le=86_400,
        description="Rate-limit window size in seconds.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description="Directory for log files. Defaults to `${REPURPOSER_DATA_DIR}/logs`.",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )
    log_stage_levels: str | None = Field(
        default=None,
        description=(
            "Per-stage log levels as `stage=LEVEL` pairs, for example "
            "`fetcher=DEBUG,llm=WARNING`. Stages: api, pipeline, fetcher, extractor, "
            "generation, llm."
        ),
    )
    log_file_max_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Size at which `repurposer.log` is rotated.",
    )
    log_file_backup_count: int = Field(
        default=3,
        ge=0,
        description="Rotated log files kept next to the active one.",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("REPURPOSER_ENVIRONMENT must be a string.")
        normalized = value.strip().lower()
        if normalized in ENVIRONMENTS:
            return normalized
        raise ValueError("REPURPOSER_ENVIRONMENT must be set to: development, production.")

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("REPURPOSER_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("REPURPOSER_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("llm_base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("REPURPOSER_LLM_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("REPURPOSER_LLM_BASE_URL must not be empty.")
        return normalized

    @field_validator("ai_model_primary", mode="before")
    @classmethod
    def _normalize_primary_model(cls, value: Any) -> str:
        return _normalize_optional_text(value) or DEFAULT_PRIMARY_MODEL

    @field_validator("fetch_user_agent", mode="before")
    @classmethod
    def _normalize_user_agent(cls, value: Any) -> str:
        return _normalize_optional_text(value) or DEFAULT_USER_AGENT

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field = cls.model_fields.get(info.field_name or "")
        default_value = field.default if field is not None else None
        if not isinstance(default_value, bool):
            raise ValueError(f"{info.field_name} has no boolean default")
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("openai_api_key", "ai_model_fallback", "log_stage_levels", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
