"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

_ALLOWED_LLM_ADAPTERS = {"openai", "mock"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_csv_env(name: str) -> tuple[str, ...]:
    raw_value = _get_optional_str_env(name)
    if raw_value is None:
        return ()
    return tuple(token.strip() for token in raw_value.split(",") if token.strip())


@dataclass(frozen=True)
class ImportSettings:
    """
    Runtime settings for keyword and traffic file imports.
    """

    upsert_chunk_size: int = 100
    max_error_messages: int = 5
    max_file_size_bytes: int = 50 * 1024 * 1024
    ai_batch_size: int = 50


@dataclass(frozen=True)
class RetrySettings:
    """
    Retry policy for calls to the AI classification service.
    """

    max_retries: int = 3
    initial_delay_ms: float = 1000.0
    max_delay_ms: float = 10000.0
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class IntentClassifierSettings:
    """
    Intent classifier adapter settings.
    """

    adapter: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str | None = None
    max_tokens: int = 4096
    media_brand_terms: tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricsSettings:
    """
    Metrics buffer and flush cadence.
    """

    max_buffer_size: int = 1000
    flush_interval_seconds: int = 60


@dataclass(frozen=True)
class ObservabilitySettings:
    """
    Structured logging and error-tracking settings.
    """

    environment: str = "development"
    app_version: str | None = None
    sentry_dsn: str | None = None
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_import_settings() -> ImportSettings:
    """
    Return cached import settings from environment variables.
    """

    return ImportSettings(
        upsert_chunk_size=max(1, _get_int_env("IMPORT_UPSERT_CHUNK_SIZE", 100)),
        max_error_messages=max(1, _get_int_env("IMPORT_MAX_ERROR_MESSAGES", 5)),
        max_file_size_bytes=max(1, _get_int_env("IMPORT_MAX_FILE_SIZE_BYTES", 50 * 1024 * 1024)),
        ai_batch_size=max(1, _get_int_env("IMPORT_AI_BATCH_SIZE", 50)),
    )


@lru_cache(maxsize=1)
def get_retry_settings() -> RetrySettings:
    """
    Return AI retry policy settings from environment variables.
    """

    return RetrySettings(
        max_retries=max(0, _get_int_env("AI_RETRY_MAX_RETRIES", 3)),
        initial_delay_ms=max(0.0, _get_float_env("AI_RETRY_INITIAL_DELAY_MS", 1000.0)),
        max_delay_ms=max(0.0, _get_float_env("AI_RETRY_MAX_DELAY_MS", 10000.0)),
        backoff_multiplier=max(1.0, _get_float_env("AI_RETRY_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_intent_classifier_settings() -> IntentClassifierSettings:
    """
    Return intent classifier settings from environment variables.

    Unknown adapter names fall back to ``openai``.
    """

    adapter = _get_str_env("LLM_ADAPTER", "openai").lower()
    if adapter not in _ALLOWED_LLM_ADAPTERS:
        adapter = "openai"

    return IntentClassifierSettings(
        adapter=adapter,
        model=_get_str_env("LLM_MODEL", "gpt-4o-mini"),
        api_key=_get_optional_str_env("LLM_API_KEY") or _get_optional_str_env("OPENAI_API_KEY"),
        base_url=_get_optional_str_env("LLM_BASE_URL"),
        max_tokens=max(256, _get_int_env("LLM_MAX_TOKENS", 4096)),
        media_brand_terms=_get_csv_env("MEDIA_BRAND_TERMS"),
    )


@lru_cache(maxsize=1)
def get_metrics_settings() -> MetricsSettings:
    """
    Return metrics buffer settings from environment variables.
    """

    return MetricsSettings(
        max_buffer_size=max(1, _get_int_env("METRICS_MAX_BUFFER_SIZE", 1000)),
        flush_interval_seconds=max(1, _get_int_env("METRICS_FLUSH_INTERVAL_SECONDS", 60)),
    )


@lru_cache(maxsize=1)
def get_observability_settings() -> ObservabilitySettings:
    """
    Return logging and error-tracking settings from environment variables.
    """

    return ObservabilitySettings(
        environment=_get_str_env("ENVIRONMENT", "development").lower(),
        app_version=_get_optional_str_env("APP_VERSION"),
        sentry_dsn=_get_optional_str_env("SENTRY_DSN"),
        log_level=_get_str_env("LOG_LEVEL", "INFO").upper(),
    )
