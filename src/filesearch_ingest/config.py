"""Environment-driven configuration for filesearch-ingest.

Settings are read from the process environment, falling back to a local env
file (``.env.local`` by default) for values the environment does not set.
Real environment variables always win over the file.

Environment variables:
    GOOGLE_GENERATIVE_AI_API_KEY: API key (required)
    GOOGLE_CORPUS_ID: Pre-provisioned store id (optional)
    FILESEARCH_API_VARIANT: corpora | fileSearchStores (default: corpora)
    FILESEARCH_BASE_URL: REST base URL
    FILESEARCH_UPLOAD_BASE_URL: Upload base URL
    FILESEARCH_TIMEOUT_SECONDS: Per-request timeout (default: 30)
    FILESEARCH_POLL_INTERVAL_SECONDS: Processing poll interval (default: 2)
    FILESEARCH_MAX_WAIT_SECONDS: Processing wait budget (default: 60)
    FILESEARCH_MAX_PAGES: Pagination ceiling for list-all (default: 1000)
    FILESEARCH_LOG_LEVEL: Logging level for the CLI (default: INFO)

Pacing variables are documented in rate_limit/pacing.py.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

import httpx
from dotenv import dotenv_values

from filesearch_ingest.rate_limit.pacing import (
    Pacer,
    PacingConfig,
    PacingConfigError,
    build_pacer,
    load_pacing_config,
)
from filesearch_ingest.services.file_search.client import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_PAGES,
    DEFAULT_MAX_WAIT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_UPLOAD_BASE_URL,
    FileSearchClient,
)
from filesearch_ingest.services.file_search.uploader import BatchUploader
from filesearch_ingest.services.file_search.variants import ApiVariant

logger = logging.getLogger(__name__)

ENV_API_KEY: Final[str] = "GOOGLE_GENERATIVE_AI_API_KEY"
ENV_STORE_ID: Final[str] = "GOOGLE_CORPUS_ID"
ENV_API_VARIANT: Final[str] = "FILESEARCH_API_VARIANT"
ENV_BASE_URL: Final[str] = "FILESEARCH_BASE_URL"
ENV_UPLOAD_BASE_URL: Final[str] = "FILESEARCH_UPLOAD_BASE_URL"
ENV_TIMEOUT_SECONDS: Final[str] = "FILESEARCH_TIMEOUT_SECONDS"
ENV_POLL_INTERVAL_SECONDS: Final[str] = "FILESEARCH_POLL_INTERVAL_SECONDS"
ENV_MAX_WAIT_SECONDS: Final[str] = "FILESEARCH_MAX_WAIT_SECONDS"
ENV_MAX_PAGES: Final[str] = "FILESEARCH_MAX_PAGES"
ENV_LOG_LEVEL: Final[str] = "FILESEARCH_LOG_LEVEL"

DEFAULT_ENV_FILE: Final[str] = ".env.local"


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Validated runtime settings (immutable).

    Attributes:
        api_key: Google Generative AI API key ("" only when not required).
        store_id: Default store id, or None.
        api_variant: Remote API variant to target.
        base_url: REST base URL.
        upload_base_url: Upload base URL.
        timeout_seconds: Per-request timeout.
        poll_interval_seconds: Delay between processing polls.
        max_wait_seconds: Processing wait budget per document.
        max_pages: Page ceiling for list-all operations.
        log_level: Logging level name.
        pacing: Pacing policy configuration.
    """

    api_key: str
    store_id: str | None = None
    api_variant: ApiVariant = ApiVariant.CORPORA
    base_url: str = DEFAULT_BASE_URL
    upload_base_url: str = DEFAULT_UPLOAD_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS
    max_pages: int = DEFAULT_MAX_PAGES
    log_level: str = "INFO"
    pacing: PacingConfig = field(default_factory=PacingConfig)


def _read_env(env_file: str | Path | None) -> dict[str, str]:
    """Merge the env file (if present) under the process environment."""
    merged: dict[str, str] = {}
    if env_file is not None and Path(env_file).is_file():
        merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        logger.debug("Loaded settings file %s", env_file)
    merged.update(os.environ)
    return merged


def _get_str(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key, "").strip()
    return value or None


def _get_positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = _get_str(env, key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a positive number, got '{raw}'") from e
    if value <= 0:
        raise ConfigError(f"{key} must be a positive number, got {value}")
    return value


def _get_positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = _get_str(env, key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a positive integer, got '{raw}'") from e
    if value <= 0:
        raise ConfigError(f"{key} must be a positive integer, got {value}")
    return value


def _load_pacing(env: Mapping[str, str]) -> PacingConfig:
    try:
        return load_pacing_config(env)
    except PacingConfigError as e:
        raise ConfigError(str(e)) from e


def load_settings(
    env_file: str | Path | None = DEFAULT_ENV_FILE,
    *,
    require_api_key: bool = True,
) -> Settings:
    """Load and validate settings.

    Args:
        env_file: Optional dotenv file consulted for unset variables.
        require_api_key: Raise when the API key is missing.

    Returns:
        Settings with validated values.

    Raises:
        ConfigError: If a required value is missing or any value is invalid.
    """
    env = _read_env(env_file)

    api_key = _get_str(env, ENV_API_KEY)
    if api_key is None and require_api_key:
        raise ConfigError(f"{ENV_API_KEY} is required")

    raw_variant = _get_str(env, ENV_API_VARIANT) or ApiVariant.CORPORA.value
    try:
        variant = ApiVariant(raw_variant)
    except ValueError as e:
        valid = ", ".join(v.value for v in ApiVariant)
        raise ConfigError(f"{ENV_API_VARIANT} must be one of {valid}, got '{raw_variant}'") from e

    store_id = _get_str(env, ENV_STORE_ID)

    log_level = (_get_str(env, ENV_LOG_LEVEL) or "INFO").upper()
    if log_level not in logging.getLevelNamesMapping():
        raise ConfigError(f"{ENV_LOG_LEVEL} must be a logging level name, got '{log_level}'")

    return Settings(
        api_key=api_key or "",
        store_id=store_id,
        api_variant=variant,
        base_url=_get_str(env, ENV_BASE_URL) or DEFAULT_BASE_URL,
        upload_base_url=_get_str(env, ENV_UPLOAD_BASE_URL) or DEFAULT_UPLOAD_BASE_URL,
        timeout_seconds=_get_positive_float(env, ENV_TIMEOUT_SECONDS, DEFAULT_TIMEOUT_SECONDS),
        poll_interval_seconds=_get_positive_float(
            env, ENV_POLL_INTERVAL_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS
        ),
        max_wait_seconds=_get_positive_float(env, ENV_MAX_WAIT_SECONDS, DEFAULT_MAX_WAIT_SECONDS),
        max_pages=_get_positive_int(env, ENV_MAX_PAGES, DEFAULT_MAX_PAGES),
        log_level=log_level,
        pacing=_load_pacing(env),
    )


def build_client(
    settings: Settings, *, http_client: httpx.AsyncClient | None = None
) -> FileSearchClient:
    """Construct a FileSearchClient from settings."""
    if not settings.api_key:
        raise ConfigError(f"{ENV_API_KEY} is required")
    return FileSearchClient(
        settings.api_key,
        variant=settings.api_variant,
        base_url=settings.base_url,
        upload_base_url=settings.upload_base_url,
        http_client=http_client,
        timeout_seconds=settings.timeout_seconds,
        poll_interval_seconds=settings.poll_interval_seconds,
        max_pages=settings.max_pages,
    )


def build_uploader(
    settings: Settings,
    client: FileSearchClient,
    *,
    store_id: str | None = None,
    pacer: Pacer | None = None,
) -> BatchUploader:
    """Construct a BatchUploader; ``store_id`` overrides the configured one."""
    return BatchUploader(
        client,
        store_id or settings.store_id,
        pacer=pacer if pacer is not None else build_pacer(settings.pacing),
        max_wait_seconds=settings.max_wait_seconds,
    )
