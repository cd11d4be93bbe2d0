"""Tests for environment-driven settings.

The autouse fixture in conftest.py clears related variables and runs each
test inside tmp_path, so .env.local files here are written to tmp_path.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from filesearch_ingest.config import (
    ConfigError,
    Settings,
    build_client,
    build_uploader,
    load_settings,
)
from filesearch_ingest.rate_limit.pacing import PacingMode
from filesearch_ingest.services.file_search.variants import ApiVariant


def _write_env_file(path: Path, **values: str) -> Path:
    path.write_text("".join(f"{k}={v}\n" for k, v in values.items()), encoding="utf-8")
    return path


class TestLoadSettings:
    """Tests for load_settings."""

    def test_missing_api_key_rejected(self) -> None:
        with pytest.raises(ConfigError, match="GOOGLE_GENERATIVE_AI_API_KEY"):
            load_settings()

    def test_api_key_optional_when_not_required(self) -> None:
        settings = load_settings(require_api_key=False)
        assert settings.api_key == ""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "key-123")

        settings = load_settings()

        assert settings.api_key == "key-123"
        assert settings.store_id is None
        assert settings.api_variant == ApiVariant.CORPORA
        assert settings.timeout_seconds == 30.0
        assert settings.poll_interval_seconds == 2.0
        assert settings.max_wait_seconds == 60.0
        assert settings.max_pages == 1000
        assert settings.log_level == "INFO"
        assert settings.pacing.mode == PacingMode.FIXED

    def test_reads_local_env_file(self, tmp_path: Path) -> None:
        _write_env_file(
            tmp_path / ".env.local",
            GOOGLE_GENERATIVE_AI_API_KEY="file-key",
            GOOGLE_CORPUS_ID="store-from-file",
            FILESEARCH_API_VARIANT="fileSearchStores",
        )

        settings = load_settings()

        assert settings.api_key == "file-key"
        assert settings.store_id == "store-from-file"
        assert settings.api_variant == ApiVariant.FILE_SEARCH_STORES

    def test_environment_wins_over_env_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        env_file = _write_env_file(
            tmp_path / "custom.env",
            GOOGLE_GENERATIVE_AI_API_KEY="file-key",
            GOOGLE_CORPUS_ID="file-store",
        )
        monkeypatch.setenv("GOOGLE_CORPUS_ID", "env-store")

        settings = load_settings(env_file)

        assert settings.api_key == "file-key"
        assert settings.store_id == "env-store"

    def test_missing_env_file_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "key-123")
        assert load_settings("does-not-exist.env").api_key == "key-123"

    def test_numeric_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "key-123")
        monkeypatch.setenv("FILESEARCH_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("FILESEARCH_POLL_INTERVAL_SECONDS", "0.25")
        monkeypatch.setenv("FILESEARCH_MAX_WAIT_SECONDS", "120")
        monkeypatch.setenv("FILESEARCH_MAX_PAGES", "50")
        monkeypatch.setenv("FILESEARCH_LOG_LEVEL", "debug")

        settings = load_settings()

        assert settings.timeout_seconds == 5.0
        assert settings.poll_interval_seconds == 0.25
        assert settings.max_wait_seconds == 120.0
        assert settings.max_pages == 50
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("FILESEARCH_API_VARIANT", "semanticRetriever"),
            ("FILESEARCH_TIMEOUT_SECONDS", "fast"),
            ("FILESEARCH_MAX_WAIT_SECONDS", "0"),
            ("FILESEARCH_MAX_PAGES", "-3"),
            ("FILESEARCH_LOG_LEVEL", "LOUD"),
            ("FILESEARCH_PACING_MODE", "exponential"),
        ],
    )
    def test_invalid_values_rejected(
        self, monkeypatch: pytest.MonkeyPatch, key: str, value: str
    ) -> None:
        monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "key-123")
        monkeypatch.setenv(key, value)

        with pytest.raises(ConfigError, match=key):
            load_settings()

    def test_pacing_read_from_env_file(self, tmp_path: Path) -> None:
        _write_env_file(
            tmp_path / ".env.local",
            GOOGLE_GENERATIVE_AI_API_KEY="file-key",
            FILESEARCH_PACING_MODE="none",
        )
        assert load_settings().pacing.mode == PacingMode.NONE


class TestBuilders:
    """Tests for client and uploader construction."""

    def test_build_client_applies_settings(self) -> None:
        settings = Settings(api_key="key-123", api_variant=ApiVariant.FILE_SEARCH_STORES)

        client = build_client(settings, http_client=httpx.AsyncClient())

        assert client.variant == ApiVariant.FILE_SEARCH_STORES
        assert client.poll_interval_seconds == 2.0

    def test_build_client_requires_api_key(self) -> None:
        with pytest.raises(ConfigError):
            build_client(Settings(api_key=""))

    def test_build_uploader_store_override(self) -> None:
        settings = Settings(api_key="key-123", store_id="configured")
        client = build_client(settings)

        assert build_uploader(settings, client).store_id == "configured"
        assert build_uploader(settings, client, store_id="override").store_id == "override"
