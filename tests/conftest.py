"""Pytest configuration and fixtures for filesearch-ingest tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from filesearch_ingest.models.document import DataSource, Document, DocumentMetadata

MANAGED_ENV_VARS = ("GOOGLE_GENERATIVE_AI_API_KEY", "GOOGLE_CORPUS_ID")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run every test without ambient settings.

    Clears the API key, store id and all FILESEARCH_* variables, and moves
    into a temp directory so a developer's .env.local is never read.
    """
    for key in list(os.environ):
        if key in MANAGED_ENV_VARS or key.startswith("FILESEARCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_document() -> Callable[..., Document]:
    """Factory for documents with sensible GitHub-issue defaults."""

    def _make(
        doc_id: str = "42",
        *,
        content: str = "# Flaky test\n\nThe integration suite times out.",
        source: DataSource = DataSource.GITHUB,
        doc_type: str = "issue",
        file_name: str | None = None,
        **extra: Any,
    ) -> Document:
        return Document(
            content=content,
            metadata=DocumentMetadata(
                source=source,
                type=doc_type,
                id=doc_id,
                url=f"https://github.com/acme/widgets/issues/{doc_id}",
                title=f"Issue {doc_id}",
                **extra,
            ),
            file_name=file_name,
        )

    return _make
