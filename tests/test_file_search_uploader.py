"""Tests for the batch uploader.

The uploader drives a real FileSearchClient over httpx.MockTransport; the
fake store below serves uploads, status polls and deletes from memory.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from filesearch_ingest.models.document import DataSource, Document
from filesearch_ingest.models.results import UploadResult
from filesearch_ingest.services.file_search.client import FileSearchClient
from filesearch_ingest.services.file_search.uploader import BatchUploader, generate_file_name
from filesearch_ingest.services.file_search.variants import ApiVariant

STORE_ID = "store-1"
BASE_URL = "https://store.test/v1beta"

FILE_PATH = re.compile(r"^/v1beta/corpora/store-1/files/(?P<file_id>[^/]+)$")


class FakeStore:
    """In-memory corpora store behind a MockTransport handler."""

    def __init__(
        self,
        *,
        failing_uploads: set[int] | None = None,
        failing_deletes: set[str] | None = None,
        final_state: str = "ACTIVE",
        existing_files: list[str] | None = None,
    ) -> None:
        self.failing_uploads = failing_uploads or set()
        self.failing_deletes = failing_deletes or set()
        self.final_state = final_state
        self.files = list(existing_files or [])
        self.upload_requests: list[httpx.Request] = []
        self.deleted: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path.endswith("/files"):
            self.upload_requests.append(request)
            number = len(self.upload_requests)
            if number in self.failing_uploads:
                return httpx.Response(500, text="Internal Server Error")
            file_id = f"f{number}"
            self.files.append(file_id)
            return httpx.Response(200, json=self._file(file_id, "PROCESSING"))

        if request.method == "GET" and request.url.path.endswith("/files"):
            listing = [self._file(f, "ACTIVE") for f in self.files]
            return httpx.Response(200, json={"files": listing})

        match = FILE_PATH.match(request.url.path)
        if match and request.method == "GET":
            return httpx.Response(200, json=self._file(match["file_id"], self.final_state))
        if match and request.method == "DELETE":
            file_id = match["file_id"]
            if file_id in self.failing_deletes:
                return httpx.Response(500, text="delete failed")
            self.deleted.append(file_id)
            return httpx.Response(200, json={})

        return httpx.Response(404, text=f"unexpected {request.method} {request.url.path}")

    @staticmethod
    def _file(file_id: str, state: str) -> dict[str, Any]:
        return {"name": f"corpora/{STORE_ID}/files/{file_id}", "state": state}


class RecordingPacer:
    """Pacer that records each wait into a shared event log."""

    def __init__(self, events: list[str] | None = None) -> None:
        self.events = events if events is not None else []
        self.calls = 0

    async def wait(self) -> None:
        self.calls += 1
        self.events.append("pace")


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any
) -> FileSearchClient:
    return FileSearchClient(
        "test-api-key",
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestGenerateFileName:
    """Tests for file name derivation."""

    def test_pattern_uses_source_type_id_and_timestamp(
        self, make_document: Callable[..., Document]
    ) -> None:
        document = make_document("42")
        assert generate_file_name(document, now_ms=1700000000000) == (
            "github-issue-42-1700000000000.md"
        )

    def test_default_timestamp_is_current_millis(
        self, make_document: Callable[..., Document]
    ) -> None:
        name = generate_file_name(make_document("7", source=DataSource.SLACK, doc_type="thread"))
        assert re.fullmatch(r"slack-thread-7-\d{13}\.md", name)


class TestUploadDocument:
    """Tests for single-document uploads."""

    def test_success_returns_file_id(self, make_document: Callable[..., Document]) -> None:
        store = FakeStore()
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=RecordingPacer())

        result = asyncio.run(uploader.upload_document(make_document("1")))

        assert result.success is True
        assert result.file_id == "f1"
        assert result.error is None
        assert re.fullmatch(r"github-issue-1-\d+\.md", result.file_name)

    def test_file_name_override_is_used(self, make_document: Callable[..., Document]) -> None:
        store = FakeStore()
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=RecordingPacer())

        result = asyncio.run(uploader.upload_document(make_document("1", file_name="custom.md")))

        assert result.file_name == "custom.md"
        assert b'filename="custom.md"' in store.upload_requests[0].content

    def test_metadata_sent_with_wire_keys(self, make_document: Callable[..., Document]) -> None:
        store = FakeStore()
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=RecordingPacer())
        document = make_document("5", created_at="2025-03-01T10:00:00Z", labels=["bug"])

        asyncio.run(uploader.upload_document(document))

        body = store.upload_requests[0].content
        metadata_json = body.split(b'name="metadata"', 1)[1].split(b"\r\n\r\n", 1)[1]
        metadata_json = metadata_json.split(b"\r\n--", 1)[0]
        metadata = json.loads(metadata_json)["metadata"]
        assert metadata["source"] == "github"
        assert metadata["createdAt"] == "2025-03-01T10:00:00Z"
        assert metadata["labels"] == ["bug"]
        assert "author" not in metadata

    def test_remote_failure_becomes_failed_result(
        self, make_document: Callable[..., Document]
    ) -> None:
        store = FakeStore(failing_uploads={1})
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=RecordingPacer())

        result = asyncio.run(uploader.upload_document(make_document("1")))

        assert result.success is False
        assert result.file_id is None
        assert "500" in (result.error or "")
        assert "Internal Server Error" in (result.error or "")

    def test_processing_failure_becomes_failed_result(
        self, make_document: Callable[..., Document]
    ) -> None:
        store = FakeStore(final_state="FAILED")
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=RecordingPacer())

        result = asyncio.run(uploader.upload_document(make_document("1")))

        assert result.success is False
        assert result.error == "File processing failed: Unknown error"

    def test_processing_timeout_becomes_failed_result(
        self, make_document: Callable[..., Document]
    ) -> None:
        now = 0.0

        def clock() -> float:
            return now

        async def sleep(seconds: float) -> None:
            nonlocal now
            now += seconds

        store = FakeStore(final_state="PROCESSING")
        client = _make_client(store, poll_interval_seconds=1.0, sleep=sleep, clock=clock)
        uploader = BatchUploader(client, STORE_ID, pacer=RecordingPacer(), max_wait_seconds=3.0)

        result = asyncio.run(uploader.upload_document(make_document("1")))

        assert result.success is False
        assert result.error == "File processing timeout after 3s"


class TestUploadDocuments:
    """Tests for sequential batch uploads."""

    def test_partial_failure_counts(self, make_document: Callable[..., Document]) -> None:
        store = FakeStore(failing_uploads={2})
        pacer = RecordingPacer()
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=pacer)

        batch = asyncio.run(uploader.upload_documents([make_document("1"), make_document("2")]))

        assert batch.total_documents == 2
        assert batch.success_count == 1
        assert batch.failure_count == 1
        assert [r.success for r in batch.results] == [True, False]
        assert "500" in (batch.results[1].error or "")
        assert batch.duration_ms > 0
        assert pacer.calls == 2

    def test_results_follow_input_order(self, make_document: Callable[..., Document]) -> None:
        store = FakeStore()
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=RecordingPacer())
        documents = [make_document(str(i), file_name=f"doc-{i}.md") for i in range(4)]

        batch = asyncio.run(uploader.upload_documents(documents))

        assert [r.file_name for r in batch.results] == [f"doc-{i}.md" for i in range(4)]
        assert [r.file_id for r in batch.results] == ["f1", "f2", "f3", "f4"]

    def test_empty_batch(self) -> None:
        pacer = RecordingPacer()
        uploader = BatchUploader(_make_client(FakeStore()), STORE_ID, pacer=pacer)

        batch = asyncio.run(uploader.upload_documents([]))

        assert batch.total_documents == 0
        assert batch.results == ()
        assert pacer.calls == 0

    def test_progress_reported_before_pacing(
        self, make_document: Callable[..., Document]
    ) -> None:
        events: list[str] = []
        reported: list[tuple[int, int, bool]] = []

        def on_progress(current: int, total: int, result: UploadResult) -> None:
            events.append(f"progress-{current}")
            reported.append((current, total, result.success))

        store = FakeStore(failing_uploads={2})
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=RecordingPacer(events))

        asyncio.run(
            uploader.upload_documents_with_progress(
                [make_document("1"), make_document("2")], on_progress
            )
        )

        assert reported == [(1, 2, True), (2, 2, False)]
        assert events == ["progress-1", "pace", "progress-2", "pace"]

    def test_progress_callback_error_aborts_batch(
        self, make_document: Callable[..., Document]
    ) -> None:
        def on_progress(current: int, total: int, result: UploadResult) -> None:
            raise RuntimeError("display closed")

        store = FakeStore()
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=RecordingPacer())

        with pytest.raises(RuntimeError, match="display closed"):
            asyncio.run(
                uploader.upload_documents_with_progress(
                    [make_document("1"), make_document("2")], on_progress
                )
            )

        assert len(store.upload_requests) == 1

    def test_missing_store_id_warns_and_fails_uploads(
        self, make_document: Callable[..., Document], caplog: pytest.LogCaptureFixture
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="Corpus not found")

        with caplog.at_level(logging.WARNING):
            uploader = BatchUploader(_make_client(handler), pacer=RecordingPacer())

        assert "No store id configured" in caplog.text

        batch = asyncio.run(uploader.upload_documents([make_document("1")]))
        assert batch.failure_count == 1


class TestClearCorpus:
    """Tests for deleting every file in a store."""

    def test_skips_failed_deletes(self) -> None:
        store = FakeStore(existing_files=["a", "b", "c"], failing_deletes={"b"})
        pacer = RecordingPacer()
        uploader = BatchUploader(_make_client(store), STORE_ID, pacer=pacer)

        deleted = asyncio.run(uploader.clear_corpus())

        assert deleted == 2
        assert store.deleted == ["a", "c"]
        assert pacer.calls == 2

    def test_empty_store(self) -> None:
        uploader = BatchUploader(_make_client(FakeStore()), STORE_ID, pacer=RecordingPacer())
        assert asyncio.run(uploader.clear_corpus()) == 0

    def test_unsupported_variant_returns_zero_without_requests(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={})

        client = _make_client(handler, variant=ApiVariant.FILE_SEARCH_STORES)
        uploader = BatchUploader(client, STORE_ID, pacer=RecordingPacer())

        with caplog.at_level(logging.WARNING):
            deleted = asyncio.run(uploader.clear_corpus())

        assert deleted == 0
        assert requests == []
        assert "cannot list files" in caplog.text
