"""Batch uploader for File Search stores.

Drives one-document-at-a-time ingestion:

1. Derive the file name (caller override or {source}-{type}-{id}-{ms}.md)
2. Upload through the store client
3. Wait for the file to reach ACTIVE
4. Record an UploadResult; pace before the next document

The uploader is the recovery boundary: every client failure for a document
becomes a failed UploadResult and the batch always runs to completion.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from filesearch_ingest.models.document import Document
from filesearch_ingest.models.remote import resource_id
from filesearch_ingest.models.results import BatchUploadResult, UploadResult
from filesearch_ingest.rate_limit.pacing import FixedIntervalPacer, Pacer
from filesearch_ingest.services.file_search.client import (
    DEFAULT_MAX_WAIT_SECONDS,
    FileSearchClient,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, UploadResult], None]


def generate_file_name(document: Document, now_ms: int | None = None) -> str:
    """Build ``{source}-{type}-{id}-{timestamp}.md`` from document metadata.

    The millisecond timestamp keeps repeated uploads of the same logical
    document distinct.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    meta = document.metadata
    return f"{meta.source.value}-{meta.type}-{meta.id}-{now_ms}.md"


class BatchUploader:
    """Uploads documents sequentially into one store."""

    def __init__(
        self,
        client: FileSearchClient,
        store_id: str | None = None,
        *,
        pacer: Pacer | None = None,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
    ) -> None:
        """Initialize the uploader.

        Args:
            client: Store client used for every request.
            store_id: Target store. When missing, construction only warns;
                each upload then fails at request time.
            pacer: Pacing policy applied after every attempt (default 500 ms).
            max_wait_seconds: Processing wait budget per document.
        """
        self._client = client
        self._store_id = store_id or ""
        self._pacer = pacer if pacer is not None else FixedIntervalPacer()
        self._max_wait_seconds = max_wait_seconds

        if not self._store_id:
            logger.warning("No store id configured (GOOGLE_CORPUS_ID); uploads will fail")

    @property
    def store_id(self) -> str:
        return self._store_id

    async def upload_document(self, document: Document) -> UploadResult:
        """Upload one document and wait for it to become ACTIVE.

        Never raises: any failure is returned as an UploadResult with
        success=False and the error message.
        """
        file_name = document.file_name or generate_file_name(document)

        try:
            logger.debug(
                "Uploading document",
                extra={
                    "file_name": file_name,
                    "source": document.metadata.source.value,
                    "doc_type": document.metadata.type,
                },
            )
            uploaded = await self._client.upload_file(
                self._store_id,
                document.content,
                display_name=file_name,
                metadata=document.metadata.to_wire(),
            )
            file_id = uploaded.file_id
            await self._client.wait_for_file_processing(
                self._store_id, file_id, max_wait_seconds=self._max_wait_seconds
            )
        except Exception as exc:
            logger.error(
                "Failed to upload document: %s", exc, extra={"file_name": file_name}, exc_info=True
            )
            return UploadResult(success=False, file_name=file_name, error=str(exc))

        return UploadResult(success=True, file_name=file_name, file_id=file_id)

    async def upload_documents(self, documents: Sequence[Document]) -> BatchUploadResult:
        """Upload documents strictly in order, pacing after every attempt."""
        return await self._run_batch(documents, on_progress=None)

    async def upload_documents_with_progress(
        self,
        documents: Sequence[Document],
        on_progress: ProgressCallback | None = None,
    ) -> BatchUploadResult:
        """Upload documents in order, reporting each result as it completes.

        ``on_progress(current, total, result)`` is called synchronously after
        each document, before pacing. ``current`` is 1-based. Exceptions
        raised by the callback propagate and abort the batch.
        """
        return await self._run_batch(documents, on_progress=on_progress)

    async def _run_batch(
        self,
        documents: Sequence[Document],
        on_progress: ProgressCallback | None,
    ) -> BatchUploadResult:
        start = time.perf_counter()
        total = len(documents)

        logger.info(
            "Starting batch upload",
            extra={"store_id": self._store_id, "document_count": total},
        )

        results: list[UploadResult] = []
        for index, document in enumerate(documents, start=1):
            result = await self.upload_document(document)
            results.append(result)

            if on_progress is not None:
                on_progress(index, total, result)

            await self._pacer.wait()

        batch = BatchUploadResult.from_results(results, (time.perf_counter() - start) * 1000)

        logger.info(
            "Batch upload completed: %d/%d succeeded in %.0fms",
            batch.success_count,
            batch.total_documents,
            batch.duration_ms,
            extra={
                "store_id": self._store_id,
                "success_count": batch.success_count,
                "failure_count": batch.failure_count,
            },
        )
        return batch

    async def clear_corpus(self) -> int:
        """Delete every file in the store. Destructive; cannot be undone.

        Per-file delete failures are logged and skipped.

        Returns:
            Number of files actually deleted.
        """
        if not self._client.capabilities.supports_file_listing:
            logger.warning(
                "Cannot clear store %s: the %s API cannot list files",
                self._store_id,
                self._client.variant.value,
            )
            return 0

        logger.warning("Clearing all files from store", extra={"store_id": self._store_id})

        files = await self._client.list_all_files(self._store_id)
        deleted_count = 0

        for remote_file in files:
            try:
                await self._client.delete_file(self._store_id, resource_id(remote_file.name))
                deleted_count += 1
                await self._pacer.wait()
            except Exception as exc:
                logger.error(
                    "Failed to delete file %s: %s", remote_file.name, exc, exc_info=True
                )

        logger.info(
            "Store cleared: %d of %d files deleted",
            deleted_count,
            len(files),
            extra={"store_id": self._store_id},
        )
        return deleted_count
