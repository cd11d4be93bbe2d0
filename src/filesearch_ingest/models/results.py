"""Upload outcome records produced by the batch uploader."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UploadResult:
    """Outcome of one attempted document upload.

    Attributes:
        success: True if the file was uploaded and reached ACTIVE.
        file_name: Display name the document was uploaded under.
        file_id: Remote file id, when the upload was accepted.
        error: Error message when ``success`` is False.
    """

    success: bool
    file_name: str
    file_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class BatchUploadResult:
    """Aggregate over one batch; ``results[i]`` belongs to ``documents[i]``.

    Attributes:
        total_documents: Number of documents in the batch.
        success_count: Results with success=True.
        failure_count: Results with success=False.
        results: Per-document results in input order.
        duration_ms: Wall-clock duration of the whole batch.
    """

    total_documents: int
    success_count: int
    failure_count: int
    results: tuple[UploadResult, ...]
    duration_ms: float

    @classmethod
    def from_results(cls, results: list[UploadResult], duration_ms: float) -> BatchUploadResult:
        success_count = sum(1 for r in results if r.success)
        return cls(
            total_documents=len(results),
            success_count=success_count,
            failure_count=len(results) - success_count,
            results=tuple(results),
            duration_ms=duration_ms,
        )
