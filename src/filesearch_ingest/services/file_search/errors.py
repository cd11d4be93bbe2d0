"""File Search client error types.

Every failure of the store client surfaces as a FileSearchError subclass.
The client never returns a sentinel on failure; the batch uploader is the
only layer that converts these into per-document results.
"""

from __future__ import annotations


class FileSearchError(Exception):
    """Base exception for File Search store operations.

    Attributes:
        message: Human-readable error message.
        operation: Store operation that failed (e.g. "upload file").
    """

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        return self.message


class RemoteServiceError(FileSearchError):
    """Raised when the remote service answers with a non-2xx status.

    The body is kept as raw text; error bodies are not guaranteed to be JSON.
    """

    def __init__(self, operation: str, status_code: int, body: str) -> None:
        super().__init__(f"Failed to {operation} ({status_code}): {body}", operation=operation)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(FileSearchError):
    """Raised when a 2xx response body is not the JSON object the operation expects.

    The raw body text is kept on ``body`` for diagnosis.
    """

    def __init__(self, operation: str, body: str, detail: str) -> None:
        super().__init__(
            f"Failed to {operation}: malformed response ({detail}): {body}",
            operation=operation,
        )
        self.body = body
        self.detail = detail


class StoreTransportError(FileSearchError):
    """Raised when the request never produced a response (DNS, reset, timeout)."""

    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(
            f"Failed to {operation}: {type(cause).__name__}: {cause}",
            operation=operation,
        )
        self.cause = cause


class UnsupportedOperationError(FileSearchError):
    """Raised before any I/O when the target API variant lacks an operation."""

    def __init__(self, operation: str, variant: str) -> None:
        super().__init__(
            f"Operation '{operation}' is not supported by the {variant} API variant",
            operation=operation,
        )
        self.variant = variant


class FileProcessingError(FileSearchError):
    """Raised when a remote file reaches the FAILED state."""

    def __init__(self, file_id: str, reason: str) -> None:
        super().__init__(f"File processing failed: {reason}", operation="wait for file")
        self.file_id = file_id
        self.reason = reason


class FileProcessingTimeoutError(FileSearchError):
    """Raised when a file does not reach a terminal state in time."""

    def __init__(self, file_id: str, max_wait_seconds: float) -> None:
        super().__init__(
            f"File processing timeout after {max_wait_seconds:g}s",
            operation="wait for file",
        )
        self.file_id = file_id
        self.max_wait_seconds = max_wait_seconds


class PaginationLimitError(FileSearchError):
    """Raised when a listing keeps returning continuation tokens past the page ceiling."""

    def __init__(self, operation: str, max_pages: int) -> None:
        super().__init__(
            f"Failed to {operation}: still paginating after {max_pages} pages",
            operation=operation,
        )
        self.max_pages = max_pages
