"""File Search store client and batch uploader.

Provides the REST client for both API variants and the sequential uploader
that aggregates per-document results.
"""

from filesearch_ingest.services.file_search.client import FileSearchClient
from filesearch_ingest.services.file_search.errors import (
    FileProcessingError,
    FileProcessingTimeoutError,
    FileSearchError,
    MalformedResponseError,
    PaginationLimitError,
    RemoteServiceError,
    StoreTransportError,
    UnsupportedOperationError,
)
from filesearch_ingest.services.file_search.uploader import BatchUploader, generate_file_name
from filesearch_ingest.services.file_search.variants import ApiVariant, StoreCapabilities

__all__ = [
    "ApiVariant",
    "BatchUploader",
    "FileProcessingError",
    "FileProcessingTimeoutError",
    "FileSearchClient",
    "FileSearchError",
    "MalformedResponseError",
    "PaginationLimitError",
    "RemoteServiceError",
    "StoreCapabilities",
    "StoreTransportError",
    "UnsupportedOperationError",
    "generate_file_name",
]
