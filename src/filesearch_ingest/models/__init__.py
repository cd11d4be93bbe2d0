"""Domain models for document ingestion into File Search stores."""

from filesearch_ingest.models.document import DataSource, Document, DocumentMetadata
from filesearch_ingest.models.remote import (
    FileError,
    FilePage,
    FileState,
    RemoteFile,
    RemoteStore,
    StorePage,
    resource_id,
)
from filesearch_ingest.models.results import BatchUploadResult, UploadResult

__all__ = [
    "BatchUploadResult",
    "DataSource",
    "Document",
    "DocumentMetadata",
    "FileError",
    "FilePage",
    "FileState",
    "RemoteFile",
    "RemoteStore",
    "StorePage",
    "UploadResult",
    "resource_id",
]
