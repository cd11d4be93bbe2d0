"""Document model: a unit of text content queued for upload.

Documents are built by upstream transformers (GitHub issues, pull requests,
Slack threads, ...) and consumed exactly once by the batch uploader.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field


class DataSource(StrEnum):
    """Origin of a document."""

    GITHUB = "github"
    SLACK = "slack"
    ATLASSIAN = "atlassian"


class DocumentMetadata(BaseModel):
    """Metadata stored alongside each uploaded file.

    Attributes:
        source: Origin system.
        type: Free-form category (issue, pr, message, page, ...).
        id: Identifier unique within the origin system.
        url: Backlink to the original content.
        title: Optional title.
        author: Optional author handle.
        created_at: Optional creation timestamp (ISO 8601 string).
        updated_at: Optional update timestamp (ISO 8601 string).

    Additional keys are preserved as-is.
    """

    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
    )

    source: DataSource
    type: Annotated[str, Field(min_length=1)]
    id: Annotated[str, Field(min_length=1)]
    url: str
    title: str | None = None
    author: str | None = None
    created_at: Annotated[str | None, Field(default=None, alias="createdAt")]
    updated_at: Annotated[str | None, Field(default=None, alias="updatedAt")]

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire (camelCase) keys, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Document(BaseModel):
    """Text content plus metadata, ready for upload."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )

    content: str
    metadata: DocumentMetadata
    file_name: Annotated[
        str | None,
        Field(default=None, alias="fileName", description="Optional file name override"),
    ]
