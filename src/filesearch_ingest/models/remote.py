"""Wire models for the remote File Search service.

The service speaks camelCase JSON; these models accept it through aliases
and expose snake_case attributes. Unknown keys are ignored so new server
fields never break parsing.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def resource_id(resource_name: str) -> str:
    """Return the trailing path segment of a resource name.

    e.g. "corpora/abc/files/xyz" -> "xyz"
    """
    return resource_name.rstrip("/").rsplit("/", 1)[-1] or resource_name


class FileState(StrEnum):
    """Processing state of a remote file.

    PROCESSING -> ACTIVE and PROCESSING -> FAILED are the only transitions;
    ACTIVE and FAILED are terminal.
    """

    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (FileState.ACTIVE, FileState.FAILED)


_WIRE_CONFIG = ConfigDict(extra="ignore", populate_by_name=True)


class FileError(BaseModel):
    """Error detail attached to a FAILED file."""

    model_config = _WIRE_CONFIG

    code: int = 0
    message: str = ""


class RemoteFile(BaseModel):
    """The store's record of one uploaded document."""

    model_config = _WIRE_CONFIG

    name: str
    display_name: str | None = Field(default=None, alias="displayName")
    mime_type: str | None = Field(default=None, alias="mimeType")
    size_bytes: str | None = Field(default=None, alias="sizeBytes")
    create_time: str | None = Field(default=None, alias="createTime")
    update_time: str | None = Field(default=None, alias="updateTime")
    expiration_time: str | None = Field(default=None, alias="expirationTime")
    sha256_hash: str | None = Field(default=None, alias="sha256Hash")
    uri: str | None = None
    state: FileState = FileState.STATE_UNSPECIFIED
    error: FileError | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("state", mode="before")
    @classmethod
    def _coerce_state(cls, value: Any) -> Any:
        if value is None or value not in FileState.__members__:
            return FileState.STATE_UNSPECIFIED
        return value

    @field_validator("size_bytes", mode="before")
    @classmethod
    def _stringify_size(cls, value: Any) -> Any:
        # int64 fields arrive as strings, but tolerate numbers
        return str(value) if isinstance(value, int) else value

    @property
    def file_id(self) -> str:
        """Local id of the file (trailing segment of ``name``)."""
        return resource_id(self.name)


class RemoteStore(BaseModel):
    """A remote document collection (corpus or file search store)."""

    model_config = _WIRE_CONFIG

    name: str
    display_name: str | None = Field(default=None, alias="displayName")
    create_time: str | None = Field(default=None, alias="createTime")
    update_time: str | None = Field(default=None, alias="updateTime")

    @property
    def store_id(self) -> str:
        """Local id of the store (trailing segment of ``name``)."""
        return resource_id(self.name)


class StorePage(BaseModel):
    """One page of a store listing."""

    stores: list[RemoteStore] = Field(default_factory=list)
    next_page_token: str | None = None


class FilePage(BaseModel):
    """One page of a file listing."""

    files: list[RemoteFile] = Field(default_factory=list)
    next_page_token: str | None = None
