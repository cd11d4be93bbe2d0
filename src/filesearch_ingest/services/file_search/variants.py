"""Remote API variants and their capability descriptors.

Two mutually exclusive API shapes exist:

- CORPORA (legacy): per-file listing, get, and delete, with observable
  processing state. Authenticated with the X-Goog-Api-Key header.
- FILE_SEARCH_STORES: store-level operations plus an asynchronous upload
  operation. Individual files cannot be listed, fetched, or deleted.
  Authenticated with the ``key`` query parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final

API_KEY_HEADER: Final[str] = "X-Goog-Api-Key"
API_KEY_QUERY_PARAM: Final[str] = "key"


class ApiVariant(StrEnum):
    """Remote API variant; values are the collection path segment."""

    CORPORA = "corpora"
    FILE_SEARCH_STORES = "fileSearchStores"


@dataclass(frozen=True)
class StoreCapabilities:
    """What the target variant can do, so callers branch instead of failing.

    Attributes:
        variant: The API variant described.
        supports_file_listing: Files in a store can be enumerated.
        supports_file_get: A single file can be fetched by id.
        supports_file_delete: A single file can be deleted by id.
        supports_processing_state: File state can be polled until terminal.
        api_key_in_header: Key goes in a header rather than the query string.
    """

    variant: ApiVariant
    supports_file_listing: bool
    supports_file_get: bool
    supports_file_delete: bool
    supports_processing_state: bool
    api_key_in_header: bool

    @property
    def collection(self) -> str:
        """Collection path segment for store resources."""
        return self.variant.value

    @classmethod
    def for_variant(cls, variant: ApiVariant) -> StoreCapabilities:
        """Return the capability descriptor for ``variant``."""
        return _CAPABILITIES[ApiVariant(variant)]


_CAPABILITIES: dict[ApiVariant, StoreCapabilities] = {
    ApiVariant.CORPORA: StoreCapabilities(
        variant=ApiVariant.CORPORA,
        supports_file_listing=True,
        supports_file_get=True,
        supports_file_delete=True,
        supports_processing_state=True,
        api_key_in_header=True,
    ),
    ApiVariant.FILE_SEARCH_STORES: StoreCapabilities(
        variant=ApiVariant.FILE_SEARCH_STORES,
        supports_file_listing=False,
        supports_file_get=False,
        supports_file_delete=False,
        supports_processing_state=False,
        api_key_in_header=False,
    ),
}
