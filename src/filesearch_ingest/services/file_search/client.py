"""Google File Search REST client.

Translates store operations into authenticated HTTP calls against one of two
API variants (see variants.py). All failures raise a FileSearchError
subclass; nothing returns a sentinel.

Requests are issued one at a time. Each runs in a ``filesearch.request``
OpenTelemetry span whose URL attribute never carries the query string.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Final, TypeVar

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from filesearch_ingest.models.remote import (
    FileError,
    FilePage,
    FileState,
    RemoteFile,
    RemoteStore,
    StorePage,
)
from filesearch_ingest.observability.tracing import TRACER_NAME, sanitize_url
from filesearch_ingest.services.file_search.errors import (
    FileProcessingError,
    FileProcessingTimeoutError,
    MalformedResponseError,
    PaginationLimitError,
    RemoteServiceError,
    StoreTransportError,
    UnsupportedOperationError,
)
from filesearch_ingest.services.file_search.variants import (
    API_KEY_HEADER,
    API_KEY_QUERY_PARAM,
    ApiVariant,
    StoreCapabilities,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL: Final[str] = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_UPLOAD_BASE_URL: Final[str] = "https://generativelanguage.googleapis.com"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 2.0
DEFAULT_MAX_WAIT_SECONDS: Final[float] = 60.0
DEFAULT_MAX_PAGES: Final[int] = 1000
UPLOAD_CONTENT_TYPE: Final[str] = "text/plain"

SleepFn = Callable[[float], Awaitable[None]]
T = TypeVar("T")


class FileSearchClient:
    """Client for File Search store and file operations.

    Stateless apart from configuration; construct one explicitly and pass it
    to whatever needs it.
    """

    def __init__(
        self,
        api_key: str,
        *,
        variant: ApiVariant = ApiVariant.CORPORA,
        base_url: str = DEFAULT_BASE_URL,
        upload_base_url: str = DEFAULT_UPLOAD_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_pages: int = DEFAULT_MAX_PAGES,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Google Generative AI API key.
            variant: Remote API variant to target.
            base_url: REST base URL (including the API version).
            upload_base_url: Base URL for media uploads (variant B).
            http_client: Optional httpx.AsyncClient for dependency injection
                (testing). It is used as-is and never closed by this client.
            timeout_seconds: Per-request timeout for internally created clients.
            poll_interval_seconds: Delay between polls in wait_for_file_processing.
            max_pages: Page ceiling for list_all_* before PaginationLimitError.
            sleep: Awaitable sleep, injectable for tests.
            clock: Monotonic clock in seconds, injectable for tests.

        Raises:
            ValueError: If api_key is empty or max_pages is not positive.
        """
        if not api_key:
            raise ValueError("api_key is required")
        if max_pages <= 0:
            raise ValueError(f"max_pages must be a positive integer, got {max_pages}")

        self._api_key = api_key
        self._capabilities = StoreCapabilities.for_variant(variant)
        self._base_url = base_url.rstrip("/")
        self._upload_base_url = upload_base_url.rstrip("/")
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds
        self._poll_interval_seconds = poll_interval_seconds
        self._max_pages = max_pages
        self._sleep = sleep
        self._clock = clock

    @property
    def variant(self) -> ApiVariant:
        return self._capabilities.variant

    @property
    def capabilities(self) -> StoreCapabilities:
        """Capability descriptor of the targeted API variant."""
        return self._capabilities

    @property
    def poll_interval_seconds(self) -> float:
        return self._poll_interval_seconds

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    async def create_store(self, display_name: str) -> RemoteStore:
        """Create a new store."""
        logger.info("Creating File Search store", extra={"display_name": display_name})

        response = await self._request(
            "POST",
            self._store_url(),
            operation="create store",
            json_body={"displayName": display_name},
        )
        store = _decode(response, "create store", RemoteStore.model_validate)

        logger.info(
            "Store created", extra={"store_name": store.name, "store_id": store.store_id}
        )
        return store

    async def get_store(self, store_id: str) -> RemoteStore:
        """Get store details. Unknown ids raise RemoteServiceError."""
        logger.debug("Getting store details", extra={"store_id": store_id})

        response = await self._request("GET", self._store_url(store_id), operation="get store")
        return _decode(response, "get store", RemoteStore.model_validate)

    async def delete_store(self, store_id: str, *, force: bool = False) -> None:
        """Delete a store.

        Args:
            store_id: Store to delete.
            force: Also delete any files the store still holds.
        """
        logger.info("Deleting store", extra={"store_id": store_id, "force": force})

        await self._request(
            "DELETE",
            self._store_url(store_id),
            operation="delete store",
            params={"force": "true"} if force else None,
        )
        logger.info("Store deleted", extra={"store_id": store_id})

    async def list_stores(
        self, page_token: str | None = None, page_size: int | None = None
    ) -> StorePage:
        """List one page of stores."""
        logger.debug("Listing stores", extra={"page_token": page_token, "page_size": page_size})

        response = await self._request(
            "GET",
            self._store_url(),
            operation="list stores",
            params=_page_params(page_token, page_size),
        )
        collection = self._capabilities.collection
        return _decode(
            response,
            "list stores",
            lambda data: StorePage(
                stores=[RemoteStore.model_validate(item) for item in data.get(collection) or []],
                next_page_token=data.get("nextPageToken") or None,
            ),
        )

    async def list_all_stores(self) -> list[RemoteStore]:
        """List every store, following continuation tokens in order."""
        stores: list[RemoteStore] = []
        page_token: str | None = None

        for _ in range(self._max_pages):
            page = await self.list_stores(page_token=page_token)
            stores.extend(page.stores)
            page_token = page.next_page_token
            if not page_token:
                logger.debug("All stores listed", extra={"total_count": len(stores)})
                return stores

        raise PaginationLimitError("list all stores", self._max_pages)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        store_id: str,
        content: str | bytes,
        *,
        display_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RemoteFile:
        """Upload text or raw bytes into a store as a multipart payload.

        Args:
            store_id: Target store.
            content: File body; text is encoded as UTF-8.
            display_name: Name shown for the file (default document-<ms>.txt).
            metadata: Optional metadata attached as a sibling JSON part.

        Returns:
            The remote file record. Variant A returns the file as created
            (normally PROCESSING). Variant B maps its upload operation to a
            RemoteFile that is ACTIVE once the operation is done.

        Raises:
            RemoteServiceError: On non-2xx response.
            StoreTransportError: When no response is received.
            FileProcessingError: When a variant B operation reports an error.
        """
        if display_name is None:
            display_name = f"document-{int(time.time() * 1000)}.txt"
        body = content.encode("utf-8") if isinstance(content, str) else content

        logger.info(
            "Uploading file to store",
            extra={"store_id": store_id, "display_name": display_name, "content_size": len(body)},
        )

        files: list[tuple[str, tuple[str | None, bytes, str]]] = [
            ("file", (display_name, body, UPLOAD_CONTENT_TYPE))
        ]

        if self._capabilities.variant == ApiVariant.CORPORA:
            if metadata:
                files.append(
                    ("metadata", (None, _json_bytes({"metadata": metadata}), "application/json"))
                )
            response = await self._request(
                "POST",
                f"{self._store_url(store_id)}/files",
                operation="upload file",
                files=files,
            )
            uploaded = _decode(response, "upload file", RemoteFile.model_validate)
        else:
            upload_metadata: dict[str, Any] = {"displayName": display_name}
            if metadata:
                upload_metadata["customMetadata"] = _custom_metadata(metadata)
            files.insert(0, ("metadata", (None, _json_bytes(upload_metadata), "application/json")))
            response = await self._request(
                "POST",
                f"{self._upload_base_url}/upload/v1beta/{self._capabilities.collection}/"
                f"{store_id}:uploadToFileSearchStore",
                operation="upload file",
                params={"uploadType": "multipart"},
                files=files,
            )
            uploaded = _decode(
                response, "upload file", lambda data: _file_from_operation(data, display_name)
            )

        logger.info(
            "File uploaded",
            extra={
                "store_id": store_id,
                "file_name": uploaded.name,
                "file_id": uploaded.file_id,
                "state": uploaded.state.value,
            },
        )
        return uploaded

    async def list_files(
        self,
        store_id: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> FilePage:
        """List one page of files in a store.

        Variant B cannot enumerate files; it returns an empty page without
        calling the service.
        """
        if not self._capabilities.supports_file_listing:
            logger.debug(
                "File listing not supported by %s; returning empty page",
                self._capabilities.variant.value,
            )
            return FilePage()

        logger.debug(
            "Listing files in store",
            extra={"store_id": store_id, "page_token": page_token, "page_size": page_size},
        )
        response = await self._request(
            "GET",
            f"{self._store_url(store_id)}/files",
            operation="list files",
            params=_page_params(page_token, page_size),
        )
        return _decode(
            response,
            "list files",
            lambda data: FilePage(
                files=[RemoteFile.model_validate(item) for item in data.get("files") or []],
                next_page_token=data.get("nextPageToken") or None,
            ),
        )

    async def list_all_files(self, store_id: str) -> list[RemoteFile]:
        """List every file in a store, following continuation tokens in order."""
        files: list[RemoteFile] = []
        page_token: str | None = None

        for _ in range(self._max_pages):
            page = await self.list_files(store_id, page_token=page_token)
            files.extend(page.files)
            page_token = page.next_page_token
            if not page_token:
                logger.debug(
                    "All files listed", extra={"store_id": store_id, "total_count": len(files)}
                )
                return files

        raise PaginationLimitError("list all files", self._max_pages)

    async def get_file(self, store_id: str, file_id: str) -> RemoteFile:
        """Get file details (variant A only)."""
        self._require(self._capabilities.supports_file_get, "get file")
        logger.debug("Getting file details", extra={"store_id": store_id, "file_id": file_id})

        response = await self._request(
            "GET", f"{self._store_url(store_id)}/files/{file_id}", operation="get file"
        )
        return _decode(response, "get file", RemoteFile.model_validate)

    async def delete_file(self, store_id: str, file_id: str) -> None:
        """Delete a file from a store (variant A only)."""
        self._require(self._capabilities.supports_file_delete, "delete file")
        logger.info("Deleting file from store", extra={"store_id": store_id, "file_id": file_id})

        await self._request(
            "DELETE", f"{self._store_url(store_id)}/files/{file_id}", operation="delete file"
        )
        logger.info("File deleted", extra={"store_id": store_id, "file_id": file_id})

    async def wait_for_file_processing(
        self,
        store_id: str,
        file_id: str,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
    ) -> RemoteFile:
        """Poll a file until it is ACTIVE, FAILED, or the wait budget runs out.

        Polling only reads the file; it never changes the remote resource.
        Returns within ``max_wait_seconds`` plus one poll interval.

        Under variant B file state cannot be observed, so a synthetic ACTIVE
        record is returned immediately. That does not guarantee the service
        has finished indexing.

        Raises:
            FileProcessingError: The file reached FAILED.
            FileProcessingTimeoutError: No terminal state within the budget.
        """
        if not self._capabilities.supports_processing_state:
            return RemoteFile(
                name=f"{self._capabilities.collection}/{store_id}/documents/{file_id}",
                state=FileState.ACTIVE,
            )

        logger.info(
            "Waiting for file to process",
            extra={"store_id": store_id, "file_id": file_id, "max_wait_seconds": max_wait_seconds},
        )
        start = self._clock()

        while self._clock() - start < max_wait_seconds:
            remote_file = await self.get_file(store_id, file_id)

            if remote_file.state.is_terminal:
                if remote_file.state == FileState.FAILED:
                    error = remote_file.error
                    reason = (error.message if error else "") or "Unknown error"
                    logger.error("File processing failed: %s", reason, extra={"file_id": file_id})
                    raise FileProcessingError(file_id, reason)
                logger.info("File processing complete", extra={"file_id": file_id})
                return remote_file

            await self._sleep(self._poll_interval_seconds)

        raise FileProcessingTimeoutError(file_id, max_wait_seconds)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _store_url(self, store_id: str | None = None) -> str:
        url = f"{self._base_url}/{self._capabilities.collection}"
        return f"{url}/{store_id}" if store_id is not None else url

    def _require(self, supported: bool, operation: str) -> None:
        if not supported:
            raise UnsupportedOperationError(operation, self._capabilities.variant.value)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        files: list[Any] | None = None,
    ) -> httpx.Response:
        """Send one authenticated request; raise on transport error or non-2xx."""
        headers: dict[str, str] = {}
        query = dict(params or {})
        if self._capabilities.api_key_in_header:
            headers[API_KEY_HEADER] = self._api_key
        else:
            query[API_KEY_QUERY_PARAM] = self._api_key

        tracer = trace.get_tracer(TRACER_NAME)
        with tracer.start_as_current_span(
            "filesearch.request",
            attributes={
                "http.method": method,
                "http.url": sanitize_url(url),
                "filesearch.operation": operation,
                "filesearch.variant": self._capabilities.variant.value,
            },
        ) as span:
            try:
                response = await self._send(
                    method, url, headers=headers, params=query or None, json=json_body, files=files
                )
            except httpx.RequestError as exc:
                span.record_exception(exc)
                span.set_status(trace.StatusCode.ERROR, f"Transport error: {type(exc).__name__}")
                logger.error("Failed to %s: %s", operation, exc)
                raise StoreTransportError(operation, exc) from exc

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                body = response.text
                span.set_status(trace.StatusCode.ERROR, f"HTTP {response.status_code}")
                logger.error(
                    "Failed to %s",
                    operation,
                    extra={"status_code": response.status_code, "reason": response.reason_phrase},
                )
                raise RemoteServiceError(operation, response.status_code, body)

            return response

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            return await client.request(method, url, **kwargs)


def _page_params(page_token: str | None, page_size: int | None) -> dict[str, str] | None:
    params: dict[str, str] = {}
    if page_token:
        params["pageToken"] = page_token
    if page_size:
        params["pageSize"] = str(page_size)
    return params or None


def _decode(
    response: httpx.Response, operation: str, build: Callable[[dict[str, Any]], T]
) -> T:
    """Parse a 2xx JSON object body with ``build``.

    Raises:
        MalformedResponseError: If the body is not JSON, is not an object, or
            does not have the shape ``build`` expects.
    """
    try:
        payload = response.json()
    except ValueError as exc:
        logger.error("Failed to %s: response body is not JSON", operation)
        raise MalformedResponseError(operation, response.text, "body is not JSON") from exc
    if not isinstance(payload, dict):
        detail = f"expected a JSON object, got {type(payload).__name__}"
        logger.error("Failed to %s: %s", operation, detail)
        raise MalformedResponseError(operation, response.text, detail)
    try:
        return build(payload)
    except ValidationError as exc:
        detail = f"{exc.error_count()} invalid field(s)"
        logger.error("Failed to %s: %s", operation, detail)
        raise MalformedResponseError(operation, response.text, detail) from exc


def _json_bytes(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


def _custom_metadata(metadata: dict[str, Any]) -> list[dict[str, Any]]:
    """Convert a flat mapping into the store's typed key/value list."""
    entries: list[dict[str, Any]] = []
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, bool):
            entries.append({"key": key, "stringValue": str(value).lower()})
        elif isinstance(value, int | float):
            entries.append({"key": key, "numericValue": value})
        elif isinstance(value, list) and all(isinstance(v, str) for v in value):
            entries.append({"key": key, "stringListValue": {"values": value}})
        elif isinstance(value, str):
            entries.append({"key": key, "stringValue": value})
        else:
            entries.append({"key": key, "stringValue": json.dumps(value, sort_keys=True)})
    return entries


def _file_from_operation(operation: dict[str, Any], display_name: str) -> RemoteFile:
    """Map a variant B upload operation onto a RemoteFile."""
    error = operation.get("error")
    if error:
        detail = FileError.model_validate(error)
        raise FileProcessingError(operation.get("name", ""), detail.message or "Unknown error")

    response = operation.get("response")
    if not isinstance(response, dict):
        response = {}
    name = response.get("documentName") or response.get("name") or operation.get("name", "")
    return RemoteFile(
        name=name,
        display_name=display_name,
        state=FileState.ACTIVE if operation.get("done") else FileState.PROCESSING,
    )
