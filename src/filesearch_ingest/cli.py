"""filesearch-ingest CLI - store housekeeping and ad-hoc uploads.

Usage:
    filesearch-ingest create-store [--display-name NAME] [--write-env PATH]
    filesearch-ingest list-stores
    filesearch-ingest delete-all-stores --yes
    filesearch-ingest clear-store [--store-id ID] --yes
    filesearch-ingest upload PATH... --source github --type issue [--store-id ID]

Global options:
    --env-file PATH   dotenv file consulted for unset variables (default .env.local)
    -v, --verbose     debug logging

Exit codes:
    0: Success
    1: Operation failed / Internal error
    2: Usage or configuration error
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from collections.abc import Sequence
from pathlib import Path

from dotenv import dotenv_values, set_key

from filesearch_ingest.config import (
    DEFAULT_ENV_FILE,
    ENV_STORE_ID,
    ConfigError,
    Settings,
    build_client,
    build_uploader,
    load_settings,
)
from filesearch_ingest.models.document import DataSource, Document, DocumentMetadata
from filesearch_ingest.models.remote import RemoteStore
from filesearch_ingest.models.results import UploadResult
from filesearch_ingest.observability.tracing import TracingConfigError, configure_tracing
from filesearch_ingest.services.file_search.client import FileSearchClient
from filesearch_ingest.services.file_search.errors import FileSearchError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
STORE_ID_PLACEHOLDER = "your_corpus_id_here"
# These log full request URLs, which carry the API key under fileSearchStores
QUIET_LOGGERS = ("httpx", "httpcore")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("filesearch_ingest").setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _update_env_file(env_path: Path, store_id: str) -> str:
    """Record the store id in a dotenv file; returns a short status message."""
    if env_path.exists():
        current = dotenv_values(env_path).get(ENV_STORE_ID)
        if current and current != STORE_ID_PLACEHOLDER:
            return f"{ENV_STORE_ID} already set in {env_path}; update it manually if needed"
    set_key(str(env_path), ENV_STORE_ID, store_id, quote_mode="never")
    return f"Wrote {ENV_STORE_ID}={store_id} to {env_path}"


async def _create_store(settings: Settings, args: argparse.Namespace) -> int:
    client = build_client(settings)
    display_name = args.display_name or f"filesearch-ingest-{int(time.time() * 1000)}"

    store = await client.create_store(display_name)

    print("Store created")
    print(f"  Name: {store.display_name}")
    print(f"  ID: {store.store_id}")
    print(f"  Resource Name: {store.name}")
    print(f"  Created: {store.create_time}")
    if args.write_env:
        print(_update_env_file(Path(args.write_env), store.store_id))
    else:
        print(f"\nAdd this to your environment:\n  {ENV_STORE_ID}={store.store_id}")
    return EXIT_OK


async def _list_stores(settings: Settings, args: argparse.Namespace) -> int:
    client = build_client(settings)
    stores = await client.list_all_stores()

    if not stores:
        print("No stores found. Run: filesearch-ingest create-store")
        return EXIT_OK

    print(f"Found {len(stores)} store(s):\n")
    for index, store in enumerate(stores, start=1):
        print(f"{index}. {store.display_name}")
        print(f"   ID: {store.store_id}")
        print(f"   Resource Name: {store.name}")
        print(f"   Created: {store.create_time}")
        print(f"   Updated: {store.update_time}")

    # ISO 8601 UTC timestamps sort lexically
    most_recent = max(stores, key=lambda s: s.update_time or "")
    print(f"\nMost recently updated: {most_recent.display_name}")
    print(f"  Suggested {ENV_STORE_ID}={most_recent.store_id}")
    return EXIT_OK


async def _clear_before_delete(
    settings: Settings, client: FileSearchClient, store: RemoteStore
) -> None:
    """Empty a store ahead of deleting it; a failure here only warns."""
    uploader = build_uploader(settings, client, store_id=store.store_id)
    try:
        cleared = await uploader.clear_corpus()
    except FileSearchError as exc:
        logger.warning(
            "Could not clear files before deleting store",
            extra={"store_id": store.store_id, "error": str(exc)},
        )
        print(f"  Warning: could not clear files from {store.display_name}: {exc}")
        return
    print(f"  Deleted {cleared} file(s) from {store.display_name}")


async def _delete_all_stores(settings: Settings, args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to delete every store without --yes", file=sys.stderr)
        return EXIT_USAGE

    client = build_client(settings)
    stores = await client.list_all_stores()
    if not stores:
        print("No stores found. Nothing to delete.")
        return EXIT_OK

    deleted = 0
    failed = 0
    for store in stores:
        try:
            if client.capabilities.supports_file_listing:
                await _clear_before_delete(settings, client, store)
                await client.delete_store(store.store_id)
            else:
                await client.delete_store(store.store_id, force=True)
        except FileSearchError as exc:
            failed += 1
            print(f"  Failed to delete {store.display_name} ({store.store_id}): {exc}")
            continue
        deleted += 1
        print(f"  Deleted: {store.display_name} ({store.store_id})")

    print(f"\nSummary: {deleted} deleted, {failed} failed")
    return EXIT_OK if failed == 0 else EXIT_FAILED


async def _clear_store(settings: Settings, args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to delete every file without --yes", file=sys.stderr)
        return EXIT_USAGE

    client = build_client(settings)
    uploader = build_uploader(settings, client, store_id=args.store_id)
    deleted = await uploader.clear_corpus()
    print(f"Deleted {deleted} file(s) from {uploader.store_id}")
    return EXIT_OK


def _document_from_path(path: Path, source: DataSource, doc_type: str) -> Document:
    return Document(
        content=path.read_text(encoding="utf-8"),
        metadata=DocumentMetadata(
            source=source,
            type=doc_type,
            id=path.stem,
            url=path.resolve().as_uri(),
            title=path.stem,
        ),
    )


def _print_progress(current: int, total: int, result: UploadResult) -> None:
    status = "ok" if result.success else f"FAILED: {result.error}"
    print(f"[{current}/{total}] {result.file_name} {status}", file=sys.stderr)


async def _upload(settings: Settings, args: argparse.Namespace) -> int:
    paths = [Path(p) for p in args.paths]
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        print(f"File(s) not found: {', '.join(missing)}", file=sys.stderr)
        return EXIT_USAGE

    documents = [_document_from_path(p, DataSource(args.source), args.type) for p in paths]

    client = build_client(settings)
    uploader = build_uploader(settings, client, store_id=args.store_id)
    batch = await uploader.upload_documents_with_progress(documents, _print_progress)

    print(
        f"Uploaded {batch.success_count}/{batch.total_documents} document(s) "
        f"in {batch.duration_ms:.0f}ms"
    )
    return EXIT_OK if batch.failure_count == 0 else EXIT_FAILED


COMMANDS = {
    "create-store": _create_store,
    "list-stores": _list_stores,
    "delete-all-stores": _delete_all_stores,
    "clear-store": _clear_store,
    "upload": _upload,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="filesearch-ingest",
        description="Manage Google File Search stores and upload documents",
    )
    parser.add_argument(
        "--env-file",
        default=DEFAULT_ENV_FILE,
        metavar="PATH",
        help=f"dotenv file consulted for unset variables (default: {DEFAULT_ENV_FILE})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    create_parser_ = subparsers.add_parser("create-store", help="Create a new store")
    create_parser_.add_argument("--display-name", help="Display name for the store")
    create_parser_.add_argument(
        "--write-env",
        metavar="PATH",
        help=f"Write {ENV_STORE_ID} for the new store into this dotenv file",
    )

    subparsers.add_parser("list-stores", help="List all stores")

    delete_parser = subparsers.add_parser(
        "delete-all-stores", help="Delete every store and its files"
    )
    delete_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    clear_parser = subparsers.add_parser("clear-store", help="Delete every file in a store")
    clear_parser.add_argument("--store-id", help=f"Store to clear (default: {ENV_STORE_ID})")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    upload_parser = subparsers.add_parser("upload", help="Upload text/markdown files")
    upload_parser.add_argument("paths", nargs="+", metavar="PATH", help="Files to upload")
    upload_parser.add_argument(
        "--source",
        required=True,
        choices=[s.value for s in DataSource],
        help="Origin tag stored in file metadata",
    )
    upload_parser.add_argument("--type", required=True, help="Document category (issue, pr, ...)")
    upload_parser.add_argument("--store-id", help=f"Target store (default: {ENV_STORE_ID})")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        settings = load_settings(args.env_file)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    _configure_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        configure_tracing()
        return asyncio.run(COMMANDS[args.command](settings, args))
    except (ConfigError, TracingConfigError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except FileSearchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except Exception as exc:
        logger.exception("Unexpected error")
        print(f"Internal error: {exc}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
