import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import Any

from textlens.config.settings import Settings
from textlens.database.connection import close_pool, init_pool
from textlens.database.repositories.documents_repository import DocumentsRepository
from textlens.database.schema import ensure_schema
from textlens.logging.logger import Log
from textlens.processor.exceptions import ErrorCategory, InvalidInputError
from textlens.processor.models import (
    ImageInput,
    PipelineFailure,
    PipelineOutcome,
    PipelineSuccess,
    ScanRequest,
    default_title,
)
from textlens.processor.orchestrator import PipelineOrchestrator, build_orchestrator
from textlens.processor.responses import (
    build_error_payload,
    build_list_payload,
    build_record_payload,
    build_success_payload,
)
from textlens.records.exceptions import DocumentNotFoundError
from textlens.records.manager import DocumentRecordManager


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="textlens",
        description="Scan images into searchable PDF documents.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    scan = commands.add_parser("scan", help="Recognize text in one image or a batch of pages")
    scan.add_argument("images", nargs="*", type=Path, help="Image files, in page order")
    scan.add_argument(
        "--base64-file",
        action="append",
        default=[],
        type=Path,
        help="File holding a base64 image or data URL (repeatable)",
    )
    scan.add_argument("--title", default=None)
    scan.add_argument("--language", default=None)
    scan.add_argument("--owner", default=None)

    listing = commands.add_parser("list", help="List completed documents, newest first")
    listing.add_argument("--owner", default=None)
    listing.add_argument("--limit", type=int, default=20)
    listing.add_argument("--offset", type=int, default=0)

    show = commands.add_parser("show", help="Show one document")
    show.add_argument("document_id", type=uuid.UUID)

    rename = commands.add_parser("rename", help="Change a document title")
    rename.add_argument("document_id", type=uuid.UUID)
    rename.add_argument("title")

    delete = commands.add_parser("delete", help="Delete a document and its PDF")
    delete.add_argument("document_id", type=uuid.UUID)

    commands.add_parser("init-db", help="Create the documents table if missing")
    return parser


def read_images(paths: list[Path], base64_files: list[Path]) -> tuple[ImageInput, ...]:
    """Load scan inputs from disk, raw files first, then base64 payloads.

    Raises:
        InvalidInputError: if a file is unreadable or holds invalid base64.
    """
    images: list[ImageInput] = []
    try:
        for path in paths:
            images.append(ImageInput(data=path.read_bytes(), name=path.name))
        for path in base64_files:
            images.append(ImageInput.from_base64(path.read_text(), name=path.stem))
    except OSError as exc:
        raise InvalidInputError(f"Cannot read input file: {exc}") from exc
    return tuple(images)


async def run_scan(orchestrator: PipelineOrchestrator, request: ScanRequest) -> PipelineOutcome:
    try:
        return await orchestrator.process(request)
    finally:
        await orchestrator.aclose()


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _scan(args: argparse.Namespace, settings: Settings) -> int:
    try:
        images = read_images(args.images, args.base64_file)
    except InvalidInputError as exc:
        failure = PipelineFailure(ErrorCategory.INVALID_INPUT, str(exc), detail=str(exc))
        _emit(build_error_payload(failure, settings.expose_error_details))
        return 1

    request = ScanRequest(
        images=images,
        title=args.title or default_title(),
        language=args.language or settings.default_language,
        owner_id=args.owner,
    )
    try:
        orchestrator = build_orchestrator(settings)
    except ValueError as exc:
        Log.error("Pipeline misconfigured", error=exc)
        _emit({"success": False, "message": str(exc)})
        return 1
    outcome = asyncio.run(run_scan(orchestrator, request))
    if isinstance(outcome, PipelineSuccess):
        _emit(build_success_payload(outcome, settings.public_base_url))
        return 0
    _emit(build_error_payload(outcome, settings.expose_error_details))
    return 1


def _manage(args: argparse.Namespace, settings: Settings) -> int:
    records = DocumentRecordManager(DocumentsRepository())
    try:
        if args.command == "list":
            rows = records.list_recent(owner_id=args.owner, limit=args.limit, offset=args.offset)
            total = records.count_completed(owner_id=args.owner)
            _emit(build_list_payload(rows, total, args.limit, args.offset, settings.public_base_url))
        elif args.command == "show":
            record = records.load(args.document_id)
            _emit(build_record_payload(record, settings.public_base_url))
        elif args.command == "rename":
            records.rename(args.document_id, args.title)
            _emit({"success": True, "message": "Document title updated"})
        elif args.command == "delete":
            records.delete(args.document_id)
            _emit({"success": True, "message": "Document deleted successfully"})
    except DocumentNotFoundError as exc:
        _emit({"success": False, "message": str(exc)})
        return 1
    except ValueError as exc:
        _emit({"success": False, "message": str(exc)})
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse args -> initialize pool -> dispatch one command."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level, stream=sys.stderr)
    init_pool(settings)

    try:
        if args.command == "init-db":
            ensure_schema()
            Log.info("Database schema ready")
            return 0
        if args.command == "scan":
            return _scan(args, settings)
        return _manage(args, settings)
    finally:
        close_pool()


if __name__ == "__main__":
    sys.exit(main())
