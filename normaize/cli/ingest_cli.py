"""
Command-line interface for file ingestion.

Usage:
    normaize-ingest process --input <file_path> [--format <hint>]
    normaize-ingest upload --input <file_path> --upload-dir <dir>
    normaize-ingest validate-config [--config <path>]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from normaize.chaos import ChaosEngine, FaultInjector, NullFaultInjector
from normaize.core.config import AppSettings, describe_settings, load_settings
from normaize.core.errors import IngestionError
from normaize.core.models import Dataset, UploadRequest
from normaize.observability.logger import get_logger
from normaize.observability.telemetry import StructuredLogger
from normaize.parsers import supported_formats
from normaize.processing import FileProcessingPipeline, FileUploadService
from normaize.storage import LocalStorage, StorageAdapter
from normaize.utils.validation import get_file_extension

logger = get_logger(__name__)


def build_chaos(settings: AppSettings) -> FaultInjector:
    """ChaosEngine when chaos is enabled in settings, otherwise a no-op injector."""
    if settings.chaos.enabled:
        return ChaosEngine(settings.chaos, register_builtins=True)
    return NullFaultInjector()


def build_service(settings: AppSettings, base_dir: Path) -> FileUploadService:
    """Wire local storage, chaos, pipeline and upload service together."""
    telemetry = StructuredLogger()
    chaos = build_chaos(settings)
    adapter = StorageAdapter(LocalStorage(base_dir), chaos, telemetry)
    pipeline = FileProcessingPipeline(settings, adapter, chaos, telemetry)
    return FileUploadService(settings, adapter, pipeline, telemetry=telemetry)


def render_dataset(dataset: Dataset, include_rows: bool = False) -> str:
    exclude = None if include_rows else {"rows"}
    return dataset.model_dump_json(indent=2, exclude=exclude)


def process_command(args) -> int:
    """
    Process a file already on disk.

    Args:
        args: Command-line arguments
    """
    input_path = Path(args.input)
    settings = load_settings(args.config)
    service = build_service(settings, input_path.parent)
    format_hint = args.format or get_file_extension(input_path.name)

    logger.info(f"Processing file: {input_path} (format hint: {format_hint})")
    dataset = asyncio.run(
        service.process_file(str(input_path), format_hint, user_id=args.user)
    )
    print(render_dataset(dataset, args.include_rows))
    return 0 if dataset.processed else 2


def upload_command(args) -> int:
    """
    Validate, copy into the upload directory and process a file.

    Args:
        args: Command-line arguments
    """
    input_path = Path(args.input)
    if not input_path.is_file():
        logger.error(f"Input file not found: {args.input}")
        return 1

    settings = load_settings(args.config)
    service = build_service(settings, Path(args.upload_dir))

    with open(input_path, "rb") as stream:
        request = UploadRequest(
            file_name=input_path.name,
            content_type=args.content_type,
            file_size=input_path.stat().st_size,
            stream=stream,
        )
        dataset = asyncio.run(service.ingest(request, user_id=args.user))

    print(render_dataset(dataset, args.include_rows))
    return 0 if dataset.processed else 2


def validate_config_command(args) -> int:
    """Load and validate settings, then print the effective configuration."""
    settings = load_settings(args.config)
    print(json.dumps(describe_settings(settings), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="File ingestion and normalization pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process a CSV file in place
  normaize-ingest process --input data/sales.csv

  # Process a file whose extension does not match its content
  normaize-ingest process --input data/export.dat --format json

  # Store a copy under uploads/ and process it
  normaize-ingest upload --input data/report.xlsx --upload-dir uploads/

  # Check a configuration file
  normaize-ingest validate-config --config config/ingestion.yaml
        """
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: $NORMAIZE_CONFIG or config/ingestion.yaml)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Process command
    process_parser = subparsers.add_parser("process", help="Process a file on disk")
    process_parser.add_argument("--input", required=True, help="Path to input file")
    process_parser.add_argument(
        "--format",
        default=None,
        help=(
            f"Format hint, one of {', '.join(f.value for f in supported_formats())} "
            "or an extension such as .json (default: the file extension)"
        )
    )
    process_parser.add_argument("--user", default=None, help="Acting user id")
    process_parser.add_argument(
        "--include-rows",
        action="store_true",
        help="Include the full row payload in the output"
    )

    # Upload command
    upload_parser = subparsers.add_parser("upload", help="Validate, store and process a file")
    upload_parser.add_argument("--input", required=True, help="Path to input file")
    upload_parser.add_argument("--upload-dir", required=True, help="Directory receiving stored uploads")
    upload_parser.add_argument(
        "--content-type",
        default="application/octet-stream",
        help="Declared content type"
    )
    upload_parser.add_argument("--user", default=None, help="Acting user id")
    upload_parser.add_argument(
        "--include-rows",
        action="store_true",
        help="Include the full row payload in the output"
    )

    # Validate-config command
    subparsers.add_parser("validate-config", help="Validate the configuration and print it")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "process": process_command,
        "upload": upload_command,
        "validate-config": validate_config_command,
    }

    try:
        return commands[args.command](args)
    except IngestionError as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
