"""
Pure functions building a Dataset step by step.

Each function takes a Dataset and returns an updated copy; nothing is
mutated in place, so a record abandoned mid-pipeline never leaks
partially-applied state.
"""

from datetime import datetime, timezone
from pathlib import PurePosixPath

from normaize.core.config import DataProcessingSettings
from normaize.core.constants import DEFAULT_FILE_SIZE
from normaize.core.models import Dataset, DatasetPreview, FileFormat, StorageProvider
from normaize.parsers.base import ParseResult


def file_name_from_path(file_path: str) -> str:
    """Last path segment, with any storage scheme and uuid prefix kept as-is."""
    name = PurePosixPath(file_path.replace("\\", "/")).name
    return name or file_path


def create_initial_record(
    file_path: str,
    file_format: FileFormat,
    storage_provider: StorageProvider,
) -> Dataset:
    return Dataset(
        file_name=file_name_from_path(file_path),
        file_path=file_path,
        file_format=file_format,
        storage_provider=storage_provider,
        byte_size=DEFAULT_FILE_SIZE,
    )


def build_preview(result: ParseResult, settings: DataProcessingSettings) -> DatasetPreview | None:
    """Preview of the leading rows, or None when nothing was parsed."""
    if not result.rows:
        return None

    preview_rows = result.rows[: settings.max_preview_rows]
    return DatasetPreview(
        columns=list(result.headers),
        rows=preview_rows,
        total_rows=len(result.rows),
        max_preview_rows=settings.max_preview_rows,
        preview_row_count=len(preview_rows),
    )


def apply_parse_result(
    record: Dataset,
    result: ParseResult,
    settings: DataProcessingSettings,
) -> Dataset:
    """
    Copy counts, schema, preview and (when under the row cap) the full rows
    onto the record.
    """
    row_count = len(result.rows)
    return record.model_copy(
        update={
            "byte_size": result.byte_length,
            "row_count": row_count,
            "column_count": len(result.headers),
            "columns": list(result.headers),
            "preview": build_preview(result, settings),
            "rows": result.rows if row_count < settings.max_rows_per_dataset else None,
        }
    )


def apply_processing_error(record: Dataset, message: str) -> Dataset:
    return record.model_copy(update={"processed": False, "processing_error": message or None})


def finalize_record(
    record: Dataset,
    content_hash: str,
    use_separate_storage: bool,
    now: datetime | None = None,
) -> Dataset:
    """
    Attach hash and storage strategy; mark processed only if no error was recorded.
    """
    update = {"content_hash": content_hash, "use_separate_storage": use_separate_storage}
    if not record.has_error:
        update["processed"] = True
        update["processed_at"] = now or datetime.now(timezone.utc)
    return record.model_copy(update=update)
