"""
Dataset model: the normalized, bounded record produced for each file.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class FileFormat(str, Enum):
    """Source formats known to the pipeline."""

    CSV = "csv"
    JSON = "json"
    EXCEL = "excel"
    XML = "xml"
    TXT = "txt"
    PARQUET = "parquet"
    CUSTOM = "custom"


class StorageProvider(str, Enum):
    """Where the source bytes live, derived from the path scheme."""

    LOCAL = "local"
    S3 = "s3"
    AZURE = "azure"
    MEMORY = "memory"


class DatasetPreview(BaseModel):
    """
    Leading rows of a dataset for display.

    Attributes:
        columns: Column names (same order as Dataset.columns)
        rows: First rows of the dataset
        total_rows: Row count of the whole dataset
        max_preview_rows: Preview cap in effect when the preview was built
        preview_row_count: Number of rows actually in the preview
    """

    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    total_rows: int = Field(0, ge=0)
    max_preview_rows: int = Field(0, ge=0)
    preview_row_count: int = Field(0, ge=0)

    class Config:
        frozen = True


class Dataset(BaseModel):
    """
    Normalized record for one processed file.

    Instances are immutable; record_builder functions return updated copies.

    Attributes:
        file_name: Name of the source file
        file_path: Storage path of the source file
        file_format: Detected format
        storage_provider: Provider derived from the path scheme
        byte_size: Source length in bytes (0 until a parser reports it)
        row_count: Rows read (never above the row cap)
        column_count: Columns kept (never above the column cap)
        columns: Column names, the dataset schema
        preview: Leading rows, present only when rows were read
        rows: Full row payload, present only when under the row cap
        content_hash: Base64 SHA-256 of the source bytes ("" when unavailable)
        use_separate_storage: Whether the payload belongs in bulk storage
        processed: True iff processing finished without error
        processing_error: Message of the format error, if any
        uploaded_at: Record creation time
        processed_at: Set together with processed=True
    """

    file_name: str = Field(..., min_length=1)
    file_path: str = Field(..., min_length=1)
    file_format: FileFormat
    storage_provider: StorageProvider = StorageProvider.LOCAL
    byte_size: int = Field(0, ge=0)
    row_count: int = Field(0, ge=0)
    column_count: int = Field(0, ge=0)
    columns: list[str] = Field(default_factory=list)
    preview: DatasetPreview | None = None
    rows: list[dict[str, Any]] | None = None
    content_hash: str = ""
    use_separate_storage: bool = False
    processed: bool = False
    processing_error: str | None = None
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None

    @field_validator("processing_error")
    @classmethod
    def empty_error_is_none(cls, v):
        """Treat an empty error message as no error."""
        return v or None

    @property
    def has_error(self) -> bool:
        return self.processing_error is not None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "file_name": "sales.csv",
                "file_path": "memory://3f2a_sales.csv",
                "file_format": "csv",
                "storage_provider": "memory",
                "byte_size": 64,
                "row_count": 2,
                "column_count": 3,
                "columns": ["a", "b", "c"],
                "content_hash": "n4bQgYhMfWWaL+qgxVrQFaO/TxsrC4Is0V1sFbDwCgg=",
                "use_separate_storage": False,
                "processed": True,
            }
        }
