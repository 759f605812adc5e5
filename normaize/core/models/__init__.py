"""
Core data models for the ingestion pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .dataset import Dataset, DatasetPreview, FileFormat, StorageProvider
from .upload_request import UploadRequest

__all__ = [
    "Dataset",
    "DatasetPreview",
    "FileFormat",
    "StorageProvider",
    "UploadRequest",
]
