"""
Processing pipeline, record builder, file helpers and the upload service.
"""

from .file_utility import FileUtility
from .pipeline import FileProcessingPipeline, PipelineState
from .upload_service import FileUploadService

__all__ = [
    "FileProcessingPipeline",
    "FileUploadService",
    "FileUtility",
    "PipelineState",
]
