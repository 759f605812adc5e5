"""
Upload and processing-input validators.
"""

from .file_validator import FileValidator

__all__ = ["FileValidator"]
