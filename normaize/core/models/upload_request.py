"""
UploadRequest model representing an incoming file upload (transient).
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class UploadRequest(BaseModel):
    """
    An incoming file upload, consumed once by the storage port.

    Attributes:
        file_name: Client-supplied file name (validated for traversal)
        content_type: MIME type reported by the client
        file_size: Declared size in bytes
        stream: Readable binary stream with the file content
    """

    file_name: str
    content_type: str = "application/octet-stream"
    file_size: int
    stream: Any = Field(..., exclude=True)

    @field_validator("stream")
    @classmethod
    def check_readable(cls, v):
        """Require a file-like object with a read() method."""
        if not callable(getattr(v, "read", None)):
            raise ValueError("stream must be a readable binary file-like object")
        return v

    @property
    def extension(self) -> str:
        """Lowercase extension including the leading dot ("" if none)."""
        dot = self.file_name.rfind(".")
        if dot <= 0 or dot == len(self.file_name) - 1:
            return ""
        return self.file_name[dot:].lower()

    class Config:
        json_schema_extra = {
            "example": {
                "file_name": "sales.csv",
                "content_type": "text/csv",
                "file_size": 2048,
            }
        }
