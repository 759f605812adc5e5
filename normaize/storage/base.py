"""
Storage port: the minimal contract the pipeline needs from a file store.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO

from normaize.core.cancellation import CancellationToken
from normaize.core.models import StorageProvider, UploadRequest

S3_PREFIX = "s3://"
AZURE_PREFIX = "azure://"
MEMORY_PREFIX = "memory://"


def detect_storage_provider(path: str) -> StorageProvider:
    """
    Derive the storage provider from a path scheme.

    s3:// -> S3, azure:// -> AZURE, memory:// -> MEMORY, anything else -> LOCAL.
    """
    lowered = (path or "").lower()
    if lowered.startswith(S3_PREFIX):
        return StorageProvider.S3
    if lowered.startswith(AZURE_PREFIX):
        return StorageProvider.AZURE
    if lowered.startswith(MEMORY_PREFIX):
        return StorageProvider.MEMORY
    return StorageProvider.LOCAL


class StoragePort(ABC):
    """
    Abstract file store.

    All operations are async and accept an optional cancellation token.
    """

    @abstractmethod
    async def save(self, request: UploadRequest, token: CancellationToken | None = None) -> str:
        """
        Persist the request's stream.

        Returns:
            Storage path of the saved file
        """

    @abstractmethod
    async def get(self, path: str, token: CancellationToken | None = None) -> BinaryIO:
        """
        Open a stored file for reading.

        Raises:
            NotFoundError: If the path does not exist
        """

    @abstractmethod
    async def exists(self, path: str, token: CancellationToken | None = None) -> bool:
        """Check whether a path exists."""

    @abstractmethod
    async def delete(self, path: str, token: CancellationToken | None = None) -> bool:
        """
        Remove a stored file.

        Returns:
            True if a file was removed
        """
