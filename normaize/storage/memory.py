"""
In-memory storage backend. Used by tests and the CLI dry runs.
"""

import io
import threading
import uuid
from typing import BinaryIO

from normaize.core.cancellation import CancellationToken, check_cancelled
from normaize.core.errors import NotFoundError
from normaize.core.models import UploadRequest
from normaize.storage.base import MEMORY_PREFIX, StoragePort


class InMemoryStorage(StoragePort):
    """
    Keeps file contents in a dict keyed by memory:// path.
    """

    def __init__(self):
        self._files: dict[str, bytes] = {}
        self._lock = threading.Lock()

    async def save(self, request: UploadRequest, token: CancellationToken | None = None) -> str:
        check_cancelled(token)
        data = request.stream.read()
        path = f"{MEMORY_PREFIX}{uuid.uuid4().hex}_{request.file_name}"
        self.put(path, data)
        return path

    async def get(self, path: str, token: CancellationToken | None = None) -> BinaryIO:
        check_cancelled(token)
        with self._lock:
            data = self._files.get(path)
        if data is None:
            raise NotFoundError(f"File not found: {path}", path=path)
        return io.BytesIO(data)

    async def exists(self, path: str, token: CancellationToken | None = None) -> bool:
        check_cancelled(token)
        with self._lock:
            return path in self._files

    async def delete(self, path: str, token: CancellationToken | None = None) -> bool:
        check_cancelled(token)
        with self._lock:
            return self._files.pop(path, None) is not None

    def put(self, path: str, data: bytes | str) -> str:
        """Store raw content under an explicit path (test seeding)."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            self._files[path] = data
        return path

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)
