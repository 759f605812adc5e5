"""
Local-disk storage backend.

Blocking file I/O runs in worker threads via asyncio.to_thread.
"""

import asyncio
import io
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

from normaize.core.cancellation import CancellationToken, check_cancelled
from normaize.core.errors import NotFoundError
from normaize.core.models import UploadRequest
from normaize.storage.base import StoragePort


class LocalStorage(StoragePort):
    """
    Stores uploads under a base directory as <uuid>_<file_name>.

    Paths outside the base directory are accepted for get/exists/delete,
    so existing files can be processed in place.
    """

    def __init__(self, base_dir: str | Path):
        """
        Args:
            base_dir: Directory receiving saved uploads (created if missing)
        """
        self.base_dir = Path(base_dir)

    async def save(self, request: UploadRequest, token: CancellationToken | None = None) -> str:
        check_cancelled(token)
        target = self.base_dir / f"{uuid.uuid4().hex}_{request.file_name}"
        await asyncio.to_thread(self._write, target, request.stream)
        return str(target)

    async def get(self, path: str, token: CancellationToken | None = None) -> BinaryIO:
        check_cancelled(token)
        file_path = Path(path)
        if not await asyncio.to_thread(file_path.is_file):
            raise NotFoundError(f"File not found: {path}", path=path)
        data = await asyncio.to_thread(file_path.read_bytes)
        return io.BytesIO(data)

    async def exists(self, path: str, token: CancellationToken | None = None) -> bool:
        check_cancelled(token)
        return await asyncio.to_thread(Path(path).is_file)

    async def delete(self, path: str, token: CancellationToken | None = None) -> bool:
        check_cancelled(token)
        return await asyncio.to_thread(self._remove, Path(path))

    def _write(self, target: Path, stream: BinaryIO) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            shutil.copyfileobj(stream, f)

    @staticmethod
    def _remove(path: Path) -> bool:
        if not path.is_file():
            return False
        path.unlink()
        return True
