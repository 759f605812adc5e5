"""
File helpers used by the pipeline: content hashing, format and provider
detection, and the storage-strategy decision.
"""

import base64
import hashlib
import logging

from normaize.core.cancellation import CancellationToken, check_cancelled
from normaize.core.config import AppSettings, normalize_extension
from normaize.core.constants import FILE_PATH_KEY, HASH_CHUNK_SIZE, HASH_GENERATION_FAILED
from normaize.core.errors import HashError, OperationCancelledError
from normaize.core.models import Dataset, FileFormat, StorageProvider
from normaize.observability.metrics import hash_failures_total, increment_counter
from normaize.observability.telemetry import StructuredLogger
from normaize.storage.base import StoragePort, detect_storage_provider
from normaize.utils.validation import get_file_extension

EXTENSION_FORMATS = {
    ".csv": FileFormat.CSV,
    ".json": FileFormat.JSON,
    ".xlsx": FileFormat.EXCEL,
    ".xls": FileFormat.EXCEL,
    ".xml": FileFormat.XML,
    ".txt": FileFormat.TXT,
    ".parquet": FileFormat.PARQUET,
}


class FileUtility:
    """
    Stateless helpers bound to settings and a storage port.
    """

    def __init__(
        self,
        settings: AppSettings,
        storage: StoragePort,
        telemetry: StructuredLogger | None = None,
    ):
        self.settings = settings
        self.storage = storage
        self.telemetry = telemetry or StructuredLogger()

    async def generate_content_hash(
        self,
        file_path: str,
        token: CancellationToken | None = None,
    ) -> str:
        """
        Base64-encoded SHA-256 digest of a stored file.

        Any failure other than cancellation is logged as a warning in its
        own operation context and yields "" instead of raising.
        """
        try:
            return await self._digest(file_path, token)
        except HashError as e:
            context = self.telemetry.create_context(
                "generate_content_hash", metadata={FILE_PATH_KEY: file_path}
            )
            self.telemetry.log_immediate_step(
                context,
                HASH_GENERATION_FAILED,
                {FILE_PATH_KEY: file_path, "error": str(e)},
                level=logging.WARNING,
            )
            increment_counter(hash_failures_total)
            return ""

    async def _digest(self, file_path: str, token: CancellationToken | None) -> str:
        try:
            stream = await self.storage.get(file_path, token)
            digest = hashlib.sha256()
            with stream:
                while True:
                    check_cancelled(token)
                    chunk = stream.read(HASH_CHUNK_SIZE)
                    if not chunk:
                        break
                    digest.update(chunk)
        except OperationCancelledError:
            raise
        except Exception as e:
            raise HashError(f"Could not hash {file_path}: {e}") from e
        return base64.b64encode(digest.digest()).decode("ascii")

    @staticmethod
    def detect_format(extension_or_hint: str) -> FileFormat:
        """
        Map an extension or format hint to a FileFormat.

        Accepts ".csv", "csv" or "CSV", and format names such as "excel".
        Unknown values map to FileFormat.CUSTOM.
        """
        hint = (extension_or_hint or "").strip().lower()
        if not hint:
            return FileFormat.CUSTOM

        try:
            return FileFormat(hint.lstrip("."))
        except ValueError:
            pass

        return EXTENSION_FORMATS.get(normalize_extension(hint), FileFormat.CUSTOM)

    @staticmethod
    def detect_storage_provider(file_path: str) -> StorageProvider:
        return detect_storage_provider(file_path)

    def should_use_separate_storage(self, record: Dataset) -> bool:
        """True when the dataset reaches the row cap or exceeds the upload size limit."""
        return (
            record.row_count >= self.settings.data_processing.max_rows_per_dataset
            or record.byte_size > self.settings.file_upload.max_file_size
        )

    @staticmethod
    def get_file_extension(file_name: str) -> str:
        return get_file_extension(file_name)
