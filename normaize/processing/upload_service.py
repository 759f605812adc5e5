"""
Upload service: the entry point tying validation, storage and processing
together for one uploaded file.
"""

from normaize.core.cancellation import CancellationToken
from normaize.core.config import AppSettings
from normaize.core.constants import FILE_NAME_KEY, FILE_SIZE_KEY
from normaize.core.errors import InvalidArgumentError
from normaize.core.models import Dataset, UploadRequest
from normaize.core.validators import FileValidator
from normaize.observability.logger import get_logger
from normaize.observability.telemetry import StructuredLogger
from normaize.processing.pipeline import FileProcessingPipeline
from normaize.storage.adapter import StorageAdapter

logger = get_logger(__name__)


class FileUploadService:
    """
    Validates, stores and processes uploads.

    Usage:
        service = FileUploadService(settings, adapter, pipeline, validator)
        dataset = await service.ingest(request, user_id="u-1")
    """

    def __init__(
        self,
        settings: AppSettings,
        storage_adapter: StorageAdapter,
        pipeline: FileProcessingPipeline,
        validator: FileValidator | None = None,
        telemetry: StructuredLogger | None = None,
    ):
        self.settings = settings
        self.storage = storage_adapter
        self.pipeline = pipeline
        self.telemetry = telemetry or StructuredLogger()
        self.validator = validator or FileValidator(settings.file_upload, storage_adapter, self.telemetry)

    def validate_file(self, request: UploadRequest) -> bool:
        """Apply the size and extension policy."""
        return self.validator.validate_file(request)

    async def save_file(
        self,
        request: UploadRequest,
        token: CancellationToken | None = None,
        user_id: str | None = None,
    ) -> str:
        """
        Validate an upload and store it.

        Returns:
            Storage path of the saved file

        Raises:
            InvalidArgumentError: If the request shape or the upload policy is violated
            StorageError: If the storage port fails
        """
        context = self.telemetry.create_context(
            "validate_upload",
            user_id=user_id,
            metadata={FILE_NAME_KEY: request.file_name, FILE_SIZE_KEY: request.file_size},
        )
        try:
            self.validator.validate_upload_request(request, context)
            if not self.validator.validate_file(request, context):
                raise InvalidArgumentError(f"File validation failed for {request.file_name}")
        except InvalidArgumentError as e:
            self.telemetry.log_summary(context, False, str(e))
            raise
        self.telemetry.log_summary(context, True)

        return await self.storage.save(request, token, user_id=user_id)

    async def process_file(
        self,
        file_path: str,
        format_hint: str,
        user_id: str | None = None,
        token: CancellationToken | None = None,
    ) -> Dataset:
        return await self.pipeline.process_file(file_path, format_hint, user_id=user_id, token=token)

    async def delete_file(self, file_path: str, user_id: str | None = None) -> bool:
        """Best-effort delete; never raises for storage failures."""
        return await self.storage.delete(file_path, user_id=user_id)

    async def ingest(
        self,
        request: UploadRequest,
        user_id: str | None = None,
        token: CancellationToken | None = None,
    ) -> Dataset:
        """
        Validate, save and process one upload.

        The request's extension is used as the format hint.
        """
        path = await self.save_file(request, token, user_id=user_id)
        logger.info(
            f"Stored upload {request.file_name}",
            extra={FILE_NAME_KEY: request.file_name, "file_path": path},
        )
        return await self.process_file(path, request.extension, user_id=user_id, token=token)
