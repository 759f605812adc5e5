"""
Request and policy validation for uploads and processing inputs.

Every rejection is appended to the operation context as a step before the
caller sees the error (or the False result), so the operation summary
explains why a request was refused.
"""

from normaize.core.cancellation import CancellationToken
from normaize.core.config import FileUploadSettings
from normaize.core.constants import (
    FILE_EXTENSION_BLOCKED,
    FILE_EXTENSION_NOT_ALLOWED,
    FILE_EXTENSION_VALIDATION_FAILED,
    FILE_FORMAT_REQUIRED,
    FILE_NAME_KEY,
    FILE_NAME_REQUIRED,
    FILE_NOT_FOUND,
    FILE_PATH_KEY,
    FILE_PATH_REQUIRED,
    FILE_SIZE_EXCEEDS_LIMIT,
    FILE_SIZE_KEY,
    FILE_SIZE_MUST_BE_POSITIVE,
    FILE_SIZE_VALIDATION_FAILED,
    FILE_VALIDATION_PASSED,
    FILE_VALIDATION_STARTED,
    INPUT_VALIDATION_COMPLETED,
    INPUT_VALIDATION_STARTED,
    INVALID_FILE_NAME,
)
from normaize.core.errors import InvalidArgumentError, NotFoundError
from normaize.core.models import UploadRequest
from normaize.observability.telemetry import OperationContext, StructuredLogger
from normaize.storage.base import StoragePort
from normaize.utils.validation import (
    get_file_extension,
    require_non_empty,
    validate_file_name,
    validate_file_path,
    validate_positive_size,
)


class FileValidator:
    """
    Validates upload requests, processing inputs and upload policy.
    """

    def __init__(
        self,
        settings: FileUploadSettings,
        storage: StoragePort,
        telemetry: StructuredLogger | None = None,
    ):
        """
        Args:
            settings: Upload policy (size limit, allowed/blocked extensions)
            storage: Port used for existence checks
            telemetry: Structured logger used for standalone policy checks
        """
        self.settings = settings
        self.storage = storage
        self.telemetry = telemetry or StructuredLogger()

    def validate_upload_request(self, request: UploadRequest, context: OperationContext) -> None:
        """
        Check the shape of an upload request.

        Raises:
            InvalidArgumentError: Empty name, non-positive size, or a name
                that contains "..", "/", "\\" or a null byte or is longer
                than 255 characters
        """
        self.telemetry.log_step(context, INPUT_VALIDATION_STARTED)

        try:
            require_non_empty(request.file_name, FILE_NAME_KEY)
        except InvalidArgumentError as e:
            self.telemetry.log_step(context, FILE_NAME_REQUIRED, {"error": str(e)})
            raise

        try:
            validate_positive_size(request.file_size, FILE_SIZE_KEY)
        except InvalidArgumentError as e:
            self.telemetry.log_step(
                context, FILE_SIZE_MUST_BE_POSITIVE, {FILE_SIZE_KEY: request.file_size, "error": str(e)}
            )
            raise

        try:
            validate_file_name(request.file_name, FILE_NAME_KEY)
        except InvalidArgumentError as e:
            self.telemetry.log_step(
                context, INVALID_FILE_NAME, {FILE_NAME_KEY: request.file_name, "error": str(e)}
            )
            raise

        self.telemetry.log_step(context, INPUT_VALIDATION_COMPLETED)

    def validate_processing_inputs(
        self,
        file_path: str,
        format_hint: str,
        context: OperationContext,
    ) -> None:
        """
        Check processing arguments.

        Raises:
            InvalidArgumentError: If the path or the format hint is empty
        """
        self.telemetry.log_step(context, INPUT_VALIDATION_STARTED)

        try:
            validate_file_path(file_path)
        except InvalidArgumentError as e:
            self.telemetry.log_step(context, FILE_PATH_REQUIRED, {"error": str(e)})
            raise

        try:
            require_non_empty(format_hint, "format_hint")
        except InvalidArgumentError as e:
            self.telemetry.log_step(context, FILE_FORMAT_REQUIRED, {"error": str(e)})
            raise

        self.telemetry.log_step(context, INPUT_VALIDATION_COMPLETED)

    def is_size_valid(self, file_size: int, context: OperationContext | None = None) -> bool:
        """True if 0 < file_size <= max_file_size."""
        if file_size <= 0:
            self._note(context, FILE_SIZE_MUST_BE_POSITIVE, {"file_size": file_size})
            return False

        if file_size > self.settings.max_file_size:
            self._note(
                context,
                FILE_SIZE_EXCEEDS_LIMIT,
                {"file_size": file_size, "max_file_size": self.settings.max_file_size},
            )
            return False

        return True

    def is_extension_valid(self, extension: str, context: OperationContext | None = None) -> bool:
        """True if the extension is allowed and not blocked. Blocked wins."""
        extension = (extension or "").lower()

        if extension in self.settings.blocked_extensions:
            self._note(context, FILE_EXTENSION_BLOCKED, {"extension": extension})
            return False

        if extension not in self.settings.allowed_extensions:
            self._note(context, FILE_EXTENSION_NOT_ALLOWED, {"extension": extension})
            return False

        return True

    def validate_file(self, request: UploadRequest, context: OperationContext | None = None) -> bool:
        """
        Apply the upload policy: size first, then extension.

        Args:
            request: Upload to check
            context: Operation context; a standalone one is created and
                summarized when omitted

        Returns:
            True if the upload passes both checks
        """
        owns_context = context is None
        if owns_context:
            context = self.telemetry.create_context(
                "validate_file", metadata={"file_name": request.file_name}
            )

        self.telemetry.log_step(context, FILE_VALIDATION_STARTED)

        valid = True
        if not self.is_size_valid(request.file_size, context):
            self.telemetry.log_step(context, FILE_SIZE_VALIDATION_FAILED)
            valid = False
        elif not self.is_extension_valid(self.get_file_extension(request.file_name), context):
            self.telemetry.log_step(context, FILE_EXTENSION_VALIDATION_FAILED)
            valid = False
        else:
            self.telemetry.log_step(context, FILE_VALIDATION_PASSED)

        if owns_context:
            self.telemetry.log_summary(context, valid, None if valid else "File failed validation")

        return valid

    async def validate_exists(
        self,
        file_path: str,
        context: OperationContext,
        token: CancellationToken | None = None,
    ) -> None:
        """
        Confirm the source exists in storage.

        Raises:
            NotFoundError: If the storage port reports the path absent
        """
        if not await self.storage.exists(file_path, token):
            self.telemetry.log_step(context, FILE_NOT_FOUND, {FILE_PATH_KEY: file_path})
            raise NotFoundError(f"File not found: {file_path}", path=file_path)

    @staticmethod
    def get_file_extension(file_name: str) -> str:
        return get_file_extension(file_name)

    def _note(self, context: OperationContext | None, message: str, data: dict) -> None:
        if context is not None:
            self.telemetry.log_step(context, message, data)
