"""
Storage adapter: telemetry, fault injection and error translation over a
StoragePort.

Every operation runs in its own operation context with steps and a
summary. save() and delete() run the storage-failure chaos scenario before
calling the port. Port failures surface as StorageError, except for delete(),
which is best-effort and only logs them.
"""

from typing import BinaryIO

from normaize.chaos.actions import delay
from normaize.chaos.base import FaultInjector, NullFaultInjector
from normaize.core.cancellation import CancellationToken
from normaize.core.constants import (
    CORRELATION_ID_KEY,
    FILE_DELETED_SUCCESS,
    FILE_DELETION_CHAOS_DELAY_MS,
    FILE_DELETION_FAILED,
    FILE_DELETION_STARTED,
    FILE_EXISTS_CHECK_COMPLETED,
    FILE_EXISTS_CHECK_FAILED,
    FILE_EXISTS_CHECK_STARTED,
    FILE_NAME_KEY,
    FILE_NOT_FOUND,
    FILE_PATH_KEY,
    FILE_RETRIEVAL_FAILED,
    FILE_RETRIEVAL_STARTED,
    FILE_RETRIEVED_SUCCESS,
    FILE_SIZE_KEY,
    FILE_UPLOAD_CHAOS_DELAY_MS,
    FILE_UPLOAD_FAILED,
    FILE_UPLOAD_STARTED,
    FILE_UPLOAD_SUCCESS,
    STORAGE_FAILURE_SCENARIO,
    USER_ID_KEY,
)
from normaize.core.errors import NotFoundError, OperationCancelledError, StorageError
from normaize.core.models import StorageProvider, UploadRequest
from normaize.observability.metrics import increment_counter, storage_operations_total
from normaize.observability.telemetry import OperationContext, StructuredLogger
from normaize.storage.base import StoragePort, detect_storage_provider


class StorageAdapter(StoragePort):
    """
    StoragePort decorator used by the upload service and the pipeline.
    """

    def __init__(
        self,
        port: StoragePort,
        chaos: FaultInjector | None = None,
        telemetry: StructuredLogger | None = None,
    ):
        """
        Args:
            port: Backend actually storing the bytes
            chaos: Fault injector (NullFaultInjector when omitted)
            telemetry: Structured logger for operation summaries
        """
        self.port = port
        self.chaos = chaos or NullFaultInjector()
        self.telemetry = telemetry or StructuredLogger()

    async def save(
        self,
        request: UploadRequest,
        token: CancellationToken | None = None,
        user_id: str | None = None,
    ) -> str:
        """
        Save an upload through the port.

        Raises:
            StorageError: If the port or an injected fault fails the save
            OperationCancelledError: If the token is cancelled
        """
        context = self.telemetry.create_context(
            "save_file",
            user_id=user_id,
            metadata={FILE_NAME_KEY: request.file_name, FILE_SIZE_KEY: request.file_size},
        )
        self.telemetry.log_step(context, FILE_UPLOAD_STARTED)

        try:
            await self.chaos.execute(
                STORAGE_FAILURE_SCENARIO,
                delay(FILE_UPLOAD_CHAOS_DELAY_MS),
                self._chaos_context(context, FILE_NAME_KEY, request.file_name),
            )
            path = await self.port.save(request, token)
        except OperationCancelledError as e:
            self.telemetry.log_summary(context, False, str(e))
            raise
        except Exception as e:
            self.telemetry.log_step(context, FILE_UPLOAD_FAILED, {"error": str(e)})
            self.telemetry.log_summary(context, False, str(e))
            increment_counter(storage_operations_total, 1, operation="save", status="failure")
            raise StorageError(
                f"Failed to save file {request.file_name}: {e}", target=request.file_name
            ) from e

        context.metadata[FILE_PATH_KEY] = path
        self.telemetry.log_step(context, FILE_UPLOAD_SUCCESS, {FILE_PATH_KEY: path})
        self.telemetry.log_summary(context, True)
        increment_counter(storage_operations_total, 1, operation="save", status="success")
        return path

    async def get(self, path: str, token: CancellationToken | None = None) -> BinaryIO:
        """
        Open a stored file.

        Raises:
            NotFoundError: If the port reports the file missing
            StorageError: On any other port failure
        """
        context = self.telemetry.create_context("get_file", metadata={FILE_PATH_KEY: path})
        self.telemetry.log_step(context, FILE_RETRIEVAL_STARTED)

        try:
            stream = await self.port.get(path, token)
        except OperationCancelledError as e:
            self.telemetry.log_summary(context, False, str(e))
            raise
        except NotFoundError as e:
            self.telemetry.log_step(context, FILE_NOT_FOUND)
            self.telemetry.log_summary(context, False, str(e))
            increment_counter(storage_operations_total, 1, operation="get", status="failure")
            raise
        except Exception as e:
            self.telemetry.log_step(context, FILE_RETRIEVAL_FAILED, {"error": str(e)})
            self.telemetry.log_summary(context, False, str(e))
            increment_counter(storage_operations_total, 1, operation="get", status="failure")
            raise StorageError(f"Failed to read file {path}: {e}", target=path) from e

        self.telemetry.log_step(context, FILE_RETRIEVED_SUCCESS)
        self.telemetry.log_summary(context, True)
        increment_counter(storage_operations_total, 1, operation="get", status="success")
        return stream

    async def exists(self, path: str, token: CancellationToken | None = None) -> bool:
        """
        Check whether a file exists.

        Raises:
            StorageError: If the port fails
        """
        context = self.telemetry.create_context("check_file_exists", metadata={FILE_PATH_KEY: path})
        self.telemetry.log_step(context, FILE_EXISTS_CHECK_STARTED)

        try:
            found = await self.port.exists(path, token)
        except OperationCancelledError as e:
            self.telemetry.log_summary(context, False, str(e))
            raise
        except Exception as e:
            self.telemetry.log_step(context, FILE_EXISTS_CHECK_FAILED, {"error": str(e)})
            self.telemetry.log_summary(context, False, str(e))
            increment_counter(storage_operations_total, 1, operation="exists", status="failure")
            raise StorageError(f"Failed to check file {path}: {e}", target=path) from e

        self.telemetry.log_step(context, FILE_EXISTS_CHECK_COMPLETED, {"exists": found})
        self.telemetry.log_summary(context, True)
        increment_counter(storage_operations_total, 1, operation="exists", status="success")
        return found

    async def delete(
        self,
        path: str,
        token: CancellationToken | None = None,
        user_id: str | None = None,
    ) -> bool:
        """
        Best-effort delete. Failures are logged, never raised.

        Returns:
            True if the port removed a file
        """
        context = self.telemetry.create_context(
            "delete_file", user_id=user_id, metadata={FILE_PATH_KEY: path}
        )
        self.telemetry.log_step(context, FILE_DELETION_STARTED)

        try:
            await self.chaos.execute(
                STORAGE_FAILURE_SCENARIO,
                delay(FILE_DELETION_CHAOS_DELAY_MS),
                self._chaos_context(context, FILE_PATH_KEY, path),
            )
            deleted = await self.port.delete(path, token)
        except Exception as e:
            self.telemetry.log_step(context, FILE_DELETION_FAILED, {"error": str(e)})
            self.telemetry.log_summary(context, False, str(e))
            increment_counter(storage_operations_total, 1, operation="delete", status="failure")
            return False

        self.telemetry.log_step(context, FILE_DELETED_SUCCESS, {"deleted": deleted})
        self.telemetry.log_summary(context, True)
        increment_counter(storage_operations_total, 1, operation="delete", status="success")
        return deleted

    def detect_storage_provider(self, path: str) -> StorageProvider:
        return detect_storage_provider(path)

    @staticmethod
    def _chaos_context(context: OperationContext, key: str, value: str) -> dict:
        return {
            "operation": context.operation_name,
            CORRELATION_ID_KEY: context.correlation_id,
            USER_ID_KEY: context.user_id,
            key: value,
        }
