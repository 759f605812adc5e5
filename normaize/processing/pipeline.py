"""
File processing pipeline orchestration.

Coordinates the flow: validate → chaos → exists → parse → finalize

Each run is one operation context. Steps are batched and written as a
single summary entry when the run ends, whatever the outcome.
"""

import time
from enum import Enum

from normaize.chaos.actions import delay
from normaize.chaos.base import FaultInjector, NullFaultInjector
from normaize.core.cancellation import CancellationToken
from normaize.core.config import AppSettings
from normaize.core.constants import (
    CORRELATION_ID_KEY,
    FILE_FORMAT_KEY,
    FILE_PATH_KEY,
    FILE_PROCESSED_SUCCESS,
    FILE_PROCESSING_CHAOS_DELAY_MS,
    FILE_PROCESSING_COMPLETED,
    FILE_PROCESSING_STARTED,
    FORMAT_ERROR_RECORDED,
    PROCESSING_DELAY_SCENARIO,
    STATE_KEY,
    UNKNOWN,
    USER_ID_KEY,
)
from normaize.core.errors import (
    FormatError,
    InvalidArgumentError,
    NotFoundError,
    OperationCancelledError,
    ProcessingError,
    UnsupportedFormatError,
)
from normaize.core.models import Dataset
from normaize.core.validators import FileValidator
from normaize.observability.logger import get_logger
from normaize.observability.metrics import record_file_processed
from normaize.observability.telemetry import OperationContext, StructuredLogger
from normaize.parsers import BaseParser, get_parser
from normaize.processing.file_utility import FileUtility
from normaize.processing.record_builder import (
    apply_parse_result,
    apply_processing_error,
    create_initial_record,
    finalize_record,
)
from normaize.storage.base import StoragePort

logger = get_logger(__name__)

OPERATION_NAME = "process_file"

# Errors that reach the caller unchanged; anything else is wrapped
PASSTHROUGH_ERRORS = (
    InvalidArgumentError,
    NotFoundError,
    FormatError,
    UnsupportedFormatError,
    OperationCancelledError,
)


class PipelineState(str, Enum):
    """Lifecycle of one processing run."""

    CREATED = "created"
    VALIDATING = "validating"
    PARSING = "parsing"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


class FileProcessingPipeline:
    """
    Turns a stored file into a finalized Dataset.

    Flow:
    1. Validate the path and format hint
    2. Run the processing-delay chaos scenario
    3. Confirm the file exists
    4. Build the initial record and pick the parser for the format
    5. Parse; a non-fatal FormatError is recorded on the record
    6. Finalize: content hash, storage strategy, processed flag
    """

    def __init__(
        self,
        settings: AppSettings,
        storage: StoragePort,
        chaos: FaultInjector | None = None,
        telemetry: StructuredLogger | None = None,
        validator: FileValidator | None = None,
        utility: FileUtility | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings
            storage: Port the source files are read from
            chaos: Fault injector (NullFaultInjector when omitted)
            telemetry: Structured logger for operation contexts
            validator: Input validator (built from settings when omitted)
            utility: File helpers (built from settings when omitted)
        """
        self.settings = settings
        self.storage = storage
        self.chaos = chaos or NullFaultInjector()
        self.telemetry = telemetry or StructuredLogger()
        self.validator = validator or FileValidator(settings.file_upload, storage, self.telemetry)
        self.utility = utility or FileUtility(settings, storage, self.telemetry)

    async def process_file(
        self,
        file_path: str,
        format_hint: str,
        user_id: str | None = None,
        token: CancellationToken | None = None,
        correlation_id: str | None = None,
    ) -> Dataset:
        """
        Process a stored file into a Dataset.

        Args:
            file_path: Storage path of the source file
            format_hint: Extension or format name (".csv", "csv", "excel", ...)
            user_id: Acting user (defaults to anonymous)
            token: Optional cancellation token
            correlation_id: Correlation id (generated when omitted)

        Returns:
            The finalized Dataset. processed is False and processing_error is
            set when the content was malformed.

        Raises:
            InvalidArgumentError: If the path or hint is empty
            NotFoundError: If the file does not exist
            UnsupportedFormatError: If no parser exists for the format
            FormatError: If the content is fatally malformed
            OperationCancelledError: If the token is cancelled
            ProcessingError: On any other failure
        """
        started = time.perf_counter()
        context = self.telemetry.create_context(
            OPERATION_NAME,
            correlation_id=correlation_id,
            user_id=user_id,
            metadata={FILE_PATH_KEY: file_path, FILE_FORMAT_KEY: format_hint},
        )
        self._transition(context, PipelineState.CREATED)
        file_format = None

        try:
            self._transition(context, PipelineState.VALIDATING)
            self.validator.validate_processing_inputs(file_path, format_hint, context)
            self.telemetry.log_step(context, FILE_PROCESSING_STARTED)

            await self.chaos.execute(
                PROCESSING_DELAY_SCENARIO,
                delay(FILE_PROCESSING_CHAOS_DELAY_MS),
                {
                    "operation": context.operation_name,
                    CORRELATION_ID_KEY: context.correlation_id,
                    USER_ID_KEY: context.user_id,
                    FILE_FORMAT_KEY: format_hint,
                },
            )

            await self.validator.validate_exists(file_path, context, token)

            file_format = self.utility.detect_format(format_hint)
            context.metadata[FILE_FORMAT_KEY] = file_format.value
            record = create_initial_record(
                file_path, file_format, self.utility.detect_storage_provider(file_path)
            )
            parser = get_parser(file_format, self.settings.data_processing, self.telemetry)

            self._transition(context, PipelineState.PARSING)
            record = await self._parse(record, parser, context, token)

            self._transition(context, PipelineState.FINALIZING)
            record = await self._finalize(record, token)

            self.telemetry.log_step(context, FILE_PROCESSED_SUCCESS)
            self._transition(context, PipelineState.DONE)

        except PASSTHROUGH_ERRORS as e:
            self._fail(context, e, file_format, started)
            raise
        except Exception as e:
            self._fail(context, e, file_format, started)
            detected = file_format.value if file_format else UNKNOWN
            raise ProcessingError(
                f"Failed to process file {file_path} (format: {detected}): {e}",
                operation=OPERATION_NAME,
                file_path=file_path,
                file_format=detected,
            ) from e

        if record.has_error:
            context.metadata["processing_error"] = record.processing_error
        self.telemetry.log_summary(context, True)
        record_file_processed(
            record.file_format.value,
            "processed" if record.processed else "partial",
            record.row_count,
            time.perf_counter() - started,
        )
        return record

    async def _parse(
        self,
        record: Dataset,
        parser: BaseParser,
        context: OperationContext,
        token: CancellationToken | None,
    ) -> Dataset:
        stream = await self.storage.get(record.file_path, token)
        try:
            result = await parser.parse(stream, context, token)
        except FormatError as e:
            if e.fatal:
                raise
            self.telemetry.log_step(
                context,
                FORMAT_ERROR_RECORDED,
                {FILE_PATH_KEY: record.file_path, "error": str(e)},
            )
            return apply_processing_error(record, str(e))
        finally:
            stream.close()

        self.telemetry.log_step(
            context,
            FILE_PROCESSING_COMPLETED,
            {"row_count": len(result.rows), "column_count": len(result.headers)},
        )
        return apply_parse_result(record, result, self.settings.data_processing)

    async def _finalize(self, record: Dataset, token: CancellationToken | None) -> Dataset:
        content_hash = await self.utility.generate_content_hash(record.file_path, token)
        return finalize_record(
            record,
            content_hash=content_hash,
            use_separate_storage=self.utility.should_use_separate_storage(record),
        )

    def _transition(self, context: OperationContext, state: PipelineState) -> None:
        context.metadata[STATE_KEY] = state.value
        self.telemetry.log_step(context, f"State: {state.value}")

    def _fail(self, context: OperationContext, error: Exception, file_format, started: float) -> None:
        self._transition(context, PipelineState.FAILED)
        self.telemetry.log_summary(context, False, str(error))
        record_file_processed(
            file_format.value if file_format else UNKNOWN,
            "failed",
            0,
            time.perf_counter() - started,
        )
