"""
Base parser interface shared by every format.

All parsers return the same ParseResult shape (headers plus dict rows) so
the record builder never needs to know which format produced it.
"""

import asyncio
import io
from abc import ABC
from collections.abc import Iterator
from typing import Any, BinaryIO

from pydantic import BaseModel, Field

from normaize.core.cancellation import CancellationToken, check_cancelled
from normaize.core.config import DataProcessingSettings
from normaize.core.constants import (
    DUPLICATE_COLUMNS_RENAMED,
    FILE_TOO_MANY_COLUMNS,
    YIELD_EVERY_ROWS,
)
from normaize.core.errors import FormatError
from normaize.core.models import FileFormat
from normaize.observability.logger import get_logger
from normaize.observability.metrics import (
    columns_truncated_total,
    format_errors_total,
    increment_counter,
)
from normaize.observability.telemetry import OperationContext, StructuredLogger

logger = get_logger(__name__)


def stream_length(stream: BinaryIO) -> int:
    """Bytes remaining in a seekable stream; the position is left unchanged."""
    position = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(position)
    return end - position


class ParseResult(BaseModel):
    """
    Uniform parser output.

    Attributes:
        headers: Column names after the column cap
        rows: Parsed rows keyed by header (never more than the row cap)
        byte_length: Length of the source in bytes
    """

    headers: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    byte_length: int = Field(0, ge=0)


class BaseParser(ABC):
    """
    Abstract base class for all format parsers.

    Whole-document formats implement parse_bytes(); line-oriented formats
    override parse_stream(). The column cap, cancellation checkpoints and
    error reporting live here.
    """

    file_format: FileFormat = FileFormat.CUSTOM

    def __init__(self, settings: DataProcessingSettings, telemetry: StructuredLogger | None = None):
        """
        Args:
            settings: Row, column and preview caps
            telemetry: Structured logger for warning steps
        """
        self.settings = settings
        self.telemetry = telemetry or StructuredLogger()

    @property
    def max_rows(self) -> int:
        return self.settings.max_rows_per_dataset

    async def parse(
        self,
        stream: BinaryIO,
        context: OperationContext,
        token: CancellationToken | None = None,
    ) -> ParseResult:
        """
        Parse a source stream.

        Args:
            stream: Readable binary stream positioned at the start
            context: Operation context receiving warning steps
            token: Optional cancellation token

        Returns:
            ParseResult with capped headers and rows

        Raises:
            FormatError: If the content is structurally invalid
            OperationCancelledError: If the token is cancelled mid-parse
        """
        check_cancelled(token)
        if not stream.seekable():
            stream = io.BytesIO(await asyncio.to_thread(stream.read))

        byte_length = stream_length(stream)
        headers, rows = await self.parse_stream(stream, context, token)
        return ParseResult(headers=headers, rows=rows, byte_length=byte_length)

    async def parse_stream(
        self,
        stream: BinaryIO,
        context: OperationContext,
        token: CancellationToken | None,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        """
        Read the whole document and hand it to parse_bytes.

        Line-oriented formats override this to read lazily and stop at the
        row cap.
        """
        data = await asyncio.to_thread(stream.read)
        return await self.parse_bytes(data, context, token)

    async def parse_bytes(
        self,
        data: bytes,
        context: OperationContext,
        token: CancellationToken | None,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        """
        Turn a whole document into (headers, rows).

        Raises:
            FormatError: If the content is structurally invalid
        """
        raise NotImplementedError(f"{self.__class__.__name__} does not parse whole documents")

    def iter_text_lines(self, stream: BinaryIO, newline: str | None = "") -> Iterator[str]:
        """
        Decode a binary stream lazily, one line at a time.

        Only the bytes needed for the lines consumed are read. The stream is
        detached, not closed, when the iterator is closed.

        Raises:
            FormatError: If the bytes are not valid UTF-8
        """
        text = io.TextIOWrapper(stream, encoding="utf-8-sig", newline=newline)
        try:
            yield from text
        except UnicodeDecodeError as e:
            raise self.format_error(f"File is not valid UTF-8 text: {e}", e)
        finally:
            text.detach()

    def limit_columns(self, headers: list[str], context: OperationContext) -> list[str]:
        """
        Truncate headers to max_columns_per_dataset.

        Extra headers are dropped (with a warning step), never rejected.
        """
        max_columns = self.settings.max_columns_per_dataset
        if len(headers) <= max_columns:
            return list(headers)

        self.telemetry.log_step(
            context,
            FILE_TOO_MANY_COLUMNS,
            {
                "column_count": len(headers),
                "max_columns": max_columns,
                "file_format": self.file_format.value,
            },
        )
        increment_counter(columns_truncated_total, 1, file_format=self.file_format.value)
        return list(headers[:max_columns])

    def dedupe_headers(self, headers: list[str], context: OperationContext) -> list[str]:
        """
        Rename repeated column names to name_2, name_3, ...

        Every column keeps its own key in the rows; renames are logged as a
        warning step.
        """
        seen: set[str] = set()
        unique: list[str] = []
        renamed: dict[str, str] = {}
        for name in headers:
            candidate = name
            suffix = 1
            while candidate in seen:
                suffix += 1
                candidate = f"{name}_{suffix}"
            seen.add(candidate)
            unique.append(candidate)
            if candidate != name:
                renamed[candidate] = name

        if renamed:
            self.telemetry.log_step(
                context,
                DUPLICATE_COLUMNS_RENAMED,
                {"renamed": renamed, "file_format": self.file_format.value},
            )
        return unique

    async def checkpoint(self, row_index: int, token: CancellationToken | None) -> None:
        """Per-row cancellation check; yields to the event loop periodically."""
        check_cancelled(token)
        if row_index and row_index % YIELD_EVERY_ROWS == 0:
            await asyncio.sleep(0)

    def decode(self, data: bytes) -> str:
        """
        Decode UTF-8 text (a leading BOM is dropped).

        Raises:
            FormatError: If the bytes are not valid UTF-8
        """
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise self.format_error(f"File is not valid UTF-8 text: {e}", e)

    def format_error(
        self,
        message: str,
        original: Exception | None = None,
        fatal: bool = False,
    ) -> FormatError:
        """Build a FormatError for this parser's format and count it."""
        increment_counter(format_errors_total, 1, file_format=self.file_format.value)
        logger.warning(
            f"{self.file_format.value} parsing failed: {message}",
            extra={"file_format": self.file_format.value, "fatal": fatal},
        )
        return FormatError(message, file_format=self.file_format.value, original=original, fatal=fatal)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(format={self.file_format.value})"
