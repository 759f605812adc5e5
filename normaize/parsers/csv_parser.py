"""
Delimited-text parser built on the csv module in strict mode.
"""

import csv
from contextlib import closing
from typing import Any, BinaryIO

from normaize.core.cancellation import CancellationToken
from normaize.core.constants import CSV_NO_HEADERS
from normaize.core.models import FileFormat
from normaize.observability.telemetry import OperationContext
from normaize.parsers.base import BaseParser


class CSVParser(BaseParser):
    """
    Reads comma-separated files whose first record is the header row.

    Short rows are padded with "" for missing fields, blank lines are
    skipped, repeated header names get a numeric suffix, and malformed
    quoting raises FormatError. Reading stops once the row cap is reached.
    """

    file_format = FileFormat.CSV

    def __init__(self, settings, telemetry=None, delimiter: str = ","):
        """
        Args:
            settings: Row, column and preview caps
            telemetry: Structured logger for warning steps
            delimiter: Field delimiter
        """
        super().__init__(settings, telemetry)
        self.delimiter = delimiter

    async def parse_stream(
        self,
        stream: BinaryIO,
        context: OperationContext,
        token: CancellationToken | None,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        with closing(self.iter_text_lines(stream, newline="")) as lines:
            reader = csv.reader(lines, delimiter=self.delimiter, strict=True)

            try:
                header_row = self._next_record(reader)
                if header_row is None:
                    self.telemetry.log_step(context, CSV_NO_HEADERS)
                    return [], []

                headers = self.dedupe_headers([h.strip() for h in header_row], context)
                headers = self.limit_columns(headers, context)
                rows: list[dict[str, Any]] = []

                while len(rows) < self.max_rows:
                    record = self._next_record(reader)
                    if record is None:
                        break
                    await self.checkpoint(len(rows), token)
                    rows.append(
                        {header: record[i] if i < len(record) else "" for i, header in enumerate(headers)}
                    )
            except csv.Error as e:
                raise self.format_error(f"Malformed CSV at line {reader.line_num}: {e}", e)

        return headers, rows

    @staticmethod
    def _next_record(reader) -> list[str] | None:
        """Next non-blank record, or None at end of input."""
        for record in reader:
            if record:
                return record
        return None
