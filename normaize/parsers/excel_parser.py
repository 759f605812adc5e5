"""
Spreadsheet parser built on openpyxl.

Only the first worksheet is read. Row 1 holds the headers; empty header
cells are named Column<n> (1-based column index).
"""

import asyncio
import io
from typing import Any

from openpyxl import load_workbook

from normaize.core.cancellation import CancellationToken
from normaize.core.constants import (
    DEFAULT_COLUMN_PREFIX,
    EXCEL_BULK_READ_FAILED,
    EXCEL_WORKSHEET_NOT_FOUND,
)
from normaize.core.models import FileFormat
from normaize.observability.telemetry import OperationContext
from normaize.parsers.base import BaseParser

HEADER_ROW = 1
DATA_START_ROW = 2


def cell_text(value: Any) -> str:
    """Render a cell value as text ("" for empty cells)."""
    if value is None:
        return ""
    return str(value)


class ExcelParser(BaseParser):
    """
    Reads .xlsx workbooks.

    Loading and the range read run in a worker thread. Data rows are
    fetched in one bulk range read; if that fails the parser falls back to
    reading cell by cell.
    """

    file_format = FileFormat.EXCEL

    async def parse_bytes(
        self,
        data: bytes,
        context: OperationContext,
        token: CancellationToken | None,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        try:
            workbook = await asyncio.to_thread(load_workbook, io.BytesIO(data), data_only=True)
        except Exception as e:
            raise self.format_error(f"Unreadable workbook: {e}", e)

        try:
            if not workbook.worksheets:
                self.telemetry.log_step(context, EXCEL_WORKSHEET_NOT_FOUND)
                raise self.format_error(EXCEL_WORKSHEET_NOT_FOUND, fatal=True)

            sheet = workbook.worksheets[0]
            if self._is_empty(sheet):
                return [], []

            headers = self.dedupe_headers(self._read_headers(sheet), context)
            headers = self.limit_columns(headers, context)
            values = await asyncio.to_thread(self._read_range, sheet, len(headers), context)

            rows: list[dict[str, Any]] = []
            for record in values:
                await self.checkpoint(len(rows), token)
                rows.append(
                    {
                        header: cell_text(record[i] if i < len(record) else None)
                        for i, header in enumerate(headers)
                    }
                )
        finally:
            workbook.close()

        return headers, rows

    @staticmethod
    def _is_empty(sheet) -> bool:
        return (
            sheet.max_row == 1
            and sheet.max_column == 1
            and sheet.cell(row=1, column=1).value is None
        )

    @staticmethod
    def _read_headers(sheet) -> list[str]:
        header_cells = next(
            sheet.iter_rows(min_row=HEADER_ROW, max_row=HEADER_ROW, values_only=True), ()
        )
        headers = []
        for index, value in enumerate(header_cells, start=1):
            text = cell_text(value).strip()
            headers.append(text or f"{DEFAULT_COLUMN_PREFIX}{index}")
        return headers

    def _read_range(self, sheet, column_count: int, context: OperationContext) -> list[tuple]:
        """Data rows up to the row cap, bulk first, then cell by cell."""
        last_row = min(sheet.max_row, DATA_START_ROW + self.max_rows - 1)
        if last_row < DATA_START_ROW or column_count == 0:
            return []

        try:
            return list(
                sheet.iter_rows(
                    min_row=DATA_START_ROW,
                    max_row=last_row,
                    max_col=column_count,
                    values_only=True,
                )
            )
        except Exception as e:
            self.telemetry.log_step(context, EXCEL_BULK_READ_FAILED, {"error": str(e)})

        return [
            tuple(sheet.cell(row=row, column=col).value for col in range(1, column_count + 1))
            for row in range(DATA_START_ROW, last_row + 1)
        ]
