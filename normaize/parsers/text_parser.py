"""
Raw-lines parser: one row per non-empty line.
"""

from contextlib import closing
from typing import Any, BinaryIO

from normaize.core.cancellation import CancellationToken
from normaize.core.constants import CONTENT_COLUMN, LINE_NUMBER_COLUMN
from normaize.core.models import FileFormat
from normaize.observability.telemetry import OperationContext
from normaize.parsers.base import BaseParser

TEXT_HEADERS = [LINE_NUMBER_COLUMN, CONTENT_COLUMN]


def strip_line_ending(line: str) -> str:
    """Drop a trailing "\\n" and then a trailing "\\r"."""
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


class TextParser(BaseParser):
    """
    Produces LineNumber/Content rows. Lines break on "\\n" only, so form
    feeds and other separators stay inside the content. Empty lines are
    skipped and do not count toward line numbers.
    """

    file_format = FileFormat.TXT

    async def parse_stream(
        self,
        stream: BinaryIO,
        context: OperationContext,
        token: CancellationToken | None,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        headers = self.limit_columns(TEXT_HEADERS, context)

        rows: list[dict[str, Any]] = []
        with closing(self.iter_text_lines(stream, newline="\n")) as lines:
            for raw in lines:
                if len(rows) >= self.max_rows:
                    break
                line = strip_line_ending(raw)
                if not line:
                    continue
                await self.checkpoint(len(rows), token)
                row = {LINE_NUMBER_COLUMN: len(rows) + 1, CONTENT_COLUMN: line}
                rows.append({key: row[key] for key in headers})

        return headers, rows
