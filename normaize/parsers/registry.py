"""
Parser table mapping each FileFormat to its parser class.

Adding a format means adding one entry here.
"""

from normaize.core.config import DataProcessingSettings
from normaize.core.constants import UNSUPPORTED_FILE_FORMAT
from normaize.core.errors import UnsupportedFormatError
from normaize.core.models import FileFormat
from normaize.observability.telemetry import StructuredLogger
from normaize.parsers.base import BaseParser
from normaize.parsers.csv_parser import CSVParser
from normaize.parsers.excel_parser import ExcelParser
from normaize.parsers.json_parser import JSONParser
from normaize.parsers.text_parser import TextParser
from normaize.parsers.xml_parser import XMLParser

PARSER_REGISTRY: dict[FileFormat, type[BaseParser]] = {
    FileFormat.CSV: CSVParser,
    FileFormat.JSON: JSONParser,
    FileFormat.EXCEL: ExcelParser,
    FileFormat.XML: XMLParser,
    FileFormat.TXT: TextParser,
}


def get_parser(
    file_format: FileFormat,
    settings: DataProcessingSettings,
    telemetry: StructuredLogger | None = None,
) -> BaseParser:
    """
    Instantiate the parser for a format.

    Raises:
        UnsupportedFormatError: If no parser is registered for the format
    """
    parser_class = PARSER_REGISTRY.get(file_format)
    if parser_class is None:
        raise UnsupportedFormatError(
            f"{UNSUPPORTED_FILE_FORMAT}: {file_format.value}", file_format=file_format.value
        )
    return parser_class(settings, telemetry)


def supported_formats() -> list[FileFormat]:
    """Formats that have a registered parser, in table order."""
    return list(PARSER_REGISTRY)
