"""
Format parsers producing a uniform (headers, rows) result.
"""

from .base import BaseParser, ParseResult
from .csv_parser import CSVParser
from .excel_parser import ExcelParser
from .json_parser import JSONParser
from .registry import PARSER_REGISTRY, get_parser, supported_formats
from .text_parser import TextParser
from .xml_parser import XMLParser

__all__ = [
    "BaseParser",
    "ParseResult",
    "CSVParser",
    "JSONParser",
    "ExcelParser",
    "XMLParser",
    "TextParser",
    "PARSER_REGISTRY",
    "get_parser",
    "supported_formats",
]
