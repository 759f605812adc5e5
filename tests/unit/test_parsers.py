"""
Unit tests for the format parsers and the parser table.

Includes property-based testing with hypothesis for the row and column caps.
"""

import asyncio
import csv
import io
import json
import os
from types import SimpleNamespace

import pytest
from hypothesis import given, settings as hypothesis_settings
from hypothesis import strategies as st
from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from normaize.core.cancellation import CancellationToken
from normaize.core.config import DataProcessingSettings
from normaize.core.constants import (
    CSV_NO_HEADERS,
    DUPLICATE_COLUMNS_RENAMED,
    EXCEL_BULK_READ_FAILED,
    EXCEL_WORKSHEET_NOT_FOUND,
    FILE_TOO_MANY_COLUMNS,
)
from normaize.core.errors import FormatError, OperationCancelledError, UnsupportedFormatError
from normaize.core.models import FileFormat
from normaize.observability.telemetry import StructuredLogger
from normaize.parsers import (
    PARSER_REGISTRY,
    CSVParser,
    ExcelParser,
    JSONParser,
    TextParser,
    XMLParser,
    get_parser,
    supported_formats,
)
from normaize.parsers import excel_parser


def parse(parser, data: bytes, context, token=None):
    return asyncio.run(parser.parse(io.BytesIO(data), context, token))


class NonSeekableStream(io.RawIOBase):
    """Forward-only byte stream, like a socket or pipe."""

    def __init__(self, data: bytes):
        self._source = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._source.read(len(buffer))
        buffer[: len(chunk)] = chunk
        return len(chunk)


def workbook_bytes(rows: list[list]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def processing(settings) -> DataProcessingSettings:
    return settings.data_processing


@pytest.fixture
def context(telemetry):
    return telemetry.create_context("test_parse")


# =======================
# CSV
# =======================

class TestCSVParser:
    """Tests for CSVParser"""

    def test_headers_and_rows(self, processing, telemetry, context):
        """Test the first line becomes headers and values map by position"""
        result = parse(CSVParser(processing, telemetry), b"a,b,c\n1,2,3\n4,5,6\n", context)

        assert result.headers == ["a", "b", "c"]
        assert result.rows == [
            {"a": "1", "b": "2", "c": "3"},
            {"a": "4", "b": "5", "c": "6"},
        ]
        assert result.byte_length == len(b"a,b,c\n1,2,3\n4,5,6\n")

    def test_short_rows_padded(self, processing, telemetry, context):
        """Test missing trailing fields become empty strings"""
        result = parse(CSVParser(processing, telemetry), b"a,b,c\n1\n", context)
        assert result.rows == [{"a": "1", "b": "", "c": ""}]

    def test_quoted_fields(self, processing, telemetry, context):
        """Test quoted delimiters and newlines are kept inside the field"""
        data = b'name,note\n"Smith, J","line one\nline two"\n'
        result = parse(CSVParser(processing, telemetry), data, context)
        assert result.rows == [{"name": "Smith, J", "note": "line one\nline two"}]

    def test_blank_lines_skipped(self, processing, telemetry, context):
        """Test blank lines do not produce rows"""
        result = parse(CSVParser(processing, telemetry), b"a,b\n\n1,2\n\n", context)
        assert result.rows == [{"a": "1", "b": "2"}]

    def test_utf8_bom_stripped(self, processing, telemetry, context):
        """Test a leading BOM does not leak into the first header"""
        result = parse(CSVParser(processing, telemetry), b"\xef\xbb\xbfid,name\n1,x\n", context)
        assert result.headers == ["id", "name"]

    def test_empty_file_is_not_an_error(self, processing, telemetry, context):
        """Test an empty file yields no headers and a warning step"""
        result = parse(CSVParser(processing, telemetry), b"", context)

        assert result.headers == []
        assert result.rows == []
        assert CSV_NO_HEADERS in context.step_descriptions

    def test_malformed_quoting(self, processing, telemetry, context):
        """Test malformed quoting raises a non-fatal FormatError"""
        with pytest.raises(FormatError) as exc_info:
            parse(CSVParser(processing, telemetry), b'a,b\n"1"x,2\n', context)

        assert exc_info.value.fatal is False
        assert exc_info.value.file_format == "csv"
        assert isinstance(exc_info.value.original, csv.Error)

    def test_invalid_encoding(self, processing, telemetry, context):
        """Test undecodable bytes raise FormatError"""
        with pytest.raises(FormatError, match="UTF-8"):
            parse(CSVParser(processing, telemetry), b"a,b\n\xff\xfe,1\n", context)

    def test_column_cap_applied_before_rows(self, processing, telemetry, context):
        """Test headers beyond the cap are dropped from headers and rows"""
        headers = [f"h{i}" for i in range(12)]
        values = [str(i) for i in range(12)]
        data = (",".join(headers) + "\n" + ",".join(values) + "\n").encode()

        result = parse(CSVParser(processing, telemetry), data, context)

        assert result.headers == headers[:10]
        assert list(result.rows[0]) == headers[:10]
        assert "h11" not in result.rows[0]
        assert FILE_TOO_MANY_COLUMNS in context.step_descriptions

    def test_row_cap(self, processing, telemetry, context):
        """Test rows beyond max_rows_per_dataset are not read"""
        data = ("n\n" + "".join(f"{i}\n" for i in range(80))).encode()
        result = parse(CSVParser(processing, telemetry), data, context)

        assert len(result.rows) == 50
        assert result.rows[-1] == {"n": "49"}

    def test_reading_stops_at_row_cap(self, telemetry, context):
        """Test a large file is only read as far as the row cap needs"""
        caps = DataProcessingSettings(max_rows_per_dataset=1, max_columns_per_dataset=10, max_preview_rows=1)
        data = b"id,value\n" + b"".join(b"%d,xxxxxxxx\n" % i for i in range(80_000))
        stream = io.BytesIO(data)

        result = asyncio.run(CSVParser(caps, telemetry).parse(stream, context))

        assert result.rows == [{"id": "0", "value": "xxxxxxxx"}]
        assert result.byte_length == len(data)
        assert stream.tell() < len(data) // 10

    def test_duplicate_headers_renamed(self, processing, telemetry, context):
        """Test repeated header names keep every column under a suffixed key"""
        result = parse(CSVParser(processing, telemetry), b"a,a,b,a\n1,2,3,4\n", context)

        assert result.headers == ["a", "a_2", "b", "a_3"]
        assert result.rows == [{"a": "1", "a_2": "2", "b": "3", "a_3": "4"}]
        assert DUPLICATE_COLUMNS_RENAMED in context.step_descriptions

    def test_unique_headers_log_no_rename(self, processing, telemetry, context):
        parse(CSVParser(processing, telemetry), b"a,b\n1,2\n", context)
        assert DUPLICATE_COLUMNS_RENAMED not in context.step_descriptions

    def test_non_seekable_stream(self, processing, telemetry, context):
        """Test forward-only streams are parsed and measured"""
        data = b"a,b\n1,2\n"
        result = asyncio.run(CSVParser(processing, telemetry).parse(NonSeekableStream(data), context))

        assert result.rows == [{"a": "1", "b": "2"}]
        assert result.byte_length == len(data)

    def test_fixture_file(self, processing, telemetry, context, test_data_dir):
        """Test the sales fixture parses with an empty amount kept as an empty string"""
        with open(os.path.join(test_data_dir, "sales.csv"), "rb") as f:
            result = parse(CSVParser(processing, telemetry), f.read(), context)

        assert result.headers == ["transaction_id", "amount", "region"]
        assert len(result.rows) == 3
        assert result.rows[2]["amount"] == ""

    @hypothesis_settings(max_examples=30, deadline=None)
    @given(
        n_rows=st.integers(min_value=0, max_value=40),
        n_cols=st.integers(min_value=1, max_value=15),
    )
    def test_property_caps_hold(self, n_rows, n_cols):
        """Property test: row and column counts never exceed the caps"""
        caps = DataProcessingSettings(max_rows_per_dataset=20, max_columns_per_dataset=6, max_preview_rows=5)
        telemetry = StructuredLogger()
        context = telemetry.create_context("property")
        header = ",".join(f"c{i}" for i in range(n_cols))
        body = "".join(",".join("v" for _ in range(n_cols)) + "\n" for _ in range(n_rows))

        result = parse(CSVParser(caps, telemetry), f"{header}\n{body}".encode(), context)

        assert len(result.headers) == min(n_cols, 6)
        assert len(result.rows) == min(n_rows, 20)
        assert all(set(row) <= set(result.headers) for row in result.rows)


# =======================
# JSON
# =======================

class TestJSONParser:
    """Tests for JSONParser"""

    def test_array_headers_are_union_in_first_seen_order(self, processing, telemetry, context, test_data_dir):
        """Test headers accumulate across objects and non-objects are skipped"""
        with open(os.path.join(test_data_dir, "events.json"), "rb") as f:
            result = parse(JSONParser(processing, telemetry), f.read(), context)

        assert result.headers == ["id", "type", "meta", "duration"]
        assert result.rows == [
            {"id": "1", "type": "click", "meta": '{"x":10}'},
            {"id": "2", "type": "view", "duration": "3.5"},
            {"id": "3", "type": ""},
        ]

    def test_root_object_is_one_row(self, processing, telemetry, context):
        """Test a root object becomes a single row"""
        result = parse(JSONParser(processing, telemetry), b'{"a": 1, "b": "x", "c": true}', context)

        assert result.headers == ["a", "b", "c"]
        assert result.rows == [{"a": "1", "b": "x", "c": "true"}]

    def test_empty_array(self, processing, telemetry, context):
        """Test an empty array yields nothing"""
        result = parse(JSONParser(processing, telemetry), b"[]", context)
        assert result.headers == []
        assert result.rows == []

    @pytest.mark.parametrize("document", [b"42", b'"text"', b"null"])
    def test_scalar_root_rejected(self, processing, telemetry, context, document):
        """Test a scalar root raises FormatError"""
        with pytest.raises(FormatError, match="Unsupported JSON structure"):
            parse(JSONParser(processing, telemetry), document, context)

    def test_malformed_json(self, processing, telemetry, context):
        """Test malformed text raises FormatError carrying the decoder error"""
        with pytest.raises(FormatError) as exc_info:
            parse(JSONParser(processing, telemetry), b'[{"a": 1},', context)

        assert isinstance(exc_info.value.original, json.JSONDecodeError)
        assert exc_info.value.fatal is False

    def test_row_cap_counts_objects(self, processing, telemetry, context):
        """Test the row cap counts object rows only"""
        items = ["skip"] * 10 + [{"i": i} for i in range(70)]
        result = parse(JSONParser(processing, telemetry), json.dumps(items).encode(), context)

        assert len(result.rows) == 50
        assert result.rows[0] == {"i": "0"}

    def test_column_cap(self, processing, telemetry, context):
        """Test keys beyond the cap are dropped from rows"""
        item = {f"k{i}": i for i in range(15)}
        result = parse(JSONParser(processing, telemetry), json.dumps([item]).encode(), context)

        assert result.headers == [f"k{i}" for i in range(10)]
        assert set(result.rows[0]) == set(result.headers)


# =======================
# EXCEL
# =======================

class TestExcelParser:
    """Tests for ExcelParser"""

    def test_headers_and_rows(self, processing, telemetry, context):
        """Test the first row is headers and empty header cells are named ColumnN"""
        data = workbook_bytes([["name", None, "age"], ["ann", "x", 30], ["bob", None, None]])
        result = parse(ExcelParser(processing, telemetry), data, context)

        assert result.headers == ["name", "Column2", "age"]
        assert result.rows == [
            {"name": "ann", "Column2": "x", "age": "30"},
            {"name": "bob", "Column2": "", "age": ""},
        ]

    def test_duplicate_headers_renamed(self, processing, telemetry, context):
        data = workbook_bytes([["id", "id"], [1, 2]])
        result = parse(ExcelParser(processing, telemetry), data, context)

        assert result.headers == ["id", "id_2"]
        assert result.rows == [{"id": "1", "id_2": "2"}]
        assert DUPLICATE_COLUMNS_RENAMED in context.step_descriptions

    def test_empty_sheet(self, processing, telemetry, context):
        """Test an empty first sheet yields nothing"""
        result = parse(ExcelParser(processing, telemetry), workbook_bytes([]), context)
        assert result.headers == []
        assert result.rows == []

    def test_row_cap(self, processing, telemetry, context):
        """Test rows beyond the cap are not read"""
        data = workbook_bytes([["n"]] + [[i] for i in range(70)])
        result = parse(ExcelParser(processing, telemetry), data, context)
        assert len(result.rows) == 50

    def test_no_worksheet_is_fatal(self, processing, telemetry, context, monkeypatch):
        """Test a workbook without sheets raises a fatal FormatError"""
        monkeypatch.setattr(
            excel_parser,
            "load_workbook",
            lambda *args, **kwargs: SimpleNamespace(worksheets=[], close=lambda: None),
        )

        with pytest.raises(FormatError) as exc_info:
            parse(ExcelParser(processing, telemetry), b"ignored", context)

        assert exc_info.value.fatal is True
        assert EXCEL_WORKSHEET_NOT_FOUND in context.step_descriptions

    def test_unreadable_workbook(self, processing, telemetry, context):
        """Test bytes that are not a workbook raise a non-fatal FormatError"""
        with pytest.raises(FormatError, match="Unreadable workbook") as exc_info:
            parse(ExcelParser(processing, telemetry), b"definitely not a zip", context)

        assert exc_info.value.fatal is False

    def test_bulk_read_falls_back_to_cells(self, processing, telemetry, context, monkeypatch):
        """Test a failing bulk range read falls back to cell-by-cell reads"""
        original_iter_rows = Worksheet.iter_rows

        def failing_iter_rows(self, min_row=None, *args, **kwargs):
            if min_row == excel_parser.DATA_START_ROW:
                raise RuntimeError("bulk read unavailable")
            return original_iter_rows(self, min_row, *args, **kwargs)

        monkeypatch.setattr(Worksheet, "iter_rows", failing_iter_rows)
        data = workbook_bytes([["a", "b"], [1, 2], [3, 4]])

        result = parse(ExcelParser(processing, telemetry), data, context)

        assert result.rows == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}]
        assert EXCEL_BULK_READ_FAILED in context.step_descriptions


# =======================
# XML
# =======================

class TestXMLParser:
    """Tests for XMLParser"""

    def test_repeated_children_become_rows(self, processing, telemetry, context, test_data_dir):
        """Test the first child defines headers and namespaces are stripped"""
        with open(os.path.join(test_data_dir, "catalog.xml"), "rb") as f:
            result = parse(XMLParser(processing, telemetry), f.read(), context)

        assert result.headers == ["title", "author"]
        assert result.rows == [
            {"title": "Dune", "author": "Frank Herbert"},
            {"title": "Solaris", "author": "Stanislaw Lem"},
        ]

    def test_single_object(self, processing, telemetry, context):
        """Test attributes and child elements of a lone root form one row"""
        data = b'<config version="2"><owner><first>A</first><last>B</last></owner></config>'
        result = parse(XMLParser(processing, telemetry), data, context)

        assert result.headers == ["version", "owner"]
        assert result.rows == [{"version": "2", "owner": "AB"}]

    def test_rows_limited_to_template_headers(self, processing, telemetry, context):
        """Test elements absent from the first child are not added to rows"""
        data = b"<r><i><a>1</a></i><i><a>2</a><b>extra</b></i></r>"
        result = parse(XMLParser(processing, telemetry), data, context)

        assert result.headers == ["a"]
        assert result.rows == [{"a": "1"}, {"a": "2"}]

    def test_malformed_xml(self, processing, telemetry, context):
        """Test malformed markup raises FormatError"""
        with pytest.raises(FormatError, match="Invalid XML"):
            parse(XMLParser(processing, telemetry), b"<root><unclosed></root>", context)

    def test_row_cap(self, processing, telemetry, context):
        """Test child rows beyond the cap are not read"""
        data = ("<r>" + "".join(f"<i><n>{i}</n></i>" for i in range(70)) + "</r>").encode()
        result = parse(XMLParser(processing, telemetry), data, context)
        assert len(result.rows) == 50


# =======================
# TEXT
# =======================

class TestTextParser:
    """Tests for TextParser"""

    def test_non_empty_lines(self, processing, telemetry, context, test_data_dir):
        """Test one row per non-empty line with 1-based line numbers"""
        with open(os.path.join(test_data_dir, "notes.txt"), "rb") as f:
            result = parse(TextParser(processing, telemetry), f.read(), context)

        assert result.headers == ["LineNumber", "Content"]
        assert result.rows == [
            {"LineNumber": 1, "Content": "first line"},
            {"LineNumber": 2, "Content": "second line"},
            {"LineNumber": 3, "Content": "third line"},
        ]

    def test_row_cap(self, processing, telemetry, context):
        """Test lines beyond the cap are not read"""
        data = "".join(f"line {i}\n" for i in range(80)).encode()
        result = parse(TextParser(processing, telemetry), data, context)
        assert len(result.rows) == 50

    def test_form_feed_stays_in_content(self, processing, telemetry, context):
        """Test lines split on newlines only so form feeds and other separators stay in the content"""
        data = b"page1\x0cpage2\x1cend\r\nnext\x0bline\n"
        result = parse(TextParser(processing, telemetry), data, context)

        assert result.rows == [
            {"LineNumber": 1, "Content": "page1\x0cpage2\x1cend"},
            {"LineNumber": 2, "Content": "next\x0bline"},
        ]

    def test_last_line_without_newline(self, processing, telemetry, context):
        result = parse(TextParser(processing, telemetry), b"one\r\ntwo", context)
        assert [row["Content"] for row in result.rows] == ["one", "two"]

    def test_reading_stops_at_row_cap(self, telemetry, context):
        """Test a large file is only read as far as the row cap needs"""
        caps = DataProcessingSettings(max_rows_per_dataset=1, max_columns_per_dataset=10, max_preview_rows=1)
        data = b"".join(b"line %d\n" % i for i in range(100_000))
        stream = io.BytesIO(data)

        result = asyncio.run(TextParser(caps, telemetry).parse(stream, context))

        assert result.rows == [{"LineNumber": 1, "Content": "line 0"}]
        assert result.byte_length == len(data)
        assert stream.tell() < len(data) // 10


# =======================
# CANCELLATION / REGISTRY
# =======================

class TestCancellation:
    """Tests for cancellation inside parsers"""

    @pytest.mark.parametrize("parser_class,data", [
        (CSVParser, b"a\n1\n"),
        (JSONParser, b'[{"a": 1}]'),
        (TextParser, b"line\n"),
    ])
    def test_cancelled_token_stops_parsing(self, processing, telemetry, context, parser_class, data):
        """Test a cancelled token raises OperationCancelledError"""
        token = CancellationToken()
        token.cancel("client went away")

        with pytest.raises(OperationCancelledError, match="client went away"):
            parse(parser_class(processing, telemetry), data, context, token)


class TestParserRegistry:
    """Tests for the parser table"""

    @pytest.mark.parametrize("file_format,parser_class", [
        (FileFormat.CSV, CSVParser),
        (FileFormat.JSON, JSONParser),
        (FileFormat.EXCEL, ExcelParser),
        (FileFormat.XML, XMLParser),
        (FileFormat.TXT, TextParser),
    ])
    def test_get_parser(self, processing, file_format, parser_class):
        """Test each supported format maps to its parser"""
        assert isinstance(get_parser(file_format, processing), parser_class)
        assert PARSER_REGISTRY[file_format] is parser_class

    @pytest.mark.parametrize("file_format", [FileFormat.PARQUET, FileFormat.CUSTOM])
    def test_unsupported_format(self, processing, file_format):
        """Test formats without a parser raise UnsupportedFormatError"""
        with pytest.raises(UnsupportedFormatError):
            get_parser(file_format, processing)

    def test_supported_formats_match_table(self):
        assert supported_formats() == list(PARSER_REGISTRY)
        assert FileFormat.PARQUET not in supported_formats()
