"""
Markup-tree parser built on xml.etree.ElementTree.
"""

import asyncio
import xml.etree.ElementTree as ET
from typing import Any

from normaize.core.cancellation import CancellationToken
from normaize.core.models import FileFormat
from normaize.observability.telemetry import OperationContext
from normaize.parsers.base import BaseParser


def local_name(tag: str) -> str:
    """Strip a "{namespace}" prefix from a tag or attribute name."""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def element_text(element: ET.Element) -> str:
    """Concatenated text of an element and its descendants."""
    return "".join(element.itertext())


class XMLParser(BaseParser):
    """
    Reads XML documents in one of two shapes.

    A root with more than one child element is treated as a list of
    records: the first child's sub-elements define the headers and every
    child is a row. Any other root becomes a single row made of its
    attributes and child elements.
    """

    file_format = FileFormat.XML

    async def parse_bytes(
        self,
        data: bytes,
        context: OperationContext,
        token: CancellationToken | None,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        try:
            root = await asyncio.to_thread(ET.fromstring, data)
        except ET.ParseError as e:
            raise self.format_error(f"Invalid XML: {e}", e)

        children = list(root)
        if len(children) > 1:
            return await self._parse_records(children, context, token)
        return self._parse_single(root, context)

    async def _parse_records(
        self,
        children: list[ET.Element],
        context: OperationContext,
        token: CancellationToken | None,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        template: dict[str, None] = {}
        for element in children[0]:
            template.setdefault(local_name(element.tag), None)

        headers = self.limit_columns(list(template), context)
        allowed = set(headers)

        rows: list[dict[str, Any]] = []
        for child in children[: self.max_rows]:
            await self.checkpoint(len(rows), token)
            row = {}
            for element in child:
                name = local_name(element.tag)
                if name in allowed:
                    row[name] = element_text(element)
            rows.append(row)

        return headers, rows

    def _parse_single(
        self,
        root: ET.Element,
        context: OperationContext,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        values: dict[str, str] = {}
        for name, value in root.attrib.items():
            values[local_name(name)] = value
        for element in root:
            values[local_name(element.tag)] = element_text(element)

        headers = self.limit_columns(list(values), context)
        row = {name: values[name] for name in headers}
        return headers, [row]
