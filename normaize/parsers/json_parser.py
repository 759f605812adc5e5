"""
Object-tree parser for JSON documents.
"""

import asyncio
import json
from typing import Any

from normaize.core.cancellation import CancellationToken
from normaize.core.models import FileFormat
from normaize.observability.telemetry import OperationContext
from normaize.parsers.base import BaseParser


def stringify(value: Any) -> str:
    """
    Render a JSON value as cell text.

    null -> "", strings as-is, everything else as compact JSON.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class JSONParser(BaseParser):
    """
    Reads a JSON array of objects (one row per object) or a single object
    (one row).

    Headers are the union of keys in first-seen order; array elements that
    are not objects are skipped.
    """

    file_format = FileFormat.JSON

    async def parse_bytes(
        self,
        data: bytes,
        context: OperationContext,
        token: CancellationToken | None,
    ) -> tuple[list[str], list[dict[str, Any]]]:
        text = self.decode(data)

        try:
            document = await asyncio.to_thread(json.loads, text)
        except json.JSONDecodeError as e:
            raise self.format_error(f"Invalid JSON: {e}", e)

        if isinstance(document, list):
            items = document
        elif isinstance(document, dict):
            items = [document]
        else:
            raise self.format_error(
                f"Unsupported JSON structure: root must be an array or object, got {type(document).__name__}"
            )

        # dict keeps insertion order; used as an ordered set
        seen: dict[str, None] = {}
        objects: list[dict[str, Any]] = []
        for item in items:
            if len(objects) >= self.max_rows:
                break
            if not isinstance(item, dict):
                continue
            await self.checkpoint(len(objects), token)
            objects.append(item)
            for key in item:
                seen.setdefault(key, None)

        headers = self.limit_columns(list(seen), context)
        rows = [
            {key: stringify(obj[key]) for key in headers if key in obj}
            for obj in objects
        ]
        return headers, rows
