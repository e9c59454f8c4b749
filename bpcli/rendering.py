"""Rendering of tables and JSON documents for terminal output."""

from __future__ import annotations

import base64
import dataclasses
import json
import os
import sys
import textwrap
from typing import IO, Any, Optional, Sequence

_FALLBACK_COLUMN_WIDTH = 200
_COLUMN_PADDING = 2
_ELLIPSIS = "..."
_MAX_CELL_WIDTH = 30
_TABLE_PADDING = "\t"


def _terminal_width() -> Optional[int]:
    try:
        return os.get_terminal_size(0).columns
    except (OSError, ValueError):
        return None


def _truncating_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b > 0) else -quotient


def optimal_column_width(
    data: Sequence[Sequence[str]],
    column_padding: int = _COLUMN_PADDING,
    terminal_width: Optional[int] = None,
) -> int:
    """Share the terminal width evenly between all columns after the first.

    The first column keeps its full length. When the terminal width is not
    given and cannot be detected, a fallback width is returned.
    """
    if terminal_width is None:
        terminal_width = _terminal_width()
        if terminal_width is None:
            return _FALLBACK_COLUMN_WIDTH
    if not data:
        raise ValueError("no rows to measure")
    columns = len(data[0])
    if columns < 2:
        raise ValueError("at least two columns are needed to share the width")
    first_column = max(len(row[0]) for row in data)
    available = terminal_width - first_column - column_padding
    return _truncating_div(available, columns - 1) - len(_ELLIPSIS)


def truncate_columns(row: Sequence[str], max_column_width: int) -> list[str]:
    """Cut every column but the first at a newline or at max_column_width."""
    if max_column_width < 0 and len(row) > 1:
        raise ValueError(f"column width must not be negative: {max_column_width}")
    processed = []
    for column, content in enumerate(row):
        if column > 0:
            newline = content.find("\n")
            if newline >= 0 and newline >= max_column_width:
                content = content[:max_column_width] + _ELLIPSIS
            elif newline >= 0:
                content = content[:newline] + _ELLIPSIS
            elif len(content) >= max_column_width:
                content = content[:max_column_width] + _ELLIPSIS
        processed.append(content)
    return processed


def _align_tab_separated(text: str, padding: int) -> str:
    lines = text.split("\n")
    cells = [line.split("\t") for line in lines]
    widths: dict[int, int] = {}
    for row in cells:
        for index, cell in enumerate(row[:-1]):
            widths[index] = max(widths.get(index, 0), len(cell))
    aligned = []
    for row in cells:
        parts = [cell.ljust(widths[index] + padding) for index, cell in enumerate(row[:-1])]
        parts.append(row[-1])
        aligned.append("".join(parts))
    return "\n".join(aligned)


def render_tabbed_table(
    headers: Sequence[str],
    data: Sequence[Sequence[str]],
    out: Optional[IO[str]] = None,
) -> None:
    """Write a tab-aligned table sized to the terminal; the first column is never cut."""
    out = out if out is not None else sys.stdout
    max_column_width = optimal_column_width(data, _COLUMN_PADDING)
    lines = ["\t".join(headers)]
    lines.extend("\t".join(truncate_columns(row, max_column_width)) for row in data)
    text = "\n".join(lines) + "\n"
    out.write(_align_tab_separated(text, _COLUMN_PADDING))
    out.flush()


def _title(name: str) -> str:
    original_length = len(name)
    name = name.replace("_", " ").replace(".", " ").strip()
    if not name and original_length:
        name = " "
    return name.upper()


def _cell_lines(text: str) -> list[str]:
    raw = text.split("\n")
    limit = min(max(len(line) for line in raw), _MAX_CELL_WIDTH)
    paragraph = " ".join(" ".join(raw).split())
    wrapped = textwrap.wrap(
        paragraph,
        width=max(limit, 1),
        break_long_words=False,
        break_on_hyphens=False,
    )
    return wrapped or [""]


def render_table(
    headers: Sequence[str],
    data: Sequence[Sequence[str]],
    out: Optional[IO[str]] = None,
) -> None:
    """Write a borderless, left-aligned table with upper-case headers and wrapped cells."""
    out = out if out is not None else sys.stdout
    column_count = max([len(headers), *(len(row) for row in data)])

    def cells(row: Sequence[str]) -> list[list[str]]:
        padded = list(row) + [""] * (column_count - len(row))
        return [_cell_lines(cell) for cell in padded]

    rows = []
    if headers:
        rows.append(cells([_title(header) for header in headers]))
    rows.extend(cells(row) for row in data)

    widths = [0] * column_count
    for row in rows:
        for index, lines in enumerate(row):
            widths[index] = max(widths[index], *(len(line) for line in lines))

    for row in rows:
        height = max(len(lines) for lines in row)
        for line_index in range(height):
            parts = [
                (lines[line_index] if line_index < len(lines) else "").ljust(widths[index])
                for index, lines in enumerate(row)
            ]
            out.write(_TABLE_PADDING.join(parts).rstrip(" ") + "\n")
    out.flush()


def _to_json_value(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result = {}
        for item in dataclasses.fields(value):
            field_value = getattr(value, item.name)
            if field_value is None:
                continue
            head, *rest = item.name.split("_")
            key = head + "".join(part.capitalize() for part in rest)
            result[key] = field_value
        return result
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(value: Any) -> str:
    text = json.dumps(value, indent=2, ensure_ascii=False, default=_to_json_value)
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def render_json(reader: IO[Any], out: Optional[IO[str]] = None) -> None:
    """Read everything from reader and write it as an indented JSON byte string."""
    out = out if out is not None else sys.stdout
    body = reader.read()
    if isinstance(body, str):
        body = body.encode("utf-8")
    print(_dumps(bytes(body)), file=out)


def render_json_bytes(value: Any, out: Optional[IO[str]] = None) -> None:
    """Write value as indented JSON."""
    out = out if out is not None else sys.stdout
    print(_dumps(value), file=out)