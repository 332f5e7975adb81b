"""Minimal quoted-CSV reader and writer used by table import/export."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from sqlity.shared.exceptions import ImportFormatError
from sqlity.shared.utils import blob_to_text

QUOTE = '"'
SEPARATOR = ","
_NEEDS_QUOTING = (SEPARATOR, QUOTE, "\n", "\r")


def parse_csv(text: str) -> list[list[str]]:
    """Split CSV text into rows of field strings.

    Fields may be wrapped in double quotes, with ``""`` standing for a literal
    quote. ``\\n``, ``\\r\\n`` and a lone ``\\r`` all end a row. A final row
    without a line break is still returned. No type inference happens here.
    """
    rows: list[list[str]] = []
    current: list[str] = []
    field: list[str] = []
    in_quotes = False
    row_started = False
    index = 0
    length = len(text)

    while index < length:
        char = text[index]
        row_started = True
        if in_quotes:
            if char == QUOTE:
                if index + 1 < length and text[index + 1] == QUOTE:
                    field.append(QUOTE)
                    index += 1
                else:
                    in_quotes = False
            else:
                field.append(char)
        elif char == QUOTE:
            in_quotes = True
        elif char == SEPARATOR:
            current.append("".join(field))
            field = []
        elif char in ("\n", "\r"):
            if char == "\r" and index + 1 < length and text[index + 1] == "\n":
                index += 1
            current.append("".join(field))
            field = []
            rows.append(current)
            current = []
            row_started = False
        else:
            field.append(char)
        index += 1

    if in_quotes:
        raise ImportFormatError("CSV input ends inside a quoted field.")
    if row_started:
        current.append("".join(field))
        rows.append(current)
    return rows


def escape_field(value: Any) -> str:
    """Render one cell for CSV output; NULL becomes an empty field."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        text = blob_to_text(bytes(value))
    else:
        text = str(value)
    if any(token in text for token in _NEEDS_QUOTING):
        return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE
    return text


def format_csv(columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """Serialize a header and rows; lines are joined with ``\\n``."""
    lines = [SEPARATOR.join(escape_field(column) for column in columns)]
    for row in rows:
        lines.append(SEPARATOR.join(escape_field(cell) for cell in row))
    return "\n".join(lines)
