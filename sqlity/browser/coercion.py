"""Type-affinity coercion of user-supplied values.

SQLite only loosely enforces declared column types, so values typed into the
grid or read from an import file are converted here before binding. The
declared type is matched by keyword substring, the same way SQLite derives
column affinity, and the first matching rule wins.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from datetime import timezone
from typing import Any, Callable

from dateutil import parser as date_parser

from .types import CellValue

ISO_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_DECIMAL_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")

NULL_TEXT = "NULL"
# Bounds of a SQLite INTEGER; wider values are stored as REAL.
SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1
DEFAULT_TYPE = "TEXT"


@dataclass(frozen=True, slots=True)
class AffinityRule:
    """A keyword group and the transform applied when the declared type matches."""

    name: str
    keywords: tuple[str, ...]
    transform: Callable[[Any], CellValue]

    def matches(self, declared_type: str) -> bool:
        return any(keyword in declared_type for keyword in self.keywords)


def text_form(value: Any) -> str:
    """Return the text a non-convertible value is stored as."""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def parse_number(value: Any) -> int | float | None:
    """Parse ``value`` as a finite number, or return None when it is not numeric."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return _fit_integer(value)
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if _INTEGER_RE.match(text):
        return _fit_integer(int(text))
    if _HEX_RE.match(text):
        return _fit_integer(int(text, 16))
    if _DECIMAL_RE.match(text):
        number = float(text)
        return number if math.isfinite(number) else None
    return None


def _fit_integer(number: int) -> int | float | None:
    if SQLITE_INT_MIN <= number <= SQLITE_INT_MAX:
        return number
    try:
        return float(number)
    except OverflowError:
        return None


def _to_integer(value: Any) -> CellValue:
    if isinstance(value, bool):
        return 1 if value else 0
    number = parse_number(value)
    if number is None:
        return text_form(value)
    return _fit_integer(math.trunc(number))


def _to_real(value: Any) -> CellValue:
    number = parse_number(value)
    if number is None:
        return text_form(value)
    return float(number)


def _to_timestamp(value: Any) -> CellValue:
    text = text_form(value).strip()
    if ISO_DATE_PREFIX_RE.match(text):
        return text
    try:
        parsed = date_parser.parse(text)
        # Naive timestamps are read as local time.
        if parsed.tzinfo is None:
            parsed = parsed.astimezone()
        parsed = parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError, OSError):
        return text_form(value)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


AFFINITY_RULES: tuple[AffinityRule, ...] = (
    AffinityRule("integer", ("INT", "BOOL"), _to_integer),
    AffinityRule("real", ("REAL", "FLOAT", "DOUBLE", "NUMERIC", "DECIMAL"), _to_real),
    AffinityRule("timestamp", ("DATE", "TIME"), _to_timestamp),
)


def resolve_rule(declared_type: str | None) -> AffinityRule | None:
    """Return the first rule matching ``declared_type``; None means text."""
    normalized = (declared_type or "").upper()
    for rule in AFFINITY_RULES:
        if rule.matches(normalized):
            return rule
    return None


def cast_value(raw: Any, declared_type: str | None) -> CellValue:
    """Coerce ``raw`` into a value SQLite should store for ``declared_type``.

    ``None`` and the literal text ``"NULL"`` always become NULL. Values that do
    not convert cleanly are kept as text rather than dropped. Binary values are
    passed through untouched.
    """
    if raw is None or (isinstance(raw, str) and raw == NULL_TEXT):
        return None
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)
    rule = resolve_rule(declared_type)
    if rule is None:
        return text_form(raw)
    return rule.transform(raw)
