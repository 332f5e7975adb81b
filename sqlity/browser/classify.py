"""Read/write classification for free-form SQL.

This is a keyword-prefix heuristic, not a parser. Known misclassifications:

* ``WITH ... DELETE/UPDATE/INSERT`` is reported as read-only, so the change
  only reaches the file with the next mutating operation.
* Assigning pragmas such as ``PRAGMA user_version = 3`` are read-only too.
* Text holding several statements is classified by its first keyword only.
* A leading comment (``-- ...`` or ``/* ... */``) makes any statement
  mutating, which only costs an unnecessary flush.
"""

from __future__ import annotations

import re
from enum import Enum

READ_ONLY_KEYWORDS = ("SELECT", "PRAGMA", "EXPLAIN", "WITH")

_READ_ONLY_RE = re.compile(r"^\s*(" + "|".join(READ_ONLY_KEYWORDS) + r")\b", re.IGNORECASE)


class StatementKind(str, Enum):
    READ_ONLY = "read_only"
    MUTATING = "mutating"


def classify_statement(sql: str) -> StatementKind:
    """Classify ``sql`` by its leading keyword."""
    if _READ_ONLY_RE.match(sql or ""):
        return StatementKind.READ_ONLY
    return StatementKind.MUTATING
