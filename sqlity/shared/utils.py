"""Miscellaneous helper utilities."""

from __future__ import annotations


def quote_identifier(name: str) -> str:
    """Return ``name`` as a double-quoted SQL identifier."""
    return '"' + str(name).replace('"', '""') + '"'


def format_count(value: int) -> str:
    """Format an integer with thousands separators (``1234`` -> ``1,234``)."""
    return f"{int(value):,}"


def blob_to_text(value: bytes) -> str:
    """Render binary cell content as lowercase hex for text exports."""
    return bytes(value).hex()
