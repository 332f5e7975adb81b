from __future__ import annotations

import pytest

from sqlity.browser.csv_codec import escape_field, format_csv, parse_csv
from sqlity.shared.exceptions import ImportFormatError


def test_parse_simple_rows() -> None:
    assert parse_csv("a,b\n1,2\n") == [["a", "b"], ["1", "2"]]


def test_parse_keeps_final_row_without_newline() -> None:
    assert parse_csv("a,b\n1,2") == [["a", "b"], ["1", "2"]]


def test_parse_quoted_fields() -> None:
    text = 'name,note\n"Smith, Jo","said ""hi""\nthen left"\n'
    assert parse_csv(text) == [["name", "note"], ["Smith, Jo", 'said "hi"\nthen left']]


@pytest.mark.parametrize("text", ["a\r\nb\r\n", "a\rb", "a\nb"])
def test_parse_line_endings(text: str) -> None:
    assert parse_csv(text) == [["a"], ["b"]]


def test_parse_empty_fields_and_blank_lines() -> None:
    assert parse_csv("a,,c\n\n,\n") == [["a", "", "c"], [""], ["", ""]]


def test_parse_empty_text() -> None:
    assert parse_csv("") == []


def test_parse_unterminated_quote_raises() -> None:
    with pytest.raises(ImportFormatError):
        parse_csv('a\n"never closed\n')


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, ""),
        ("plain", "plain"),
        (3, "3"),
        (2.5, "2.5"),
        ("a,b", '"a,b"'),
        ('say "x"', '"say ""x"""'),
        ("two\nlines", '"two\nlines"'),
        (b"\xff\x00", "ff00"),
    ],
)
def test_escape_field(value, expected: str) -> None:
    assert escape_field(value) == expected


def test_format_csv_header_only_for_empty_rows() -> None:
    assert format_csv(("id", "name"), []) == "id,name"


def test_format_csv_output_parses_back() -> None:
    rows = [(1, "Smith, Jo"), (2, 'quote "q"'), (3, None)]
    text = format_csv(("id", "name"), rows)
    assert text.split("\n")[0] == "id,name"
    assert parse_csv(text) == [
        ["id", "name"],
        ["1", "Smith, Jo"],
        ["2", 'quote "q"'],
        ["3", ""],
    ]
