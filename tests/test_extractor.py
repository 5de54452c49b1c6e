"""
Tests for tolerant field extraction.
"""

from decimal import Decimal

import pytest

from posprint.errors import StructuralParseFailure
from posprint.parsing.extractor import (
    TokenKind,
    lookup,
    lookup_bool,
    lookup_decimal,
    lookup_int,
    parse,
    tokenize,
)


def test_escaped_quotes_are_unescaped():
    raw = r'{"name":"A \"B\" C"}'
    assert lookup(raw, "name") == 'A "B" C'


def test_missing_field_is_none():
    assert lookup('{"orderId": "42"}', "notes") is None


def test_bare_and_quoted_numbers_read_the_same():
    raw = '{"price": 18.99, "tax": "1.52"}'
    assert lookup(raw, "price") == "18.99"
    assert lookup_decimal(raw, "price") == Decimal("18.99")
    assert lookup_decimal(raw, "tax") == Decimal("1.52")


def test_first_occurrence_wins_in_document_order():
    raw = '{"customer": {"name": "Jane"}, "items": [{"name": "Pizza"}]}'
    assert lookup(raw, "name") == "Jane"


def test_container_value_is_not_a_scalar():
    raw = '{"customer": {"name": "Jane"}}'
    assert lookup(raw, "customer") is None
    assert parse(raw).record("customer").get("name") == "Jane"


def test_null_is_not_found():
    assert lookup('{"notes": null}', "notes") is None


def test_duplicate_keys_keep_first():
    assert parse('{"a": "1", "a": "2"}').get("a") == "1"


def test_unicode_and_control_escapes():
    raw = r'{"name": "Café\tBar\\"}'
    assert lookup(raw, "name") == "Café\tBar\\"


def test_malformed_unicode_escape_is_kept_literally():
    assert lookup(r'{"name": "x\uZZ"}', "name") == "xuZZ"


def test_unterminated_string_raises():
    with pytest.raises(StructuralParseFailure):
        lookup('{"name": "Pizza', "name")


def test_dangling_escape_raises():
    with pytest.raises(StructuralParseFailure):
        parse('{"name": "Pizza\\')


def test_tolerates_trailing_commas_and_stray_braces():
    record = parse('{"a": 1,, "b": 2,}} ] "c": 3 }')
    assert record.get("a") == "1"
    assert record.get("b") == "2"


def test_unclosed_containers_end_with_input():
    record = parse('{"items": [{"name": "Tea", "price": 2')
    items = record.records("items")
    assert len(items) == 1
    assert items[0].get("price") == "2"


def test_fragments_without_braces_parse():
    record = parse('"name": "Tea", "price": 2')
    assert record.get("name") == "Tea"
    assert record.get_int("price") == 2


def test_records_skips_non_objects():
    record = parse('{"items": [1, "two", {"name": "Tea"}, null]}')
    assert [item.get("name") for item in record.records("items")] == ["Tea"]


def test_records_of_scalar_is_empty():
    assert parse('{"items": "none"}').records("items") == []


@pytest.mark.parametrize("text, expected", [
    ("3", 3),
    (" 7 ", 7),
    ("1.5", None),
    ("two", None),
    ("1_000", None),
])
def test_lookup_int(text, expected):
    assert lookup_int(f'{{"quantity": "{text}"}}', "quantity") == expected


@pytest.mark.parametrize("text, expected", [
    ("true", True),
    ("TRUE", True),
    ("false", False),
    ("yes", None),
])
def test_lookup_bool(text, expected):
    assert lookup_bool(f'{{"flag": {text}}}', "flag") is expected


@pytest.mark.parametrize("text", ["NaN", "Infinity", "abc", "", "1_000", "1e30", "1e27"])
def test_lookup_decimal_rejects_non_numbers(text):
    assert lookup_decimal(f'{{"total": "{text}"}}', "total") is None


def test_tokenize_kinds():
    tokens = tokenize('{"a": [1, true]}')
    assert [t.kind for t in tokens] == [
        TokenKind.PUNCT,
        TokenKind.STRING,
        TokenKind.PUNCT,
        TokenKind.PUNCT,
        TokenKind.LITERAL,
        TokenKind.PUNCT,
        TokenKind.LITERAL,
        TokenKind.PUNCT,
        TokenKind.PUNCT,
    ]
    assert tokens[1].value == "a"
    assert tokens[1].position == 1


@pytest.mark.parametrize("text, expected", [
    ("1e3", Decimal("1000")),
    ("-0", Decimal("0")),
    ("1e25", Decimal("1e25")),
    ("0.005", Decimal("0.005")),
])
def test_lookup_decimal_accepts_exponents_within_cents_range(text, expected):
    assert lookup_decimal(f'{{"total": {text}}}', "total") == expected
