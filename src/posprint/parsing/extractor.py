"""Tolerant field extraction from loosely structured payload text.

POS front ends post JSON-like text that is not always well formed:
trailing commas, stray braces, numbers sent as strings or as bare
literals. Extraction works in two passes:

1. ``tokenize`` splits the text into quoted strings, punctuation and
   bare literals.
2. ``parse`` folds the tokens into a ``Record`` tree, skipping anything
   it cannot place instead of failing.

A missing or mistyped field is reported as ``None`` and the caller keeps
its default. The only error is ``StructuralParseFailure``, raised for
text whose quoting never terminates.
"""

import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

from posprint.errors import StructuralParseFailure

logger = logging.getLogger(__name__)

PUNCTUATION = "{}[]:,"

CENTS = Decimal("0.01")

_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


class TokenKind(Enum):
    """Token categories produced by the first pass."""

    STRING = "string"
    LITERAL = "literal"
    PUNCT = "punct"


class Token(NamedTuple):
    kind: TokenKind
    value: str
    position: int


Value = Union[str, None, "Record", list]


# =============================================================================
# Pass 1: tokenizer
# =============================================================================

def _scan_string(text: str, start: int) -> Tuple[str, int]:
    """Read a quoted string starting at the opening quote.

    Escaped quotes are skipped while looking for the closing quote.

    Returns:
        Decoded string value and the index just past the closing quote
    """
    chars: List[str] = []
    i = start + 1
    n = len(text)

    while True:
        if i >= n:
            raise StructuralParseFailure("Unterminated string", start)

        ch = text[i]
        if ch == '"':
            return "".join(chars), i + 1

        if ch != "\\":
            chars.append(ch)
            i += 1
            continue

        if i + 1 >= n:
            raise StructuralParseFailure("Dangling escape", i)

        code = text[i + 1]
        if code == "u":
            digits = text[i + 2:i + 6]
            try:
                if len(digits) != 4:
                    raise ValueError(digits)
                chars.append(chr(int(digits, 16)))
                i += 6
                continue
            except ValueError:
                # Malformed \u escape keeps the letter
                chars.append(code)
                i += 2
                continue

        chars.append(_ESCAPES.get(code, code))
        i += 2


def tokenize(text: str) -> List[Token]:
    """Split payload text into tokens.

    Raises:
        StructuralParseFailure: On unterminated quoting
    """
    tokens: List[Token] = []
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if ch.isspace():
            i += 1
        elif ch in PUNCTUATION:
            tokens.append(Token(TokenKind.PUNCT, ch, i))
            i += 1
        elif ch == '"':
            value, end = _scan_string(text, i)
            tokens.append(Token(TokenKind.STRING, value, i))
            i = end
        else:
            start = i
            while i < n and not text[i].isspace() and text[i] not in PUNCTUATION and text[i] != '"':
                i += 1
            tokens.append(Token(TokenKind.LITERAL, text[start:i], start))

    return tokens


# =============================================================================
# Typed value parsing
# =============================================================================

def parse_decimal(text: Optional[str]) -> Optional[Decimal]:
    """Parse a money value.

    None unless the text is a finite decimal that can be carried to the
    cent at the default context precision. Digit grouping with ``_``
    is not accepted.
    """
    if text is None or "_" in text:
        return None
    try:
        value = Decimal(text.strip())
        if not value.is_finite():
            return None
        value.quantize(CENTS)
    except (InvalidOperation, ValueError):
        return None
    return value


def parse_int(text: Optional[str]) -> Optional[int]:
    """Parse a whole number; fractions, ``_`` grouping and junk give None."""
    if text is None or "_" in text:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


def parse_bool(text: Optional[str]) -> Optional[bool]:
    if text is None:
        return None
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


# =============================================================================
# Pass 2: record builder
# =============================================================================

class Record:
    """Ordered key to value map built from a payload object.

    Values are scalar strings, ``None`` (bare ``null``), nested
    ``Record`` objects or lists. When a key repeats, the first
    occurrence wins.
    """

    def __init__(self) -> None:
        self._fields: Dict[str, Value] = {}

    def _set(self, key: str, value: Value) -> None:
        if key not in self._fields:
            self._fields[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Record({self._fields!r})"

    def keys(self) -> List[str]:
        return list(self._fields)

    def get(self, name: str) -> Optional[str]:
        """Scalar value of an own field, or None."""
        value = self._fields.get(name)
        return value if isinstance(value, str) else None

    def get_decimal(self, name: str) -> Optional[Decimal]:
        return parse_decimal(self.get(name))

    def get_int(self, name: str) -> Optional[int]:
        return parse_int(self.get(name))

    def get_bool(self, name: str) -> Optional[bool]:
        return parse_bool(self.get(name))

    def record(self, name: str) -> Optional["Record"]:
        """Nested object stored under ``name``, or None."""
        value = self._fields.get(name)
        return value if isinstance(value, Record) else None

    def records(self, name: str) -> List["Record"]:
        """Objects of the array stored under ``name``.

        Non-object array entries are skipped.
        """
        value = self._fields.get(name)
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, Record)]

    def walk(self) -> Iterator[Tuple[str, Value]]:
        """Yield every (key, value) pair in document order, depth first."""
        for key, value in self._fields.items():
            yield key, value
            yield from _walk_value(value)

    def find(self, name: str) -> Optional[str]:
        """First scalar value stored under ``name`` anywhere in the tree."""
        for key, value in self.walk():
            if key == name and isinstance(value, str):
                return value
        return None


def _walk_value(value: Value) -> Iterator[Tuple[str, Value]]:
    if isinstance(value, Record):
        yield from value.walk()
    elif isinstance(value, list):
        for entry in value:
            yield from _walk_value(entry)


class _Frame:
    """An open container on the builder stack."""

    __slots__ = ("container", "key")

    def __init__(self, container: Union[Record, list]) -> None:
        self.container = container
        self.key: Optional[str] = None

    @property
    def is_record(self) -> bool:
        return isinstance(self.container, Record)

    def put(self, value: Value) -> bool:
        """Store a value in this frame; False if there was no slot for it."""
        if isinstance(self.container, list):
            self.container.append(value)
            return True
        if self.key is None:
            return False
        self.container._set(self.key, value)
        self.key = None
        return True


def _scalar(token: Token) -> Optional[str]:
    if token.kind is TokenKind.LITERAL and token.value == "null":
        return None
    return token.value


def parse(text: str) -> Record:
    """Build a ``Record`` tree from payload text.

    The outermost braces are optional, so object fragments like
    ``"name": "Tea", "price": 2`` parse the same as full objects.
    Unbalanced closers are skipped and unclosed containers end with the
    input.

    Raises:
        StructuralParseFailure: On unterminated quoting
    """
    tokens = tokenize(text)
    root = Record()
    stack: List[_Frame] = [_Frame(root)]
    skipped = 0

    i = 0
    while i < len(tokens):
        token = tokens[i]
        frame = stack[-1]

        if token.kind is TokenKind.PUNCT:
            if token.value in "{[":
                container: Union[Record, list] = Record() if token.value == "{" else []
                if len(stack) == 1 and frame.key is None and token.value == "{":
                    # Outermost object braces fold into the root record
                    i += 1
                    continue
                if not frame.put(container):
                    skipped += 1
                stack.append(_Frame(container))
            elif token.value in "}]":
                want_record = token.value == "}"
                for depth in range(len(stack) - 1, 0, -1):
                    if stack[depth].is_record == want_record:
                        del stack[depth:]
                        break
            elif token.value == ",":
                frame.key = None
            i += 1
            continue

        # String or bare literal
        if frame.is_record and frame.key is None:
            following = tokens[i + 1] if i + 1 < len(tokens) else None
            if following is not None and following.kind is TokenKind.PUNCT and following.value == ":":
                frame.key = token.value
                i += 2
                continue
            skipped += 1
        elif not frame.put(_scalar(token)):
            skipped += 1
        i += 1

    if skipped:
        logger.debug(f"Skipped {skipped} stray tokens while parsing payload")
    return root


def lookup(raw_text: str, field_name: str) -> Optional[str]:
    """Find the first scalar value for ``field_name`` in raw text.

    Returns:
        The value as text, or None if the field is absent, null or not
        a scalar

    Raises:
        StructuralParseFailure: On unterminated quoting
    """
    value = parse(raw_text).find(field_name)
    if value is None:
        logger.debug(f"Key '{field_name}' not found")
    return value


def lookup_decimal(raw_text: str, field_name: str) -> Optional[Decimal]:
    return parse_decimal(lookup(raw_text, field_name))


def lookup_int(raw_text: str, field_name: str) -> Optional[int]:
    return parse_int(lookup(raw_text, field_name))


def lookup_bool(raw_text: str, field_name: str) -> Optional[bool]:
    return parse_bool(lookup(raw_text, field_name))
