"""Payload parsing for POSPRINT - field extraction and receipt assembly."""

from posprint.parsing.extractor import Record, lookup, parse, tokenize
from posprint.parsing.assembler import assemble

__all__ = [
    "Record",
    "lookup",
    "parse",
    "tokenize",
    "assemble",
]
