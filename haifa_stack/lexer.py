from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Union

# Optional minus, 1-10 ASCII digits; always fits in a signed 64-bit integer.
NUMBER_PATTERN = re.compile(r"-?[0-9]{1,10}")
# Unicode White_Space property; str.isspace() additionally treats \x1c-\x1f as whitespace.
WHITESPACE = "\t\n\v\f\r \x85\xa0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000"
_TOKEN_PATTERN = re.compile(f"[^{WHITESPACE}]+")


@dataclass(frozen=True)
class Word:
    text: str
    line: int = field(default=0, compare=False)
    column: int = field(default=0, compare=False)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"Word({self.text!r})"


@dataclass(frozen=True)
class Number:
    value: int
    line: int = field(default=0, compare=False)
    column: int = field(default=0, compare=False)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"Number({self.value})"


Token = Union[Word, Number]


def lex_token(text: str, line: int = 0, column: int = 0) -> Token:
    if NUMBER_PATTERN.fullmatch(text):
        return Number(int(text), line, column)
    return Word(text, line, column)


def lex(source: str) -> List[Token]:
    """Split ``source`` on whitespace runs and classify each piece.

    Never fails: anything that is not an integer literal becomes a ``Word``.
    """
    tokens: List[Token] = []
    line = 1
    line_start = 0
    scanned = 0
    for match in _TOKEN_PATTERN.finditer(source):
        start = match.start()
        gap = source[scanned:start]
        newlines = gap.count("\n")
        if newlines:
            line += newlines
            line_start = scanned + gap.rfind("\n") + 1
        tokens.append(lex_token(match.group(), line, start - line_start + 1))
        scanned = match.end()
    return tokens


__all__ = ["Word", "Number", "Token", "NUMBER_PATTERN", "WHITESPACE", "lex", "lex_token"]
