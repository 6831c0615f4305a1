from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

# Alternation order matters: dash-led run, double quoted, single quoted,
# plain run, then an unterminated quote as an ordinary run.
_TOKEN_RE = re.compile(
    r"""-[^\s"']*|"[^"]*"|'[^']*'|[^\s"']+|["'][^\s"']*"""
)
_QUOTES = ("\"", "'")


@dataclass(frozen=True)
class Token:
    text: str
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def is_dash(self) -> bool:
        return self.text.startswith("-")

    @property
    def is_quoted(self) -> bool:
        return (
            len(self.text) >= 2
            and self.text[0] in _QUOTES
            and self.text[-1] == self.text[0]
        )


def tokenize(line: str) -> Iterator[Token]:
    """Yield the tokens of ``line`` in source order.

    Every call starts a fresh scan. Whitespace separates tokens and is never
    emitted; quoted tokens keep their quote characters so offsets and lengths
    cover the full source span.
    """
    for match in _TOKEN_RE.finditer(line):
        yield Token(text=match.group(0), offset=match.start(), length=match.end() - match.start())


def unquote(text: str) -> str:
    if len(text) >= 2 and text[0] in _QUOTES and text[-1] == text[0]:
        return text[1:-1]
    return text
