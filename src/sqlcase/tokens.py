"""Token data structures shared by the tokenizer adapter and the renderer."""

from __future__ import annotations

from dataclasses import dataclass

# Kinds synthesised by the tokenizer adapter. sqlglot token kinds are the
# names of its ``TokenType`` members (``SELECT``, ``VAR``, ``STRING``, ...).
WHITESPACE = "WHITESPACE"
COMMENT = "COMMENT"
ERROR = "ERROR"
EOF = "EOF"


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Token:
    """A single token: lexical kind and the exact source text it covers."""

    kind: str
    text: str | None
    span: Span | None = None


@dataclass(frozen=True, slots=True)
class ClassifiedToken:
    """A token paired with the text it renders as."""

    token: Token
    rendered: str

    @property
    def changed(self) -> bool:
        return self.rendered != (self.token.text or "")


def offset_at(source: str, line: int, column: int) -> int:
    """Return the offset of a 1-based line/column, clamped to *source*."""
    start = 0
    for _ in range(line - 1):
        nl = source.find("\n", start)
        if nl == -1:
            return len(source)
        start = nl + 1
    end = source.find("\n", start)
    if end == -1:
        end = len(source)
    return min(start + max(column - 1, 0), end)
