"""sqlglot tokenizer adapter: turns sqlglot tokens into a lossless token stream.

sqlglot discards whitespace and comments and strips quotes from literal text.
Keyword-case normalisation needs every byte back, so each token is re-cut from
the source using its offsets and the gaps between tokens are emitted as
``WHITESPACE``/``COMMENT`` trivia.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from functools import lru_cache

from sqlglot.dialects.dialect import Dialect
from sqlglot.errors import ErrorLevel, ParseError, SqlglotError, TokenError
from sqlglot.tokens import Token as SqlglotToken

from sqlcase.errors import ConfigError, LexError
from sqlcase.tokens import COMMENT, EOF, ERROR, WHITESPACE, Position, Span, Token, offset_at

logger = logging.getLogger(__name__)

BOM = "\ufeff"


@dataclass
class TokenStream:
    """Result of one tokenization pass.

    ``tokens`` is a one-shot iterator; ``errors`` lists recoverable problems
    found while producing it.
    """

    tokens: Iterator[Token]
    errors: list[LexError] = field(default_factory=list)


def load_dialect(name: str | None = None) -> Dialect:
    """Resolve a sqlglot dialect by name (``None`` is the generic dialect)."""
    try:
        return Dialect.get_or_raise(name)
    except ValueError as exc:
        raise ConfigError(f"unknown SQL dialect: {name!r}") from exc


@lru_cache(maxsize=None)
def dialect_keywords(name: str | None = None) -> frozenset[str]:
    """Return the reserved words and fixed-spelling symbols of a dialect."""
    dialect = load_dialect(name)
    return frozenset(dialect.tokenizer_class.KEYWORDS)


def tokenize(source: str, dialect: str | None = None) -> TokenStream:
    """Tokenize SQL source into a lossless stream.

    Never raises for malformed SQL. When sqlglot cannot tokenize the whole
    script, the longest cleanly tokenizing prefix that ends on a line boundary
    is kept and the remainder becomes a single verbatim ``ERROR`` token.
    A leading byte order mark is passed through as ``WHITESPACE``.
    """
    d = load_dialect(dialect)
    errors: list[LexError] = []
    starts = _line_starts(source)
    base = 1 if source.startswith(BOM) else 0
    body = source[base:]

    try:
        raw = d.tokenize(body)
        end = len(source)
    except TokenError as exc:
        raw, end = _tokenize_prefix(d, body)
        end += base
        position = _position(starts, end)
        errors.append(LexError(_first_line(exc), position, source))
        logger.debug("tokenization degraded at %d:%d", position.line, position.column)
    else:
        for message, offset in _syntax_errors(d, raw, body):
            errors.append(LexError(message, _position(starts, offset + base), source))

    return TokenStream(_lossless(raw, source, end, starts, base), errors)


# ---------------------------------------------------------------------------
# Lossless stream
# ---------------------------------------------------------------------------


def _lossless(
    raw: Sequence[SqlglotToken], source: str, end: int, starts: list[int], base: int = 0
) -> Iterator[Token]:
    # sqlglot offsets are relative to source[base:]
    if base:
        yield Token(WHITESPACE, source[:base], _span(starts, 0, base))
    pos = base
    for tok in raw:
        start, stop = max(tok.start + base, pos), tok.end + 1 + base
        if stop <= start:
            continue
        yield from _trivia(source, pos, start, starts)
        yield Token(tok.token_type.name, source[start:stop], _span(starts, start, stop))
        pos = stop

    yield from _trivia(source, pos, end, starts)
    if end < len(source):
        yield Token(ERROR, source[end:], _span(starts, end, len(source)))
    yield Token(EOF, "", _span(starts, len(source), len(source)))


def _trivia(source: str, start: int, stop: int, starts: list[int]) -> Iterator[Token]:
    """Split a gap between tokens into leading whitespace, comments, trailing whitespace."""
    gap = source[start:stop]
    if not gap:
        return
    if not gap.strip():
        yield Token(WHITESPACE, gap, _span(starts, start, stop))
        return

    lead = len(gap) - len(gap.lstrip())
    trail = len(gap.rstrip())
    if lead:
        yield Token(WHITESPACE, gap[:lead], _span(starts, start, start + lead))
    yield Token(COMMENT, gap[lead:trail], _span(starts, start + lead, start + trail))
    if trail < len(gap):
        yield Token(WHITESPACE, gap[trail:], _span(starts, start + trail, stop))


# ---------------------------------------------------------------------------
# Degraded input
# ---------------------------------------------------------------------------


def _tokenize_prefix(d: Dialect, source: str) -> tuple[list[SqlglotToken], int]:
    cut = source.rfind("\n")
    while cut >= 0:
        try:
            return d.tokenize(source[: cut + 1]), cut + 1
        except TokenError:
            cut = source.rfind("\n", 0, cut)
    return [], 0


def _syntax_errors(d: Dialect, raw: list[SqlglotToken], source: str) -> list[tuple[str, int]]:
    """Parse the tokens only to collect syntax errors as (message, offset); the tree is discarded."""
    try:
        d.parser(error_level=ErrorLevel.RAISE).parse(raw, source)
    except ParseError as exc:
        found = []
        for detail in exc.errors:
            line = detail.get("line") or 1
            col = detail.get("col") or 1
            message = detail.get("description") or _first_line(exc)
            found.append((message, offset_at(source, line, col)))
        return found or [(_first_line(exc), 0)]
    except SqlglotError as exc:
        return [(_first_line(exc), 0)]
    except Exception as exc:
        # Deeply nested input can exhaust the parser's recursion limit.
        logger.debug("syntax check abandoned: %r", exc)
        return [(f"syntax check abandoned: {_first_line(exc)}", 0)]
    return []


def _first_line(exc: Exception) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__


# ---------------------------------------------------------------------------
# Position helpers
# ---------------------------------------------------------------------------


def _line_starts(source: str) -> list[int]:
    starts = [0]
    starts.extend(i + 1 for i, ch in enumerate(source) if ch == "\n")
    return starts


def _position(starts: list[int], offset: int) -> Position:
    idx = bisect_right(starts, offset) - 1
    return Position(idx + 1, offset - starts[idx] + 1, offset)


def _span(starts: list[int], start: int, stop: int) -> Span:
    return Span(_position(starts, start), _position(starts, stop))
