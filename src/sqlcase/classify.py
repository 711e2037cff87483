"""Token classification: which tokens are keywords whose case may be normalised."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from sqlcase.errors import ConfigError
from sqlcase.lexer import dialect_keywords
from sqlcase.tokens import COMMENT, EOF, ERROR, WHITESPACE, Token

# sqlglot kinds whose text is free-form and never recased.
VERBATIM_KINDS = frozenset(
    {
        "VAR",
        "IDENTIFIER",
        "STRING",
        "NATIONAL_STRING",
        "RAW_STRING",
        "HEREDOC_STRING",
        "UNICODE_STRING",
        "BIT_STRING",
        "BYTE_STRING",
        "HEX_STRING",
        "NUMBER",
        "PARAMETER",
        "HINT",
        "BLOCK_START",
        "BLOCK_END",
        WHITESPACE,
        COMMENT,
        ERROR,
        EOF,
    }
)

STRATEGIES = ("keywords", "tag-name")


class Strategy(Protocol):
    def is_keyword(self, token: Token) -> bool: ...


class TagNameStrategy:
    """A token is a keyword when its kind name spells its upper-cased text.

    Reserved words and fixed-spelling symbols are tagged with their own
    spelling (``select`` is tagged ``SELECT``); identifiers, literals and
    comments are not.
    """

    def is_keyword(self, token: Token) -> bool:
        return token.kind.upper() == (token.text or "").upper()


class KeywordSetStrategy:
    """A token is a keyword when its upper-cased text is in an explicit set.

    *words* are extra names (functions, types) that are recased even when
    the tokenizer tags them as plain unquoted names.
    """

    def __init__(self, keywords: Iterable[str], words: Iterable[str] = ()) -> None:
        self.keywords = frozenset(_normalize(k) for k in keywords)
        self.words = frozenset(_normalize(w) for w in words)

    def is_keyword(self, token: Token) -> bool:
        if not token.text:
            return False
        kind = token.kind.upper()
        text = _normalize(token.text)
        if kind == "VAR":
            return text in self.words
        if kind in VERBATIM_KINDS:
            return False
        return text in self.keywords or text in self.words


def get_strategy(
    name: str = "keywords",
    dialect: str | None = None,
    extra_keywords: Iterable[str] = (),
) -> Strategy:
    """Build the named classification strategy."""
    if name == "tag-name":
        return TagNameStrategy()
    if name == "keywords":
        return KeywordSetStrategy(dialect_keywords(dialect), extra_keywords)
    raise ConfigError(f"unknown strategy {name!r} (expected one of: {', '.join(STRATEGIES)})")


def classify(token: Token, strategy: Strategy | None = None) -> str:
    """Return the rendered text of a token: upper-cased keyword or verbatim text."""
    text = token.text or ""
    if strategy is None:
        strategy = _DEFAULT
    if strategy.is_keyword(token):
        return text.upper()
    return text


def _normalize(text: str) -> str:
    # Multi-word keywords (ORDER BY) may be split by any whitespace run.
    return " ".join(text.upper().split())


_DEFAULT = TagNameStrategy()
