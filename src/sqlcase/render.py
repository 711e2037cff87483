"""Script reassembly: classified tokens back into one script."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from sqlcase.classify import Strategy, classify
from sqlcase.tokens import ClassifiedToken, Token


def classify_all(tokens: Iterable[Token], strategy: Strategy | None = None) -> Iterator[ClassifiedToken]:
    """Pair every token, in order, with its rendered text."""
    for token in tokens:
        yield ClassifiedToken(token, classify(token, strategy))


def reassemble(tokens: Iterable[Token], strategy: Strategy | None = None) -> str:
    """Render every token and concatenate, with no separators added."""
    return "".join(classify(token, strategy) for token in tokens)


def is_noop(original: str, candidate: str) -> bool:
    """Return True when the candidate script is identical to the original."""
    return original == candidate
