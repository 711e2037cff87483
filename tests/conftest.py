"""Shared test fixtures and helpers."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from sqlcase.buffer import MemoryBuffer, PendingEdit
from sqlcase.lexer import tokenize
from sqlcase.tokens import EOF, Token


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOF)."""

    def _lex(source: str, dialect: str | None = None) -> list[Token]:
        stream = tokenize(source, dialect)
        # Strip trailing EOF for convenience
        return [t for t in stream.tokens if t.kind != EOF]

    return _lex


def fake_tokens(*pairs: tuple[str, str]) -> list[Token]:
    """Build a token list from (kind, text) pairs, standing in for a tokenizer."""
    return [Token(kind, text) for kind, text in pairs] + [Token(EOF, "")]


def select_id_from_users() -> list[Token]:
    return fake_tokens(
        ("SELECT", "select"),
        ("WHITESPACE", " "),
        ("IDENTIFIER", "Id"),
        ("WHITESPACE", " "),
        ("FROM", "from"),
        ("WHITESPACE", " "),
        ("IDENTIFIER", "Users"),
    )


class RecordingEdit:
    def __init__(self, inner: PendingEdit, calls: list[tuple[int, int, str]]) -> None:
        self._inner = inner
        self._calls = calls

    def replace(self, start: int, end: int, text: str) -> None:
        self._calls.append((start, end, text))
        self._inner.replace(start, end, text)


class RecordingBuffer(MemoryBuffer):
    """MemoryBuffer that records edit sessions and replace calls."""

    def __init__(self, text: str = "", cursor: int = 0, *, read_only: bool = False) -> None:
        super().__init__(text, cursor, read_only=read_only)
        self.sessions = 0
        self.replace_calls: list[tuple[int, int, str]] = []

    @contextmanager
    def edit(self) -> Iterator[RecordingEdit]:
        self.sessions += 1
        with super().edit() as pending:
            yield RecordingEdit(pending, self.replace_calls)


@pytest.fixture
def recording_buffer():
    """Return a factory for RecordingBuffer."""
    return RecordingBuffer
