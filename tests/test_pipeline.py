"""Tests for the one-shot transformation and the zero-argument command."""

from __future__ import annotations

import logging

import pytest

from sqlcase.buffer import MemoryBuffer
from sqlcase.config import Settings
from sqlcase.errors import ConfigError, EditRejected, TransformError
from sqlcase.pipeline import EditResult, Status, UpperKeywordsCommand, transform


class ExplodingBuffer(MemoryBuffer):
    @property
    def text(self) -> str:
        raise RuntimeError("document closed")


# ---------------------------------------------------------------------------
# transform
# ---------------------------------------------------------------------------


class TestTransform:
    def test_change_scenario(self, recording_buffer) -> None:
        buf = recording_buffer("select Id from Users", cursor=7)
        result = transform(buf)
        assert result.status is Status.REPLACED
        assert result.text == "SELECT Id FROM Users"
        assert result.cursor == 7
        assert buf.replace_calls == [(0, 20, "SELECT Id FROM Users")]
        assert buf.cursor == 7

    def test_noop_never_opens_an_edit(self, recording_buffer) -> None:
        buf = recording_buffer("SELECT 1", cursor=3)
        result = transform(buf)
        assert result.status is Status.UNCHANGED
        assert result.text is None
        assert buf.sessions == 0
        assert buf.replace_calls == []
        assert buf.version == 0
        assert buf.cursor == 3

    def test_edit_rejected(self) -> None:
        buf = MemoryBuffer("select Id from Users", cursor=7, read_only=True)
        result = transform(buf)
        assert result.status is Status.FAILED
        assert isinstance(result.error, EditRejected)
        assert buf.text == "select Id from Users"
        assert buf.cursor == 7

    def test_degraded_tokenization_still_transforms(self) -> None:
        buf = MemoryBuffer("select 1;\nselect 'abc")
        result = transform(buf)
        assert result.status is Status.REPLACED
        assert buf.text == "SELECT 1;\nselect 'abc"
        assert len(result.diagnostics) == 1

    def test_unexpected_failure_is_returned(self, caplog) -> None:
        with caplog.at_level(logging.ERROR, logger="sqlcase.pipeline"):
            result = transform(ExplodingBuffer("select 1"))
        assert result.status is Status.FAILED
        assert isinstance(result.error, TransformError)
        assert result.error.stage == "plan"
        assert isinstance(result.error.cause, RuntimeError)
        assert "unexpected failure" in caplog.text

    def test_bad_setting_is_returned(self) -> None:
        buf = MemoryBuffer("select 1")
        result = transform(buf, Settings(dialect="no-such-dialect"))
        assert result.status is Status.FAILED
        assert isinstance(result.error, ConfigError)
        assert buf.text == "select 1"

    def test_cursor_kept_when_length_changes(self) -> None:
        # "ß" upper-cases to "SS"
        buf = MemoryBuffer("straße", cursor=6)
        result = transform(buf, Settings(extra_keywords=("straße",)))
        assert result.status is Status.REPLACED
        assert buf.text == "STRASSE"
        assert buf.cursor == 6

    def test_deeply_nested_query_is_still_recased(self) -> None:
        depth = 3000
        buf = MemoryBuffer("select " + "(" * depth + "1" + ")" * depth + " from t")
        result = transform(buf)
        assert result.status is Status.REPLACED
        assert buf.text.startswith("SELECT ((")
        assert buf.text.endswith(")) FROM t")


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


class TestCommand:
    def test_no_target(self) -> None:
        command = UpperKeywordsCommand(lambda: None)
        assert command() == EditResult(Status.NO_TARGET)

    def test_runs_against_resolved_buffer(self) -> None:
        buf = MemoryBuffer("select 1")
        command = UpperKeywordsCommand(lambda: buf)
        assert command().status is Status.REPLACED
        assert buf.text == "SELECT 1"
        assert command().status is Status.UNCHANGED

    def test_settings_used(self) -> None:
        buf = MemoryBuffer("select count(*) from t")
        command = UpperKeywordsCommand(lambda: buf, Settings(extra_keywords=("count",)))
        command()
        assert buf.text == "SELECT COUNT(*) FROM t"

    def test_overlapping_call_rejected(self) -> None:
        buf = MemoryBuffer("select 1")
        inner: list[EditResult] = []

        def resolve() -> MemoryBuffer:
            inner.append(command())
            return buf

        command = UpperKeywordsCommand(resolve)
        outer = command()
        assert outer.status is Status.REPLACED
        assert inner[0].status is Status.FAILED
        assert isinstance(inner[0].error, EditRejected)

    def test_resolver_failure(self) -> None:
        def resolve() -> MemoryBuffer:
            raise LookupError("no editor")

        result = UpperKeywordsCommand(resolve)()
        assert result.status is Status.FAILED
        assert isinstance(result.error, TransformError)
        assert result.error.stage == "resolve"

    @pytest.mark.parametrize("source", ["", "SELECT 1", "-- comment only"])
    def test_nothing_to_change(self, source: str) -> None:
        buf = MemoryBuffer(source)
        assert UpperKeywordsCommand(lambda: buf)().status is Status.UNCHANGED
