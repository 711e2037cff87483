"""Test diagnostic messages, position accuracy, and context snippets."""

from sqlcase.errors import LexError, TransformError
from sqlcase.lexer import tokenize
from sqlcase.tokens import Position


def _first_error(source: str) -> LexError:
    errors = tokenize(source).errors
    assert errors, f"expected a diagnostic for {source!r}"
    return errors[0]


class TestErrorPositions:
    def test_unterminated_string_on_first_line(self):
        err = _first_error("select 'abc")
        assert err.position.line == 1
        assert err.position.column == 1

    def test_error_on_second_line(self):
        err = _first_error("select 1;\nselect 'abc")
        assert err.position.line == 2
        assert err.position.column == 1
        assert err.position.offset == 10

    def test_syntax_error_line(self):
        err = _first_error("select 1;\nselect (1")
        assert err.position.line == 2


class TestErrorFormatting:
    def test_format_contains_line(self):
        formatted = _first_error("select 'some text").format()
        assert "select 'some text" in formatted

    def test_format_contains_carets(self):
        assert "^" in _first_error("select 'x").format()

    def test_format_contains_prefix(self):
        assert _first_error("select 'x").format().startswith("warning:")

    def test_format_contains_position(self):
        assert "1:1" in _first_error("select 'x").format()

    def test_format_with_custom_filename(self):
        assert "test.sql" in _first_error("select 'x").format("test.sql")

    def test_multiline_error_position(self):
        formatted = _first_error("select 1;\nselect 2;\nselect 'x").format()
        assert "3:1" in formatted

    def test_caret_column(self):
        err = LexError("bad thing", Position(1, 8, 7), "select (1")
        last = err.format().splitlines()[-1]
        assert last == "  | " + " " * 7 + "^^"


class TestTransformError:
    def test_message(self):
        err = TransformError("edit", RuntimeError("boom"))
        assert str(err) == "edit failed: boom"
        assert isinstance(err.cause, RuntimeError)
