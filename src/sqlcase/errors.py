"""Error types with formatted source context."""

from __future__ import annotations

from sqlcase.tokens import Position


class LexError(Exception):
    """A recoverable tokenizer or syntax problem, with position and source context.

    These are reported as diagnostics; the token stream produced alongside
    them is still usable.
    """

    def __init__(self, message: str, position: Position, source: str) -> None:
        self.message = message
        self.position = position
        self.source = source
        super().__init__(self.format())

    def format(self, filename: str = "input.sql") -> str:
        lines = self.source.splitlines(keepends=True)
        line_idx = self.position.line - 1
        col = self.position.column

        # Build the source line (strip trailing newline for display)
        if 0 <= line_idx < len(lines):
            source_line = lines[line_idx].rstrip("\n").rstrip("\r")
        else:
            source_line = ""

        # Compute underline length, at least 1 char but stay within line
        underline_len = max(1, min(2, len(source_line) - col + 1))

        pad = " " * (col - 1)
        carets = "^" * underline_len

        line_num = str(self.position.line)
        gutter_width = len(line_num) + 1

        blank_gutter = " " * gutter_width + "|"
        line_gutter = f"{line_num:>{gutter_width - 1}} |"

        return (
            f"warning: {self.message}\n"
            f"{' ' * gutter_width}--> {filename}:{self.position.line}:{col}\n"
            f"{blank_gutter}\n"
            f"{line_gutter} {source_line}\n"
            f"{blank_gutter} {pad}{carets}"
        )


class ConfigError(Exception):
    """Raised for an invalid setting (unknown dialect, strategy, bad value type)."""


class EditRejected(Exception):
    """Raised when a buffer refuses an edit. The buffer content is unchanged."""


class TransformError(Exception):
    """Wraps an unexpected failure inside one transformation pass."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")
