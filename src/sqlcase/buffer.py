"""Text buffers with scoped, all-or-nothing edits, and the full-document rewrite."""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Protocol

from sqlcase.errors import EditRejected


class Edit(Protocol):
    def replace(self, start: int, end: int, text: str) -> None: ...


class TextBuffer(Protocol):
    """A position-addressed document the rewrite is applied to.

    ``edit()`` opens an edit session. Leaving the ``with`` block normally
    commits every pending replacement at once; leaving it by exception
    discards them. The session is closed on every path.
    """

    @property
    def text(self) -> str: ...

    @property
    def cursor(self) -> int: ...

    def move_cursor(self, offset: int) -> None: ...

    def edit(self) -> AbstractContextManager[Edit]: ...


def remap_cursor(cursor: int, length: int) -> int:
    """Map a pre-edit cursor onto a rewritten document of *length* characters.

    Recasing keeps token boundaries in place, so the offset is reused as-is,
    clamped to the new document.
    """
    return max(0, min(cursor, length))


def apply_edit(buffer: TextBuffer, new_text: str, cursor: int | None = None) -> int:
    """Replace the whole buffer with *new_text* in one edit and restore the cursor.

    Returns the new cursor offset. Raises EditRejected, with the buffer left
    unchanged, when the buffer refuses the edit.
    """
    if cursor is None:
        cursor = buffer.cursor
    with buffer.edit() as edit:
        edit.replace(0, len(buffer.text), new_text)
    new_cursor = remap_cursor(cursor, len(new_text))
    buffer.move_cursor(new_cursor)
    return new_cursor


# ---------------------------------------------------------------------------
# In-memory buffer
# ---------------------------------------------------------------------------


class PendingEdit:
    """Replacements collected during one edit session, applied on commit."""

    def __init__(self, length: int) -> None:
        self._length = length
        self._changes: list[tuple[int, int, str]] = []

    def replace(self, start: int, end: int, text: str) -> None:
        if not 0 <= start <= end <= self._length:
            raise ValueError(f"span [{start}, {end}) outside buffer of length {self._length}")
        for s, e, _ in self._changes:
            if start < e and s < end:
                raise ValueError(f"span [{start}, {end}) overlaps pending edit [{s}, {e})")
        self._changes.append((start, end, text))

    def apply_to(self, source: str) -> str:
        parts: list[str] = []
        pos = 0
        for start, end, text in sorted(self._changes, key=lambda c: c[0]):
            parts.append(source[pos:start])
            parts.append(text)
            pos = end
        parts.append(source[pos:])
        return "".join(parts)


class MemoryBuffer:
    """An in-memory TextBuffer.

    ``version`` increases on every committed change; an edit session fails if
    the buffer was changed by someone else while it was open.
    """

    def __init__(self, text: str = "", cursor: int = 0, *, read_only: bool = False) -> None:
        self._text = text
        self._cursor = remap_cursor(cursor, len(text))
        self.read_only = read_only
        self.version = 0
        self._editing = False

    @property
    def text(self) -> str:
        return self._text

    @property
    def cursor(self) -> int:
        return self._cursor

    def move_cursor(self, offset: int) -> None:
        self._cursor = remap_cursor(offset, len(self._text))

    def set_text(self, text: str) -> None:
        """Replace the content outside of any edit session."""
        self._text = text
        self._cursor = remap_cursor(self._cursor, len(text))
        self.version += 1

    @contextmanager
    def edit(self) -> Iterator[PendingEdit]:
        if self.read_only:
            raise EditRejected("buffer is read-only")
        if self._editing:
            raise EditRejected("another edit is already in progress")

        self._editing = True
        version = self.version
        pending = PendingEdit(len(self._text))
        try:
            yield pending
            if self.version != version:
                raise EditRejected("buffer was modified during the edit")
            self._commit(pending.apply_to(self._text))
        finally:
            self._editing = False

    def _commit(self, text: str) -> None:
        self._text = text
        self._cursor = remap_cursor(self._cursor, len(text))
        self.version += 1


# ---------------------------------------------------------------------------
# File-backed buffer
# ---------------------------------------------------------------------------


class FileBuffer(MemoryBuffer):
    """A buffer loaded from a file; committing an edit rewrites the file.

    The file is read and written as bytes so line endings survive unchanged.
    The write goes to a temporary file that is renamed over the original.
    """

    def __init__(self, path: Path, cursor: int = 0, *, encoding: str = "utf-8") -> None:
        self.path = path
        self.encoding = encoding
        text = path.read_bytes().decode(encoding)
        self._mtime = path.stat().st_mtime_ns
        super().__init__(text, cursor, read_only=not os.access(path, os.W_OK))

    def _commit(self, text: str) -> None:
        try:
            mtime = self.path.stat().st_mtime_ns
        except OSError as exc:
            raise EditRejected(f"cannot access {self.path}: {exc.strerror or exc}") from exc
        if mtime != self._mtime:
            raise EditRejected(f"{self.path} was modified on disk")

        tmp = self.path.with_name(f".{self.path.name}.sqlcase-tmp")
        try:
            tmp.write_bytes(text.encode(self.encoding))
            shutil.copymode(self.path, tmp)
            written = tmp.stat().st_mtime_ns
            os.replace(tmp, self.path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise EditRejected(f"cannot write {self.path}: {exc.strerror or exc}") from exc

        # rename keeps the temporary file's mtime
        self._mtime = written
        super()._commit(text)
