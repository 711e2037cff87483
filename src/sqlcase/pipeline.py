"""One keyword-casing pass: plan the rewrite, then apply it to a buffer.

``plan`` is pure and synchronous. ``transform`` is the error boundary: it
never raises, every outcome is returned as an EditResult.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from sqlcase.buffer import TextBuffer, apply_edit
from sqlcase.classify import get_strategy
from sqlcase.config import Settings
from sqlcase.errors import ConfigError, EditRejected, LexError, TransformError
from sqlcase.lexer import tokenize
from sqlcase.render import is_noop, reassemble

logger = logging.getLogger(__name__)


class Status(Enum):
    UNCHANGED = auto()  # already normalised, buffer untouched
    REPLACED = auto()
    NO_TARGET = auto()  # no document to work on
    FAILED = auto()


@dataclass(frozen=True, slots=True)
class Plan:
    """The rewrite computed for one script."""

    source: str
    candidate: str
    diagnostics: tuple[LexError, ...] = ()

    @property
    def changed(self) -> bool:
        return not is_noop(self.source, self.candidate)


@dataclass(frozen=True, slots=True)
class EditResult:
    """Outcome of one pass. ``text`` and ``cursor`` are set only when REPLACED."""

    status: Status
    text: str | None = None
    cursor: int | None = None
    diagnostics: tuple[LexError, ...] = ()
    error: Exception | None = None


def plan(source: str, settings: Settings | None = None) -> Plan:
    """Tokenize, classify and reassemble *source*."""
    settings = settings or Settings()
    strategy = get_strategy(settings.strategy, settings.dialect, settings.extra_keywords)
    stream = tokenize(source, settings.dialect)
    candidate = reassemble(stream.tokens, strategy)
    return Plan(source, candidate, tuple(stream.errors))


def transform(buffer: TextBuffer, settings: Settings | None = None) -> EditResult:
    """Normalise keyword case across the whole buffer and restore its cursor."""
    stage = "plan"
    diagnostics: tuple[LexError, ...] = ()
    try:
        source = buffer.text
        cursor = buffer.cursor
        p = plan(source, settings)
        diagnostics = p.diagnostics
        if not p.changed:
            logger.debug("keyword case already normalised; buffer left untouched")
            return EditResult(Status.UNCHANGED, diagnostics=diagnostics)

        stage = "edit"
        new_cursor = apply_edit(buffer, p.candidate, cursor)
    except (ConfigError, EditRejected) as exc:
        logger.warning("%s: %s", stage, exc)
        return EditResult(Status.FAILED, diagnostics=diagnostics, error=exc)
    except Exception as exc:
        logger.exception("unexpected failure during %s", stage)
        return EditResult(Status.FAILED, diagnostics=diagnostics, error=TransformError(stage, exc))

    return EditResult(Status.REPLACED, p.candidate, new_cursor, diagnostics)


class UpperKeywordsCommand:
    """Zero-argument "normalise keyword case of the active document" entry point.

    *resolve_buffer* returns the active buffer or None when there is none.
    Overlapping calls on one command are rejected rather than queued.
    """

    def __init__(
        self,
        resolve_buffer: Callable[[], TextBuffer | None],
        settings: Settings | None = None,
    ) -> None:
        self._resolve_buffer = resolve_buffer
        self.settings = settings
        self._running = threading.Lock()

    def __call__(self) -> EditResult:
        if not self._running.acquire(blocking=False):
            return EditResult(
                Status.FAILED, error=EditRejected("a keyword-case pass is already running")
            )
        try:
            try:
                buffer = self._resolve_buffer()
            except Exception as exc:
                logger.exception("cannot resolve the active document")
                return EditResult(Status.FAILED, error=TransformError("resolve", exc))
            if buffer is None:
                return EditResult(Status.NO_TARGET)
            return transform(buffer, self.settings)
        finally:
            self._running.release()
