"""Minimal LSP server for sqlcase: diagnostics, formatting, and the upper-keywords command."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_FORMATTING,
    ApplyWorkspaceEditParams,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    DocumentFormattingParams,
    MessageType,
    OptionalVersionedTextDocumentIdentifier,
    Position,
    PublishDiagnosticsParams,
    Range,
    ShowDocumentParams,
    ShowMessageParams,
    TextDocumentEdit,
    TextDocumentSyncKind,
    TextEdit,
    WorkspaceEdit,
)
from pygls.lsp.server import LanguageServer

from sqlcase import __version__
from sqlcase.buffer import remap_cursor
from sqlcase.config import Settings, load_settings
from sqlcase.errors import ConfigError
from sqlcase.pipeline import plan

logger = logging.getLogger(__name__)

UPPER_KEYWORDS = "sqlcase.upperKeywords"

server = LanguageServer("sqlcase-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full)

# URIs with a command pass in flight; a second request for the same document is refused.
_in_flight: set[str] = set()


# ---------------------------------------------------------------------------
# Position helpers (LSP columns are UTF-16 code units)
# ---------------------------------------------------------------------------


def _utf16_len(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def offset_to_position(source: str, offset: int) -> Position:
    """Convert a code point offset into an LSP Position."""
    offset = max(0, min(offset, len(source)))
    line = source.count("\n", 0, offset)
    line_start = source.rfind("\n", 0, offset) + 1
    return Position(line=line, character=_utf16_len(source[line_start:offset]))


def position_to_offset(source: str, position: Position) -> int:
    """Convert an LSP Position into a code point offset, clamped to its line."""
    lines = source.split("\n")
    if position.line >= len(lines):
        return len(source)
    line_start = sum(len(line) + 1 for line in lines[: position.line])
    units = 0
    for i, ch in enumerate(lines[position.line]):
        if units >= position.character:
            return line_start + i
        units += 2 if ord(ch) > 0xFFFF else 1
    return line_start + len(lines[position.line])


def full_range(source: str) -> Range:
    return Range(start=Position(line=0, character=0), end=offset_to_position(source, len(source)))


def _settings_for(path: str | None) -> Settings:
    """Settings from the sqlcase.toml next to the document, defaults otherwise."""
    if not path:
        return Settings()
    return load_settings(None, Path(path).parent)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def _error_diagnostic(message: str) -> Diagnostic:
    return Diagnostic(
        range=Range(start=Position(line=0, character=0), end=Position(line=0, character=0)),
        message=message,
        severity=DiagnosticSeverity.Error,
        source="sqlcase",
    )


def _validate(ls: LanguageServer, uri: str) -> None:
    """Tokenize the document and publish tokenizer/syntax problems."""
    doc = ls.workspace.get_text_document(uri)
    source = doc.source
    diagnostics: list[Diagnostic] = []

    try:
        p = plan(source, _settings_for(doc.path))
    except ConfigError as exc:
        diagnostics.append(_error_diagnostic(str(exc)))
    except Exception as exc:
        logger.exception("validation failed for %s", uri)
        diagnostics.append(_error_diagnostic(f"unexpected failure: {exc}"))
    else:
        for err in p.diagnostics:
            offset = err.position.offset
            diagnostics.append(
                Diagnostic(
                    range=Range(
                        start=offset_to_position(source, offset),
                        end=offset_to_position(source, offset + 1),
                    ),
                    message=err.message,
                    severity=DiagnosticSeverity.Warning,
                    source="sqlcase",
                )
            )

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _show_error(ls: LanguageServer, message: str) -> None:
    ls.window_show_message(ShowMessageParams(type=MessageType.Error, message=f"sqlcase: {message}"))


def _format(ls: LanguageServer, uri: str) -> list[TextEdit]:
    doc = ls.workspace.get_text_document(uri)
    try:
        p = plan(doc.source, _settings_for(doc.path))
    except ConfigError as exc:
        _show_error(ls, str(exc))
        return []
    except Exception as exc:
        logger.exception("formatting failed for %s", uri)
        _show_error(ls, f"unexpected failure: {exc}")
        return []
    if not p.changed:
        return []
    return [TextEdit(range=full_range(doc.source), new_text=p.candidate)]


@server.feature(TEXT_DOCUMENT_FORMATTING)
def formatting(ls: LanguageServer, params: DocumentFormattingParams) -> list[TextEdit]:
    return _format(ls, params.text_document.uri)


# ---------------------------------------------------------------------------
# Upper-keywords command
# ---------------------------------------------------------------------------


def _parse_command_args(args: Sequence[Any]) -> tuple[str | None, Position | None]:
    """Accept ``[uri]`` or ``[uri, {line, character}]``."""
    if len(args) == 1 and isinstance(args[0], (list, tuple)):
        args = args[0]
    uri = args[0] if args else None
    raw = args[1] if len(args) > 1 else None
    if raw is None or isinstance(raw, Position):
        return uri, raw
    if isinstance(raw, dict):
        return uri, Position(line=int(raw["line"]), character=int(raw["character"]))
    return uri, Position(line=int(raw.line), character=int(raw.character))


def _supports_show_document(ls: Any) -> bool:
    caps = getattr(ls, "client_capabilities", None)
    window = getattr(caps, "window", None)
    show = getattr(window, "show_document", None)
    return bool(show and show.support)


async def upper_keywords_in_document(
    ls: LanguageServer, uri: str, position: Position | None = None
) -> Position | None:
    """Rewrite an open document with upper-cased keywords and move the caret back.

    Returns the caret position after the pass, or None when nothing was done
    because the document is not open or the edit failed. Failures are shown
    to the user with window/showMessage.
    """
    doc = ls.workspace.text_documents.get(uri)
    if doc is None:
        logger.debug("upper-keywords: %s is not open", uri)
        return None
    if uri in _in_flight:
        ls.window_show_message(
            ShowMessageParams(type=MessageType.Warning, message="sqlcase: already running")
        )
        return None

    _in_flight.add(uri)
    try:
        source = doc.source
        cursor = position_to_offset(source, position) if position is not None else 0
        try:
            p = plan(source, _settings_for(doc.path))
        except ConfigError as exc:
            _show_error(ls, str(exc))
            return None
        except Exception as exc:
            logger.exception("upper-keywords: planning failed for %s", uri)
            _show_error(ls, f"unexpected failure: {exc}")
            return None

        if not p.changed:
            return offset_to_position(source, cursor)

        edit = WorkspaceEdit(
            document_changes=[
                TextDocumentEdit(
                    text_document=OptionalVersionedTextDocumentIdentifier(uri=uri, version=doc.version),
                    edits=[TextEdit(range=full_range(source), new_text=p.candidate)],
                )
            ]
        )
        try:
            result = await ls.workspace_apply_edit_async(
                ApplyWorkspaceEditParams(edit=edit, label="Upper-case SQL keywords")
            )
        except Exception as exc:
            logger.exception("upper-keywords: applyEdit failed for %s", uri)
            _show_error(ls, f"edit failed: {exc}")
            return None
        if not result.applied:
            reason = result.failure_reason or "the editor refused the edit"
            logger.warning("upper-keywords on %s rejected: %s", uri, reason)
            _show_error(ls, reason)
            return None

        caret = offset_to_position(p.candidate, remap_cursor(cursor, len(p.candidate)))
        if _supports_show_document(ls):
            try:
                await ls.window_show_document_async(
                    ShowDocumentParams(uri=uri, take_focus=True, selection=Range(start=caret, end=caret))
                )
            except Exception as exc:
                # The edit is already applied; only the caret move is lost.
                logger.warning("upper-keywords: showDocument failed for %s: %s", uri, exc)
        return caret
    finally:
        _in_flight.discard(uri)


@server.command(UPPER_KEYWORDS)
async def upper_keywords(ls: LanguageServer, *args: Any) -> Position | None:
    uri, position = _parse_command_args(args)
    if uri is None:
        return None
    return await upper_keywords_in_document(ls, uri, position)


def main() -> None:
    server.start_io()
