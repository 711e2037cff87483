"""--debug token dump to stderr."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import TextIO

from sqlcase.tokens import ClassifiedToken


def dump_tokens(tokens: Iterable[ClassifiedToken], *, file: TextIO = sys.stderr) -> None:
    """Print one line per token: position, kind, source text and rendered text."""
    for ct in tokens:
        tok = ct.token
        where = f"{tok.span.start.line}:{tok.span.start.column}" if tok.span else "-"
        line = f"{where:>8} {tok.kind:<12} {(tok.text or '')!r}"
        if ct.changed:
            line += f" -> {ct.rendered!r}"
        file.write(line + "\n")
