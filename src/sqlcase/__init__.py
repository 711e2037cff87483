"""SQL keyword-case normaliser."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlcase.config import Settings

__version__ = "0.1.0"


def upper_keywords(source: str, settings: Settings | None = None) -> str:
    """Return *source* with its SQL keywords upper-cased and everything else verbatim."""
    from sqlcase.pipeline import plan

    return plan(source, settings).candidate
