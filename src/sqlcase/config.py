"""Settings and ``sqlcase.toml`` loading."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlcase.classify import STRATEGIES
from sqlcase.errors import ConfigError

CONFIG_NAME = "sqlcase.toml"


@dataclass(frozen=True, slots=True)
class Settings:
    """How a script is tokenized and which tokens are recased."""

    dialect: str | None = None
    strategy: str = "keywords"
    extra_keywords: tuple[str, ...] = ()


def load_config(config_path: Path | None, search_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else search_dir / CONFIG_NAME

    if not path.is_file():
        return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: {exc}") from exc


def settings_from_config(config: dict[str, Any], base: Settings | None = None) -> Settings:
    """Overlay config file values on *base* (defaults when omitted)."""
    base = base or Settings()

    dialect = config.get("dialect", base.dialect)
    if dialect is not None and not isinstance(dialect, str):
        raise ConfigError(f"'dialect' must be a string, got {type(dialect).__name__}")

    strategy = config.get("strategy", base.strategy)
    if strategy not in STRATEGIES:
        raise ConfigError(f"unknown strategy {strategy!r} (expected one of: {', '.join(STRATEGIES)})")

    extra = config.get("extra_keywords", base.extra_keywords)
    if not isinstance(extra, (list, tuple)) or not all(isinstance(k, str) for k in extra):
        raise ConfigError("'extra_keywords' must be a list of strings")

    return Settings(dialect=dialect or None, strategy=strategy, extra_keywords=tuple(extra))


def load_settings(config_path: Path | None, search_dir: Path) -> Settings:
    """Read settings for documents in *search_dir*."""
    return settings_from_config(load_config(config_path, search_dir))
