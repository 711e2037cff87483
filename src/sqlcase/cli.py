"""Command-line interface for sqlcase."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass, replace
from pathlib import Path

from sqlcase.buffer import FileBuffer, MemoryBuffer
from sqlcase.classify import STRATEGIES
from sqlcase.config import Settings, load_config, settings_from_config
from sqlcase.errors import ConfigError, LexError
from sqlcase.lexer import load_dialect
from sqlcase.pipeline import Status, plan, transform


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_file: Path
    output_file: Path | None
    in_place: bool
    check: bool
    cursor: int | None
    settings: Settings
    debug: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="sqlcase",
        description="Upper-case SQL keywords, leaving everything else exactly as written",
    )
    p.add_argument("input", help="Input .sql file")
    out = p.add_mutually_exclusive_group()
    out.add_argument("-o", "--output", help="Output file (default: stdout)")
    out.add_argument("-i", "--in-place", action="store_true", help="Rewrite the input file")
    p.add_argument(
        "--check",
        action="store_true",
        help="Write nothing; exit 1 if the file would change",
    )
    p.add_argument(
        "--cursor",
        type=int,
        default=None,
        metavar="OFFSET",
        help="Cursor offset to carry across the rewrite (printed to stderr)",
    )
    p.add_argument("--dialect", metavar="NAME", help="sqlglot dialect (default: generic SQL)")
    p.add_argument(
        "--strategy",
        choices=STRATEGIES,
        default=None,
        help="Keyword classification (default: keywords)",
    )
    p.add_argument(
        "-k",
        "--keyword",
        action="append",
        default=[],
        metavar="WORD",
        help="Extra word to upper-case (repeatable)",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help="Config file (default: auto-discover sqlcase.toml)",
    )
    p.add_argument("--debug", action="store_true", help="Dump classified tokens to stderr")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug messages to stderr")
    return p


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: defaults < config file < CLI flags.
    """
    input_file = Path(args.input)
    input_dir = input_file.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    settings = settings_from_config(load_config(config_path, input_dir))

    if args.dialect is not None:
        settings = replace(settings, dialect=args.dialect or None)
    if args.strategy is not None:
        settings = replace(settings, strategy=args.strategy)
    if args.keyword:
        settings = replace(settings, extra_keywords=settings.extra_keywords + tuple(args.keyword))

    # Fail early on an unknown dialect rather than inside the pass
    load_dialect(settings.dialect)

    output_file = Path(args.output) if args.output else None

    return CliOptions(
        input_file=input_file,
        output_file=output_file,
        in_place=args.in_place,
        check=args.check,
        cursor=args.cursor,
        settings=settings,
        debug=args.debug,
    )


def report_diagnostics(diagnostics: Iterable[LexError], filename: str) -> None:
    for diag in diagnostics:
        print(diag.format(filename), file=sys.stderr)


def dump_file(options: CliOptions, source: str) -> None:
    """Print the classified token stream of *source* to stderr."""
    from sqlcase.classify import get_strategy
    from sqlcase.debug import dump_tokens
    from sqlcase.lexer import tokenize
    from sqlcase.render import classify_all

    s = options.settings
    strategy = get_strategy(s.strategy, s.dialect, s.extra_keywords)
    dump_tokens(classify_all(tokenize(source, s.dialect).tokens, strategy))


def run(options: CliOptions) -> int:
    """Process one file. Returns exit code."""
    filename = str(options.input_file)
    try:
        if options.in_place and not options.check:
            buffer: MemoryBuffer = FileBuffer(options.input_file, options.cursor or 0)
        else:
            source = options.input_file.read_bytes().decode("utf-8")
            buffer = MemoryBuffer(source, options.cursor or 0)
    except (OSError, UnicodeDecodeError) as exc:
        print(f"error: cannot read {filename}: {exc}", file=sys.stderr)
        return 2

    if options.debug:
        dump_file(options, buffer.text)

    if options.check:
        p = plan(buffer.text, options.settings)
        report_diagnostics(p.diagnostics, filename)
        if p.changed:
            print(f"would change {filename}", file=sys.stderr)
            return 1
        return 0

    result = transform(buffer, options.settings)
    report_diagnostics(result.diagnostics, filename)
    if result.status is Status.FAILED:
        print(f"error: {result.error}", file=sys.stderr)
        return 1

    if options.cursor is not None:
        print(f"cursor: {buffer.cursor}", file=sys.stderr)

    if options.in_place:
        return 0
    if options.output_file:
        options.output_file.write_text(buffer.text, encoding="utf-8", newline="")
    else:
        sys.stdout.write(buffer.text)
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        options = resolve_options(args)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    return run(options)
