"""
CLI entrypoint for contextify package.
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core import (
    DEFAULT_MAX_BYTES,
    Config,
    ConfigError,
    InvalidRootError,
    OutputError,
    RunStats,
    build_context,
)
from .logging import configure_logging, get_logger
from .output import copy_to_clipboard, open_in_file_manager, write_output, write_stream

logger = get_logger("cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BAD_ROOT = 2


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid byte count: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"byte count must be positive: {number}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="contextify",
        description=(
            "Print a directory tree (directories included, in sorted order) "
            "and then dump the contents of its text files, each under a "
            "metadata header."
        ),
        epilog='Example:\n  contextify -a -m 2000000 -x "jpg,png,pdf" /path/to/project',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("root", nargs="?", default=".", help="Root directory (default: .)")
    p.add_argument(
        "-a",
        "--all",
        dest="include_hidden",
        action="store_true",
        help="Include hidden files and directories (names starting with a dot)",
    )
    p.add_argument(
        "-m",
        "--max-bytes",
        type=_positive_int,
        default=os.environ.get("MAX_BYTES", str(DEFAULT_MAX_BYTES)),
        help="Maximum bytes to print from each file (default: $MAX_BYTES or 5MB)",
    )
    p.add_argument(
        "-i",
        "--include",
        metavar="EXTLIST",
        help='Only dump these extensions, comma-separated without dots: "py,txt,md"',
    )
    p.add_argument(
        "-x",
        "--exclude",
        metavar="EXTLIST",
        help='Never dump these extensions: "jpg,pdf,bin" (ignored when -i is given)',
    )
    p.add_argument(
        "--ignore-file",
        type=Path,
        action="append",
        default=[],
        metavar="PATH",
        help="File with extra ignore patterns, gitignore syntax (repeatable)",
    )
    p.add_argument(
        "--gitignore",
        action="store_true",
        help="Also skip whatever the root's .gitignore matches",
    )
    dest = p.add_mutually_exclusive_group()
    dest.add_argument(
        "-o",
        "--out",
        type=Path,
        help="Output file (default: a timestamped file in the temp directory)",
    )
    dest.add_argument("--stdout", action="store_true", help="Write the snapshot to stdout")
    p.add_argument(
        "-c",
        "--clipboard",
        action="store_true",
        help="Also copy the snapshot to the clipboard",
    )
    p.add_argument(
        "--open",
        action="store_true",
        help="Reveal the output file's directory in the file manager",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument("--log-file", type=Path, help="Also write the log to this file")
    p.add_argument("--no-color", action="store_true", help="Plain log output")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    ns = parser.parse_args(argv)
    if ns.open and ns.stdout:
        parser.error("--open needs an output file; it cannot be combined with --stdout")
    try:
        configure_logging(verbose=ns.verbose, log_file=ns.log_file, colour=not ns.no_color)
    except OSError as e:
        parser.error(f"cannot open log file: {e}")

    try:
        try:
            config = Config.from_options(
                ns.root,
                include_hidden=ns.include_hidden,
                max_bytes=ns.max_bytes,
                include=ns.include,
                exclude=ns.exclude,
                ignore_files=ns.ignore_file,
                use_gitignore=ns.gitignore,
            )
        except ConfigError as e:
            logger.error("%s", e)
            return EXIT_ERROR

        logger.info("Scanning %s …", config.root)
        stats = RunStats()
        try:
            text = build_context(config, stats=stats)
        except InvalidRootError as e:
            logger.error("%s", e)
            return EXIT_BAD_ROOT
        logger.info(stats.summary())

        out_path = None
        if ns.stdout:
            write_stream(text)
        else:
            try:
                out_path = write_output(text, ns.out)
            except OutputError as e:
                logger.error("%s", e)
                return EXIT_ERROR
            logger.info("Done → %s", out_path)

        if ns.clipboard:
            copy_to_clipboard(text)
        if ns.open and out_path is not None:
            open_in_file_manager(out_path.parent)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        logger.error("Unexpected error: %s", e, exc_info=ns.verbose)
        return EXIT_ERROR

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
