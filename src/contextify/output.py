"""
Destinations for a finished snapshot: a file, stdout, the clipboard, the file manager.

None of these run until the whole snapshot has been assembled.
"""

from __future__ import annotations

import datetime
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Optional

import pyperclip

from .core import OutputError
from .logging import get_logger

logger = get_logger("output")

OUTPUT_PREFIX = "contextify"


def default_output_path(now: Optional[datetime.datetime] = None) -> Path:
    now = now or datetime.datetime.now()
    return Path(tempfile.gettempdir()) / f"{OUTPUT_PREFIX}_{now.strftime('%Y%m%d_%H%M%S')}.txt"


def write_output(
    text: str,
    out_path: Optional[Path] = None,
    now: Optional[datetime.datetime] = None,
) -> Path:
    """Persist *text* and return where it went (a timestamped temp file by default)."""
    target = out_path if out_path is not None else default_output_path(now)
    try:
        target = target.resolve()
    except (OSError, RuntimeError) as e:
        raise OutputError(f"Could not resolve output path '{target}': {e}")

    if not target.parent.exists():
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Could not create directory '{target.parent}': {e}")

    try:
        with target.open("w", encoding="utf-8", errors="surrogateescape", newline="\n") as fh:
            fh.write(text)
    except OSError as e:
        raise OutputError(f"Could not write output file '{target}': {e}")
    return target


def write_stream(text: str, stream: Optional[BinaryIO] = None) -> None:
    """Write *text* to a binary stream (stdout by default) byte for byte."""
    stream = stream if stream is not None else sys.stdout.buffer
    stream.write(text.encode("utf-8", errors="surrogateescape"))
    stream.flush()


def copy_to_clipboard(text: str) -> bool:
    # The clipboard only takes valid text; undecodable bytes become U+FFFD.
    printable = text.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")
    try:
        pyperclip.copy(printable)
    except pyperclip.PyperclipException as e:
        logger.warning("Could not copy to clipboard: %s", e)
        return False
    logger.info("%s chars copied to clipboard", f"{len(printable):,}")
    return True


def file_manager_command(directory: Path, platform: Optional[str] = None) -> List[str]:
    platform = platform or sys.platform
    if platform == "darwin":
        return ["open", str(directory)]
    if platform.startswith("win"):
        return ["explorer", str(directory)]
    return ["xdg-open", str(directory)]


def open_in_file_manager(directory: Path) -> bool:
    command = file_manager_command(directory)
    try:
        subprocess.Popen(command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        logger.warning("Could not open %s with %s: %s", directory, command[0], e)
        return False
    logger.debug("Opened %s in the file manager", directory)
    return True


__all__ = [
    "copy_to_clipboard",
    "default_output_path",
    "file_manager_command",
    "open_in_file_manager",
    "write_output",
    "write_stream",
]
