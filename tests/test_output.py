"""Tests for contextify.output."""

from __future__ import annotations

import datetime
import io
import subprocess
import tempfile
from pathlib import Path

import pyperclip
import pytest

from contextify import output
from contextify.core import OutputError
from contextify.output import (
    copy_to_clipboard,
    default_output_path,
    file_manager_command,
    open_in_file_manager,
    write_output,
    write_stream,
)

NOW = datetime.datetime(2024, 3, 9, 14, 5, 7)


def test_default_output_path_is_timestamped_in_tempdir() -> None:
    path = default_output_path(NOW)
    assert path.parent == Path(tempfile.gettempdir())
    assert path.name == "contextify_20240309_140507.txt"


def test_write_output_defaults_to_timestamped_path(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(output.tempfile, "gettempdir", lambda: str(tmp_path))

    written = write_output("hello\n", now=NOW)
    assert written == (tmp_path / "contextify_20240309_140507.txt").resolve()
    assert written.read_text(encoding="utf-8") == "hello\n"


def test_write_output_creates_parent_directories(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "snap.txt"
    assert write_output("x\n", target) == target.resolve()
    assert target.read_bytes() == b"x\n"


def test_write_output_preserves_undecodable_bytes(tmp_path: Path) -> None:
    raw = b"caf\xe9\r\n"
    text = raw.decode("utf-8", errors="surrogateescape")

    target = write_output(text, tmp_path / "snap.txt")
    assert target.read_bytes() == raw


def test_write_output_failure_raises_output_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(OutputError):
        write_output("x", blocker / "snap.txt")


def test_write_stream_writes_raw_bytes() -> None:
    buf = io.BytesIO()
    write_stream(b"ok \xff\n".decode("utf-8", errors="surrogateescape"), buf)
    assert buf.getvalue() == b"ok \xff\n"


def test_copy_to_clipboard(monkeypatch: pytest.MonkeyPatch) -> None:
    copied = []
    monkeypatch.setattr(output.pyperclip, "copy", copied.append)

    assert copy_to_clipboard("caf" + b"\xe9".decode("utf-8", errors="surrogateescape"))
    assert copied == ["caf\ufffd"]


def test_copy_to_clipboard_failure_is_not_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(text: str) -> None:
        raise pyperclip.PyperclipException("no clipboard mechanism")

    monkeypatch.setattr(output.pyperclip, "copy", _fail)
    assert copy_to_clipboard("text") is False


@pytest.mark.parametrize(
    "platform, program",
    [("darwin", "open"), ("win32", "explorer"), ("linux", "xdg-open")],
)
def test_file_manager_command(platform: str, program: str) -> None:
    assert file_manager_command(Path("/tmp/x"), platform) == [program, str(Path("/tmp/x"))]


def test_open_in_file_manager(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    launched = []
    monkeypatch.setattr(
        output.subprocess, "Popen", lambda command, **kwargs: launched.append(command)
    )

    assert open_in_file_manager(tmp_path)
    assert launched and launched[0][-1] == str(tmp_path)


def test_open_in_file_manager_without_launcher(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def _missing(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(output.subprocess, "Popen", _missing)
    assert open_in_file_manager(tmp_path) is False
