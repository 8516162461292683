"""
Content sniffing for contextify.

Classifies a file from a bounded prefix of its bytes: a magic-byte table
recognises the common binary containers, a byte scan separates text from
binary and names the text encoding, and a few textual heuristics refine the
MIME type of text files. The labels follow the ones ``file --mime-type`` and
``file --mime-encoding`` report so snapshots stay comparable.
"""

from __future__ import annotations

import codecs
import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from .logging import get_logger

logger = get_logger("sniff")

OCTET_STREAM = "application/octet-stream"
EMPTY = "inode/x-empty"
BINARY = "binary"

DEFAULT_PROBE_BYTES = 64 * 1024

# Always skipped, whatever the encoding probe says (image/* is matched by prefix).
BINARY_CONTAINER_TYPES = frozenset({
    "application/pdf",
    "application/x-pdf",
    "application/zip",
    "application/x-rar",
    "application/x-tar",
    OCTET_STREAM,
})

# Kept even when the encoding probe reports "binary" (text/* is matched by prefix).
TEXT_COMPATIBLE_TYPES = frozenset({
    "application/json",
    "application/xml",
    "application/javascript",
    "application/ecmascript",
})

_MAGIC: Tuple[Tuple[int, bytes, str], ...] = (
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"\x00\x00\x01\x00", "image/vnd.microsoft.icon"),
    (0, b"II*\x00", "image/tiff"),
    (0, b"MM\x00*", "image/tiff"),
    (0, b"%PDF-", "application/pdf"),
    (0, b"PK\x03\x04", "application/zip"),
    (0, b"PK\x05\x06", "application/zip"),
    (0, b"Rar!\x1a\x07", "application/x-rar"),
    (0, b"7z\xbc\xaf\x27\x1c", "application/x-7z-compressed"),
    (0, b"\x1f\x8b", "application/gzip"),
    (0, b"\xfd7zXZ\x00", "application/x-xz"),
    (0, b"\x28\xb5\x2f\xfd", "application/zstd"),
    (257, b"ustar", "application/x-tar"),
    (0, b"\x7fELF", "application/x-executable"),
    (0, b"\xcf\xfa\xed\xfe", "application/x-mach-binary"),
    (0, b"\xce\xfa\xed\xfe", "application/x-mach-binary"),
    (0, b"\xca\xfe\xba\xbe", "application/x-java-applet"),
    (0, b"\x00asm", "application/wasm"),
    (0, b"SQLite format 3\x00", "application/vnd.sqlite3"),
    (0, b"OggS", "audio/ogg"),
    (0, b"fLaC", "audio/flac"),
)

# Signatures made of printable bytes; they only count for probes that are not text.
_WEAK_MAGIC: Tuple[Tuple[bytes, str], ...] = (
    (b"BZh", "application/x-bzip2"),
    (b"MZ", "application/x-dosexec"),
    (b"ID3", "audio/mpeg"),
)

_RIFF_TYPES = {
    b"WEBP": "image/webp",
    b"WAVE": "audio/x-wav",
    b"AVI ": "video/x-msvideo",
}

_SHEBANG_TYPES = {
    "sh": "text/x-shellscript",
    "bash": "text/x-shellscript",
    "dash": "text/x-shellscript",
    "zsh": "text/x-shellscript",
    "ksh": "text/x-shellscript",
    "python": "text/x-script.python",
    "perl": "text/x-perl",
    "ruby": "text/x-ruby",
    "php": "text/x-php",
    "node": "application/javascript",
}

# BEL, BS, TAB, LF, VT, FF, CR and ESC occur in ordinary text files.
_TEXT_BYTES = bytes(b"\x07\x08\t\n\x0b\x0c\r\x1b") + bytes(range(0x20, 0x7F)) + bytes(range(0x80, 0x100))


class Decision(Enum):
    INCLUDE = "include"
    SKIP = "skip"


@dataclass(frozen=True)
class ClassificationResult:
    """Size, type labels and the include/skip verdict for one file.

    ``size_bytes`` is ``None`` when the file could not be stat'ed or opened
    for reading; such files are still reported, as an unreadable record.
    """

    size_bytes: Optional[int]
    mime_type: str
    encoding: str
    decision: Decision

    @property
    def readable(self) -> bool:
        return self.size_bytes is not None


UNREADABLE = ClassificationResult(None, OCTET_STREAM, BINARY, Decision.SKIP)


def decide(mime_type: str, encoding: str) -> Decision:
    """Apply the skip policy: container types first, then the encoding check."""
    if mime_type.startswith("image/") or mime_type in BINARY_CONTAINER_TYPES:
        return Decision.SKIP
    if encoding == BINARY and not (
        mime_type.startswith("text/") or mime_type in TEXT_COMPATIBLE_TYPES
    ):
        return Decision.SKIP
    return Decision.INCLUDE


def _decodes(data: bytes, codec: str, complete: bool) -> bool:
    decoder = codecs.getincrementaldecoder(codec)()
    try:
        decoder.decode(data, final=complete)
    except UnicodeDecodeError:
        return False
    return True


def sniff_magic(probe: bytes) -> Optional[str]:
    """Return the MIME type of a recognised binary signature, else ``None``."""
    for offset, signature, mime_type in _MAGIC:
        if probe[offset:offset + len(signature)] == signature:
            return mime_type
    if probe[:4] == b"RIFF" and probe[8:12] in _RIFF_TYPES:
        return _RIFF_TYPES[probe[8:12]]
    if probe[:2] == b"BM" and len(probe) >= 26 and probe[6:10] == b"\x00\x00\x00\x00":
        return "image/bmp"
    return None


def sniff_encoding(probe: bytes, complete: bool = True) -> str:
    """Name the text encoding of *probe*, or ``"binary"``.

    *complete* says whether *probe* is the whole file; when it is not, a
    multibyte sequence cut at the end of the probe is not held against it.
    """
    if not probe:
        return BINARY
    if probe.startswith(codecs.BOM_UTF16_LE) and _decodes(probe[2:], "utf-16-le", complete):
        return "utf-16le"
    if probe.startswith(codecs.BOM_UTF16_BE) and _decodes(probe[2:], "utf-16-be", complete):
        return "utf-16be"
    if probe.translate(None, _TEXT_BYTES):
        return BINARY
    if probe.isascii():
        return "us-ascii"
    if _decodes(probe, "utf-8", complete):
        return "utf-8"
    if not any(0x80 <= byte < 0xA0 for byte in probe):
        return "iso-8859-1"
    return "unknown-8bit"


def _decode_text(probe: bytes, encoding: str) -> str:
    codec = {
        "us-ascii": "ascii",
        "utf-16le": "utf-16",
        "utf-16be": "utf-16",
        "iso-8859-1": "latin-1",
        "unknown-8bit": "latin-1",
    }.get(encoding, "utf-8")
    return probe.decode(codec, errors="replace")


def _shebang_type(first_line: str) -> str:
    words = first_line[2:].split()
    if not words:
        return "text/plain"
    interpreter = os.path.basename(words[0])
    if interpreter == "env" and len(words) > 1:
        interpreter = words[1]
    interpreter = interpreter.rstrip("0123456789.")
    return _SHEBANG_TYPES.get(interpreter, "text/plain")


def sniff_text_type(text: str, complete: bool = True) -> str:
    """Refine the MIME type of a file already known to be text."""
    head = text.lstrip("\ufeff \t\r\n")
    lowered = head[:1024].lower()
    if head.startswith("#!"):
        return _shebang_type(head.split("\n", 1)[0])
    if lowered.startswith("<svg") or (lowered.startswith("<?xml") and "<svg" in lowered):
        return "image/svg+xml"
    if lowered.startswith("<?xml"):
        return "text/xml"
    if lowered.startswith("<!doctype html") or lowered.startswith("<html"):
        return "text/html"
    if complete and head and head[0] in "{[":
        try:
            json.loads(head)
        except ValueError:
            pass
        else:
            return "application/json"
    return "text/plain"


def sniff(probe: bytes, complete: bool = True) -> Tuple[str, str]:
    """Return ``(mime_type, encoding)`` for a content probe."""
    if not probe:
        return EMPTY, BINARY
    mime_type = sniff_magic(probe)
    if mime_type is not None:
        return mime_type, BINARY
    encoding = sniff_encoding(probe, complete)
    if encoding == BINARY:
        for signature, mime_type in _WEAK_MAGIC:
            if probe.startswith(signature):
                return mime_type, BINARY
        return OCTET_STREAM, BINARY
    return sniff_text_type(_decode_text(probe, encoding), complete), encoding


def probe_size(path: Path) -> Optional[int]:
    """Return the size of a readable file, or ``None`` if it can't be read."""
    try:
        size = path.stat().st_size
    except OSError as e:
        logger.debug("stat failed for %s: %s", path, e)
        return None
    if not os.access(path, os.R_OK):
        return None
    return size


class Classifier(ABC):
    """Decides what a file is and whether its content belongs in the snapshot."""

    @abstractmethod
    def classify(self, path: Path) -> ClassificationResult:
        ...


class SniffingClassifier(Classifier):
    """Classifier backed by magic bytes and a text-validity scan of a prefix."""

    def __init__(self, probe_bytes: int = DEFAULT_PROBE_BYTES) -> None:
        if probe_bytes <= 0:
            raise ValueError("probe_bytes must be positive")
        self.probe_bytes = probe_bytes

    def probe(self, path: Path, size: int) -> Tuple[str, str]:
        try:
            with path.open("rb") as fh:
                head = fh.read(self.probe_bytes)
        except OSError as e:
            logger.warning("Could not probe %s: %s", path, e)
            return OCTET_STREAM, BINARY
        return sniff(head, complete=len(head) >= size)

    def classify(self, path: Path) -> ClassificationResult:
        size = probe_size(path)
        if size is None:
            return UNREADABLE
        mime_type, encoding = self.probe(path, size)
        return ClassificationResult(size, mime_type, encoding, decide(mime_type, encoding))


__all__ = [
    "BINARY",
    "BINARY_CONTAINER_TYPES",
    "ClassificationResult",
    "Classifier",
    "Decision",
    "OCTET_STREAM",
    "SniffingClassifier",
    "TEXT_COMPATIBLE_TYPES",
    "UNREADABLE",
    "decide",
    "sniff",
    "sniff_encoding",
    "sniff_magic",
    "sniff_text_type",
]
