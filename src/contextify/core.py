"""
Core logic for contextify: filtering, tree enumeration, extraction and assembly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import pathspec

from .logging import get_logger
from .sniff import ClassificationResult, Classifier, Decision, SniffingClassifier

logger = get_logger("core")


# Exceptions
class ContextifyError(Exception): ...
class InvalidRootError(ContextifyError): ...
class ConfigError(ContextifyError): ...
class ConfigFileError(ConfigError): ...
class OutputError(ContextifyError): ...


# Defaults & output format
DEFAULT_MAX_BYTES = 5 * 1024 * 1024

TREE_HEADER = "File structure:"
SECTION_RULE = "-" * 48
RECORD_MARKER = "###"
METADATA_LINE = "size: {size}  mime: {mime}  encoding: {encoding}  truncated: {truncated}"
UNREADABLE_NOTICE = "[SKIPPED: not readable]"
READ_ERROR_NOTICE = "[ERROR: reading file]"
TRUNCATION_NOTICE = "[... content truncated after {max_bytes} bytes ...]"


def parse_extensions(value: Union[str, Iterable[str], None]) -> FrozenSet[str]:
    """Turn ``"py, .MD,txt"`` (or an iterable of such items) into ``{"py", "md", "txt"}``."""
    if not value:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else value
    extensions = set()
    for item in items:
        ext = item.strip().lstrip(".").lower()
        if ext:
            extensions.add(ext)
    return frozenset(extensions)


# Ignore-file utilities
def read_ignore_patterns(path: Path) -> List[str]:
    if not path.exists():
        raise ConfigFileError(f"Ignore file '{path}' does not exist")
    if not path.is_file():
        raise ConfigFileError(f"'{path}' is not a file")
    try:
        with path.open("r", encoding="utf-8") as fh:
            return [
                ln.rstrip("\r\n")
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read ignore file '{path}': {e}")


def build_ignore_spec(
    root: Path,
    ignore_files: Sequence[Path] = (),
    use_gitignore: bool = False,
) -> Optional["pathspec.PathSpec"]:
    patterns: List[str] = []
    for ignore_file in ignore_files:
        patterns.extend(read_ignore_patterns(Path(ignore_file)))
    gitignore = root / ".gitignore"
    if use_gitignore and gitignore.is_file():
        patterns.extend(read_ignore_patterns(gitignore))
    if not patterns:
        return None
    return pathspec.PathSpec.from_lines("gitwildmatch", patterns)


@dataclass(frozen=True)
class Config:
    """Everything a run needs, fixed before the first entry is visited."""

    root: Path
    include_hidden: bool = False
    max_bytes: int = DEFAULT_MAX_BYTES
    include_extensions: FrozenSet[str] = frozenset()
    exclude_extensions: FrozenSet[str] = frozenset()
    ignore_spec: Optional["pathspec.PathSpec"] = None

    def __post_init__(self) -> None:
        if isinstance(self.max_bytes, bool) or not isinstance(self.max_bytes, int):
            raise ConfigError(f"max_bytes must be an integer, got {self.max_bytes!r}")
        if self.max_bytes <= 0:
            raise ConfigError(f"max_bytes must be positive, got {self.max_bytes}")

    @classmethod
    def from_options(
        cls,
        root: Union[str, Path] = ".",
        *,
        include_hidden: bool = False,
        max_bytes: int = DEFAULT_MAX_BYTES,
        include: Union[str, Iterable[str], None] = None,
        exclude: Union[str, Iterable[str], None] = None,
        ignore_files: Sequence[Path] = (),
        use_gitignore: bool = False,
    ) -> "Config":
        root_path = Path(root)
        return cls(
            root=root_path,
            include_hidden=include_hidden,
            max_bytes=max_bytes,
            include_extensions=parse_extensions(include),
            exclude_extensions=parse_extensions(exclude),
            ignore_spec=build_ignore_spec(root_path, ignore_files, use_gitignore),
        )


# Entry filter
def extension_of(relative_path: str) -> str:
    name = relative_path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def is_hidden(relative_path: str, config: Config) -> bool:
    if config.include_hidden or relative_path == ".":
        return False
    return any(part.startswith(".") for part in relative_path.split("/"))


def is_extension_allowed(relative_path: str, config: Config) -> bool:
    ext = extension_of(relative_path)
    if config.include_extensions:
        return ext in config.include_extensions
    if config.exclude_extensions:
        return ext not in config.exclude_extensions
    return True


def is_ignored(relative_path: str, is_dir: bool, config: Config) -> bool:
    if config.ignore_spec is None or relative_path == ".":
        return False
    candidate = f"{relative_path}/" if is_dir else relative_path
    return config.ignore_spec.match_file(candidate)


# Tree enumeration
class EntryKind(Enum):
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    FILE = "file"
    OTHER = "other"  # fifos, sockets, device nodes


@dataclass(frozen=True)
class Entry:
    absolute_path: Path
    relative_path: str
    depth: int
    kind: EntryKind
    name: str
    target: Optional[str] = None


def _root_name(root: Path) -> str:
    return root.name or str(root)


def _entry_kind(dir_entry: os.DirEntry) -> Tuple[EntryKind, Optional[str]]:
    try:
        if dir_entry.is_symlink():
            try:
                return EntryKind.SYMLINK, os.readlink(dir_entry.path)
            except OSError:
                return EntryKind.SYMLINK, "?"
        if dir_entry.is_dir(follow_symlinks=False):
            return EntryKind.DIRECTORY, None
        if dir_entry.is_file(follow_symlinks=False):
            return EntryKind.FILE, None
    except OSError as e:
        logger.warning("Could not stat %s: %s", dir_entry.path, e)
    return EntryKind.OTHER, None


def _collect(root: Path, config: Config) -> List[Tuple[bytes, str, Path, EntryKind, Optional[str]]]:
    found = [(b"", ".", root, EntryKind.DIRECTORY, None)]
    pending = [(root, "")]
    while pending:
        directory, prefix = pending.pop()
        try:
            with os.scandir(directory) as it:
                children = list(it)
        except OSError as e:
            logger.warning("Could not list directory %s: %s", directory, e)
            continue
        for child in children:
            rel = prefix + child.name
            kind, target = _entry_kind(child)
            is_dir = kind is EntryKind.DIRECTORY
            if is_hidden(rel, config) or is_ignored(rel, is_dir, config):
                continue
            path = Path(child.path)
            found.append((os.fsencode(rel), rel, path, kind, target))
            if is_dir:
                pending.append((path, rel + "/"))
    return found


def _iter_entries(root: Path, config: Config) -> Iterator[Entry]:
    if not root.is_dir():
        if is_hidden(root.name, config):
            return
        kind = EntryKind.FILE if root.is_file() else EntryKind.OTHER
        yield Entry(root, root.name, 0, kind, root.name)
        return
    root_name = _root_name(config.root)
    # One byte-wise sort over every path keeps the order independent of the filesystem.
    for _, rel, path, kind, target in sorted(_collect(root, config), key=lambda item: item[0]):
        if rel == ".":
            yield Entry(path, rel, 0, kind, root_name)
            continue
        yield Entry(path, rel, rel.count("/"), kind, rel.rsplit("/", 1)[-1], target)


def walk_tree(config: Config) -> Iterator[Entry]:
    """Return a single-pass iterator over the tree under ``config.root``.

    The root is checked eagerly so a bad root fails before anything is
    produced; the filesystem itself is read on first iteration.
    """
    root = config.root
    if not root.exists():
        raise InvalidRootError(f"Root path not found: {root}")
    return _iter_entries(root.absolute(), config)


# Content extraction
@dataclass(frozen=True)
class ExtractedContent:
    data: bytes
    truncated: bool
    error: Optional[str] = None


def extract(path: Path, size_bytes: int, max_bytes: int) -> ExtractedContent:
    truncated = size_bytes > max_bytes
    try:
        with open(path, "rb") as fh:
            data = fh.read(min(size_bytes, max_bytes))
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return ExtractedContent(b"", truncated, error=str(e))
    return ExtractedContent(data, truncated)


# Output assembly
@dataclass
class RunStats:
    entries: int = 0
    records: int = 0
    truncated: int = 0
    unreadable: int = 0
    read_errors: int = 0
    skipped_binary: int = 0
    skipped_extension: int = 0

    def summary(self) -> str:
        return (
            f"{self.entries} entries listed, {self.records} files dumped "
            f"({self.truncated} truncated, {self.unreadable} unreadable, "
            f"{self.read_errors} read errors); skipped {self.skipped_binary} binary "
            f"and {self.skipped_extension} extension-filtered files."
        )


def render_tree_line(entry: Entry) -> str:
    indent = "  " * entry.depth
    if entry.kind is EntryKind.DIRECTORY:
        return f"{indent}{entry.name}/"
    if entry.kind is EntryKind.SYMLINK:
        return f"{indent}{entry.name} -> {entry.target}"
    return f"{indent}{entry.name}"


def render_record(
    relative_path: str,
    result: ClassificationResult,
    content: Optional[ExtractedContent],
    max_bytes: int,
) -> str:
    if not result.readable or content is None:
        metadata = METADATA_LINE.format(
            size="[unreadable]", mime="[unknown]", encoding="[unknown]", truncated="no"
        )
        return f"{RECORD_MARKER}\n{relative_path}\n{metadata}\n\n{UNREADABLE_NOTICE}\n\n"

    metadata = METADATA_LINE.format(
        size=result.size_bytes,
        mime=result.mime_type,
        encoding=result.encoding,
        truncated="yes" if content.truncated else "no",
    )
    if content.error is not None:
        body = f"{READ_ERROR_NOTICE}\n"
    else:
        # surrogateescape lets the writer hand the original bytes back unchanged
        body = content.data.decode("utf-8", errors="surrogateescape")
        if content.truncated:
            body += "\n" + TRUNCATION_NOTICE.format(max_bytes=max_bytes) + "\n"
    return f"{RECORD_MARKER}\n{relative_path}\n{metadata}\n\n{body}\n"


def render_file(
    entry: Entry,
    config: Config,
    classifier: Classifier,
    stats: RunStats,
) -> Optional[str]:
    """Classify and extract one file; ``None`` when it has no record."""
    rel = entry.relative_path
    if not is_extension_allowed(rel, config):
        stats.skipped_extension += 1
        logger.debug("Skipping %s: extension filtered", rel)
        return None

    result = classifier.classify(entry.absolute_path)
    if not result.readable:
        stats.unreadable += 1
        logger.warning("Not readable: %s", rel)
        return render_record(rel, result, None, config.max_bytes)
    if result.decision is Decision.SKIP:
        stats.skipped_binary += 1
        logger.debug("Skipping %s: %s (%s)", rel, result.mime_type, result.encoding)
        return None

    content = extract(entry.absolute_path, result.size_bytes, config.max_bytes)
    stats.records += 1
    if content.truncated:
        stats.truncated += 1
    if content.error is not None:
        stats.read_errors += 1
    return render_record(rel, result, content, config.max_bytes)


def assemble_entries(
    entries: Iterable[Entry],
    config: Config,
    classifier: Classifier,
    stats: RunStats,
) -> Iterator[str]:
    yield f"{TREE_HEADER}\n\n"
    files: List[Entry] = []
    for entry in entries:
        stats.entries += 1
        yield render_tree_line(entry) + "\n"
        if entry.kind is EntryKind.FILE:
            files.append(entry)

    yield f"\n{SECTION_RULE}\n\n"

    for entry in files:
        record = render_file(entry, config, classifier, stats)
        if record is not None:
            yield record


def assemble(
    config: Config,
    classifier: Optional[Classifier] = None,
    stats: Optional[RunStats] = None,
) -> Iterator[str]:
    """Yield the snapshot in chunks: tree section, rule, then one record per file.

    Raises ``InvalidRootError`` immediately, before any chunk is produced.
    """
    entries = walk_tree(config)
    return assemble_entries(
        entries,
        config,
        classifier if classifier is not None else SniffingClassifier(),
        stats if stats is not None else RunStats(),
    )


def build_context(
    config: Config,
    classifier: Optional[Classifier] = None,
    stats: Optional[RunStats] = None,
) -> str:
    return "".join(assemble(config, classifier, stats))
