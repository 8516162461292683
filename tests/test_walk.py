"""Tests for tree enumeration in contextify.core."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from contextify.core import Config, EntryKind, InvalidRootError, build_context, walk_tree
from tests._fixtures.tree_builder import TreeBuilder


def _listing(config: Config) -> list[tuple[str, int, EntryKind]]:
    return [(e.relative_path, e.depth, e.kind) for e in walk_tree(config)]


def test_entries_follow_a_single_bytewise_sort(tree: TreeBuilder) -> None:
    tree.write({"a/b.txt": "b\n", "a.txt": "a\n", "a-b": "x\n", "B.md": "B\n"})

    assert _listing(tree.config()) == [
        (".", 0, EntryKind.DIRECTORY),
        ("B.md", 0, EntryKind.FILE),
        ("a", 0, EntryKind.DIRECTORY),
        ("a-b", 0, EntryKind.FILE),
        ("a.txt", 0, EntryKind.FILE),
        ("a/b.txt", 1, EntryKind.FILE),
    ]


def test_depth_counts_separators(tree: TreeBuilder) -> None:
    tree.write({"x/y/z/deep.txt": "deep\n"})

    depths = {e.relative_path: e.depth for e in walk_tree(tree.config())}
    assert depths == {".": 0, "x": 0, "x/y": 1, "x/y/z": 2, "x/y/z/deep.txt": 3}


def test_root_entry_is_named_after_root(tree: TreeBuilder) -> None:
    tree.write({"f.txt": "f\n"})

    root = next(iter(walk_tree(tree.config())))
    assert root.relative_path == "."
    assert root.name == "proj"
    assert root.kind is EntryKind.DIRECTORY


def test_dot_root_is_named_dot(tree: TreeBuilder, monkeypatch: pytest.MonkeyPatch) -> None:
    tree.write({"f.txt": "f\n"})
    monkeypatch.chdir(tree.path())

    root = next(iter(walk_tree(Config.from_options("."))))
    assert root.name == "."


def test_hidden_entries_are_pruned_by_default(tree: TreeBuilder) -> None:
    tree.write({".git/config": "x\n", ".env": "SECRET=1\n", "src/.cache/c": "c\n", "src/a.py": "a\n"})

    paths = [e.relative_path for e in walk_tree(tree.config())]
    assert paths == [".", "src", "src/a.py"]


def test_include_hidden_lists_hidden_entries(tree: TreeBuilder) -> None:
    tree.write({".git/config": "x\n", ".env": "SECRET=1\n"})

    paths = [e.relative_path for e in walk_tree(tree.config(include_hidden=True))]
    assert paths == [".", ".env", ".git", ".git/config"]


def test_hidden_root_still_lists_children(tmp_path: Path) -> None:
    hidden_root = TreeBuilder(tmp_path, name=".dotfiles")
    hidden_root.write({"vimrc": "set nu\n"})

    entries = list(walk_tree(hidden_root.config()))
    assert [e.relative_path for e in entries] == [".", "vimrc"]
    assert entries[0].name == ".dotfiles"


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinks_are_leaves_with_raw_target(tree: TreeBuilder) -> None:
    tree.write({"src/main.py": "print('hi')\n"})
    tree.symlink("link", "src")
    tree.symlink("dangling", "missing/target.txt")

    entries = {e.relative_path: e for e in walk_tree(tree.config())}
    assert entries["link"].kind is EntryKind.SYMLINK
    assert entries["link"].target == "src"
    assert entries["dangling"].target == "missing/target.txt"
    assert "link/main.py" not in entries


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="fifos unavailable")
def test_fifo_is_reported_as_other(tree: TreeBuilder) -> None:
    os.mkfifo(tree.path() / "pipe")

    entries = {e.relative_path: e for e in walk_tree(tree.config())}
    assert entries["pipe"].kind is EntryKind.OTHER


def test_ignored_directories_are_pruned(tree: TreeBuilder, tmp_path: Path) -> None:
    tree.write({"build/out.txt": "o\n", "src/app.py": "a\n", "debug.log": "l\n"})
    ignore = tmp_path / "ignore"
    ignore.write_text("build/\n*.log\n", encoding="utf-8")

    paths = [e.relative_path for e in walk_tree(tree.config(ignore_files=[ignore]))]
    assert paths == [".", "src", "src/app.py"]


def test_single_file_root(tmp_path: Path) -> None:
    target = tmp_path / "a.txt"
    target.write_text("hello\n", encoding="utf-8")

    entries = list(walk_tree(Config.from_options(target)))
    assert len(entries) == 1
    assert entries[0].relative_path == "a.txt"
    assert entries[0].depth == 0
    assert entries[0].kind is EntryKind.FILE


def test_hidden_single_file_root_is_dropped(tmp_path: Path) -> None:
    target = tmp_path / ".env"
    target.write_text("SECRET=1\n", encoding="utf-8")

    assert list(walk_tree(Config.from_options(target))) == []
    snapshot = build_context(Config.from_options(target))
    assert "SECRET" not in snapshot
    assert ".env" not in snapshot

    shown = list(walk_tree(Config.from_options(target, include_hidden=True)))
    assert [e.relative_path for e in shown] == [".env"]


def test_missing_root_raises_before_iteration(tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    with pytest.raises(InvalidRootError) as excinfo:
        walk_tree(Config.from_options(missing))
    assert str(missing) in str(excinfo.value)


def test_walk_is_single_pass(tree: TreeBuilder) -> None:
    tree.write({"a.txt": "a\n"})

    entries = walk_tree(tree.config())
    assert len(list(entries)) == 2
    assert list(entries) == []
    assert len(list(walk_tree(tree.config()))) == 2


def test_walk_sees_changes_between_calls(tree: TreeBuilder) -> None:
    tree.write({"a.txt": "a\n"})
    first = [e.relative_path for e in walk_tree(tree.config())]
    tree.write({"b.txt": "b\n"})
    second = [e.relative_path for e in walk_tree(tree.config())]

    assert first == [".", "a.txt"]
    assert second == [".", "a.txt", "b.txt"]
