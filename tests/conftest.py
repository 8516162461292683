from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.tree_builder import TreeBuilder


@pytest.fixture
def tree(tmp_path: Path) -> TreeBuilder:
    """Provide a tree builder rooted at ``<tmp_path>/proj``."""
    return TreeBuilder(tmp_path)
