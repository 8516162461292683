"""
Contextify - A tool for snapshotting a directory tree for LLM ingestion.

This package walks a directory tree in a deterministic order, lists every
entry, classifies each file as text or binary, and dumps the contents of the
text files (size-capped) under a metadata header into one plain-text artifact.
"""

__version__ = "0.1.0"
__author__ = "Contextify Team"
