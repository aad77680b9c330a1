"""Persistence for tree-scoped records."""

from family_history.storage.store import TreeStore

__all__ = [
    "TreeStore",
]
