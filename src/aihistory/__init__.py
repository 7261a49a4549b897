from __future__ import annotations

__version__ = "0.1.0"
__author__ = "aihistory Contributors"

from aihistory.models import (
    Entry,
    EntryType,
    IndexMetadata,
    IndexStats,
)

__all__ = [
    "Entry",
    "EntryType",
    "IndexMetadata",
    "IndexStats",
    "HistoryIndexer",
    "build_index",
]


def __getattr__(name: str):
    if name in ("HistoryIndexer", "build_index"):
        from aihistory.core import indexer

        return getattr(indexer, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
