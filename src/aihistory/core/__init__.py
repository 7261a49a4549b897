"""Core logic - parsing, scanning, caching and incremental indexing."""
from __future__ import annotations

__all__ = [
    "HistoryIndexer",
    "IndexResult",
    "build_index",
    "IndexBuildError",
    "DiscoveryError",
]


def __getattr__(name: str):
    if name in ("HistoryIndexer", "IndexResult", "build_index"):
        from aihistory.core import indexer

        return getattr(indexer, name)
    if name == "IndexBuildError":
        from aihistory.core.reconciler import IndexBuildError

        return IndexBuildError
    if name == "DiscoveryError":
        from aihistory.core.discovery import DiscoveryError

        return DiscoveryError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
