from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path

from aihistory.config import Config, PathResolver
from aihistory.core.cache_store import CacheStore
from aihistory.core.logging_config import get_logger
from aihistory.core.namespace import CacheDirectoryResolver, CacheNamespace
from aihistory.core.parsers import parse_history_file, parse_project
from aihistory.core.reconciler import reconcile
from aihistory.core.scanner import SourceScanner
from aihistory.models import Entry, IndexMetadata, IndexStats, ProjectInfo

logger = get_logger(__name__)


@dataclass(frozen=True)
class IndexResult:
    """Outcome of one index build. ``entries`` is newest first."""
    entries: tuple[Entry, ...]
    metadata: IndexMetadata
    stats: IndexStats
    cache_loaded: bool
    cache_saved: bool
    namespace: CacheNamespace | None = None


class HistoryIndexer:
    """
    Builds the searchable entry index of one Claude directory.

    Each build loads the cached index of the directory's namespace, fingerprints
    the sources, re-parses only what changed and saves the merged result back.
    Cache problems only cost a rebuild; a history.jsonl that fails to parse
    aborts the build with IndexBuildError.
    """

    def __init__(self, claude_dir: Path, config: Config | None = None, cache_root: Path | None = None):
        if config is None:
            config = Config.load()
        self.config = config
        self.claude_dir = Path(claude_dir).expanduser()
        self.cache_root = Path(cache_root) if cache_root is not None else PathResolver.get_cache_root(config)

        self.resolver = CacheDirectoryResolver(self.cache_root)
        self.store = CacheStore()
        self.scanner = SourceScanner(
            self.claude_dir,
            conversation_glob=config.indexing.conversation_glob,
            max_projects=config.indexing.max_projects,
            max_files_per_project=config.indexing.max_files_per_project,
        )

    @property
    def history_path(self) -> Path:
        return self.scanner.history_path

    def resolve_namespace(self) -> CacheNamespace:
        """
        Raises:
            ValueError: If the Claude directory is not an absolute path
            OSError: If the namespace directory cannot be created
        """
        return self.resolver.resolve(self.claude_dir)

    def build(self, use_cache: bool = True) -> IndexResult:
        """
        Build the index, reusing the cache unless ``use_cache`` is False.

        Bypassing the cache skips loading only; the fresh result is still saved.

        Raises:
            IndexBuildError: If history.jsonl cannot be parsed
            DiscoveryError: If the projects directory is over the project limit
        """
        start_time = time.time()

        namespace = self._namespace_or_none()
        prior = None
        if namespace is not None and use_cache:
            prior = self.store.load(namespace)
        elif not use_cache:
            logger.info("Cache bypassed; rebuilding index from sources")

        current = self.scanner.scan()
        metadata, entries, stats = reconcile(prior, current, self._parse_primary, self._parse_project)

        saved = self.store.save(namespace, metadata, entries) if namespace is not None else False
        stats.index_time_seconds = time.time() - start_time

        logger.info(
            f"Indexed {stats.total_entries} entries in {stats.index_time_seconds:.2f}s "
            f"(history {'re-parsed' if stats.history_reparsed else 'reused'}, "
            f"projects: {stats.projects_reused} reused, {stats.projects_reparsed} re-parsed, "
            f"{stats.projects_failed} failed, {stats.projects_dropped} dropped)"
        )
        return IndexResult(
            entries=tuple(entries),
            metadata=metadata,
            stats=stats,
            cache_loaded=prior is not None,
            cache_saved=saved,
            namespace=namespace,
        )

    def clear_cache(self) -> list[Path]:
        """Delete this Claude directory's cached index. Returns the removed files."""
        return self.store.clear(self.resolve_namespace())

    def _namespace_or_none(self) -> CacheNamespace | None:
        try:
            return self.resolve_namespace()
        except (OSError, ValueError) as exc:
            logger.warning(f"Index cache unavailable for {self.claude_dir}: {exc}")
            return None

    def _parse_primary(self) -> list[Entry]:
        return parse_history_file(self.history_path, self.config.indexing.max_file_size_bytes)

    def _parse_project(self, project: ProjectInfo) -> list[Entry]:
        return parse_project(project, self.config.indexing.max_file_size_bytes)


def build_index(
    claude_dir: Path | None = None,
    use_cache: bool | None = None,
    config: Config | None = None,
) -> IndexResult:
    """Build the index of ``claude_dir`` (default: the configured Claude directory)."""
    if config is None:
        config = Config.load()
    if claude_dir is None:
        claude_dir = PathResolver.get_claude_dir(config)
    if use_cache is None:
        use_cache = config.indexing.use_cache
    return HistoryIndexer(claude_dir, config).build(use_cache=use_cache)
