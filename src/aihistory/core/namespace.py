"""Maps a source root directory to its own cache directory under the cache root."""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

from aihistory.config import PathResolver
from aihistory.config.constants import (
    INDEX_FILENAME,
    METADATA_FILENAME,
    NAMESPACE_HASH_LENGTH,
)


@dataclass(frozen=True)
class CacheNamespace:
    key: str
    source_root: Path
    directory: Path

    @property
    def metadata_path(self) -> Path:
        return self.directory / METADATA_FILENAME

    @property
    def index_path(self) -> Path:
        return self.directory / INDEX_FILENAME


def namespace_key(source_root: Path) -> str:
    """Short sha256 fingerprint of a canonical source root path."""
    digest = hashlib.sha256(str(source_root).encode("utf-8", errors="surrogatepass")).hexdigest()
    return digest[:NAMESPACE_HASH_LENGTH]


class CacheDirectoryResolver:
    """
    Resolves cache namespaces under an explicit cache root.

    Two roots whose hashes collide share a directory. The cache store records the
    canonical root in the metadata document and rejects a cache written for another root.
    """

    def __init__(self, cache_root: Path):
        self.cache_root = Path(cache_root)

    def resolve(self, source_root: Path) -> CacheNamespace:
        """
        Canonicalize ``source_root`` and return its namespace, creating the directory.

        Raises:
            ValueError: If the source root is not an absolute path
            OSError: If the namespace directory cannot be created
        """
        expanded = Path(source_root).expanduser()
        if not expanded.is_absolute():
            raise ValueError(f"Source root must be an absolute path: {source_root}")
        canonical = expanded.resolve()
        key = namespace_key(canonical)
        directory = PathResolver.ensure_directory(self.cache_root / key)
        return CacheNamespace(key=key, source_root=canonical, directory=directory)
