"""
Persistent storage of the merged entry index.

Each cache namespace holds two artifacts:
- index-metadata.json: schema version, canonical source root and the source fingerprints
- search-index.parquet: every Entry in index order

Both are written to a temp file in the namespace directory, fsynced and renamed into
place, the Parquet blob first. The blob's schema metadata records the sha256 of the
metadata document it was written with, so a metadata document is only accepted
next to the exact blob written alongside it. The recorded source root must equal the
namespace's own root, so two roots whose namespace keys collide never share entries.
"""
from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Sequence

import pyarrow as pa
import pyarrow.parquet as pq

from aihistory.config.constants import CACHE_VERSION, TEMP_SUFFIX
from aihistory.core.logging_config import get_logger
from aihistory.core.namespace import CacheNamespace
from aihistory.models import (
    ENTRY_SCHEMA,
    METADATA_DIGEST_KEY,
    Entry,
    EntryType,
    IndexMetadata,
    to_utc_millis,
)

logger = get_logger(__name__)


def encode_metadata(metadata: IndexMetadata, source_root: Path) -> bytes:
    """Serialize metadata deterministically: equal metadata always gives equal bytes."""
    document = metadata.to_dict()
    document["source_root"] = str(source_root)
    return (json.dumps(document, indent=2, sort_keys=True) + "\n").encode("utf-8")


def _digest(data: bytes) -> bytes:
    return hashlib.sha256(data).hexdigest().encode("ascii")


def _entry_to_row(entry: Entry) -> dict:
    return {
        "entry_type": entry.entry_type.value,
        "content": entry.content,
        "timestamp": entry.timestamp,
        "project_path": entry.project_path,
        "session_id": entry.session_id,
        "role": entry.role,
        "project_id": entry.project_id,
    }


def _row_to_entry(row: dict) -> Entry:
    if row["timestamp"] is None or row["content"] is None:
        raise ValueError("Cached entry is missing its timestamp or content")
    return Entry(
        entry_type=EntryType(row["entry_type"]),
        content=row["content"],
        timestamp=to_utc_millis(row["timestamp"]),
        project_path=row["project_path"],
        session_id=row["session_id"],
        role=row["role"],
        project_id=row["project_id"],
    )


def _temp_path(path: Path) -> Path:
    return path.with_name(path.name + TEMP_SUFFIX)


class CacheStore:
    """Loads and saves the (IndexMetadata, entries) pair of a cache namespace."""

    def load(self, namespace: CacheNamespace) -> tuple[IndexMetadata, list[Entry]] | None:
        """
        Load the cached index of a namespace.

        Every reason the cache cannot be used (missing files, unreadable or corrupt
        data, version mismatch, metadata not matching the blob) returns None; the
        cause is logged.
        """
        metadata_path = namespace.metadata_path
        if not metadata_path.exists():
            logger.debug(f"No cached index in {namespace.directory}")
            return None

        try:
            raw = metadata_path.read_bytes()
            document = json.loads(raw)
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable index metadata {metadata_path}: {exc}")
            return None

        if not isinstance(document, dict) or document.get("version") != CACHE_VERSION:
            found = document.get("version") if isinstance(document, dict) else None
            logger.warning(
                f"Ignoring cached index: version {found!r}, expected {CACHE_VERSION}. "
                "Rebuilding."
            )
            return None

        recorded_root = document.get("source_root")
        if recorded_root != str(namespace.source_root):
            logger.warning(
                f"Ignoring cached index in {namespace.directory}: it belongs to {recorded_root!r}, "
                f"not {str(namespace.source_root)!r}"
            )
            return None

        try:
            metadata = IndexMetadata.from_dict(document)
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            logger.warning(f"Ignoring malformed index metadata {metadata_path}: {exc}")
            return None

        index_path = namespace.index_path
        if not index_path.exists():
            logger.warning(f"Ignoring index metadata without its entry data: {index_path} is missing")
            return None

        try:
            table = pq.read_table(index_path)
        except (OSError, ValueError, pa.ArrowException) as exc:
            logger.warning(f"Ignoring unreadable cached entries {index_path}: {exc}")
            return None

        schema_metadata = table.schema.metadata or {}
        if schema_metadata.get(METADATA_DIGEST_KEY) != _digest(raw):
            logger.warning(f"Ignoring cached index in {namespace.directory}: metadata does not match entry data")
            return None
        if not table.schema.equals(ENTRY_SCHEMA, check_metadata=False):
            logger.warning(f"Ignoring cached entries {index_path}: unexpected schema")
            return None

        try:
            entries = [_row_to_entry(row) for row in table.to_pylist()]
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Ignoring corrupt cached entries {index_path}: {exc}")
            return None

        logger.debug(f"Loaded {len(entries)} cached entries from {namespace.directory}")
        return metadata, entries

    def save(self, namespace: CacheNamespace, metadata: IndexMetadata, entries: Sequence[Entry]) -> bool:
        """
        Atomically replace the namespace's artifacts.

        Returns:
            True if both artifacts were written; False (logged) otherwise. A failure
            never leaves a partially written artifact under its final name.
        """
        metadata_bytes = encode_metadata(metadata, namespace.source_root)
        index_path = namespace.index_path
        metadata_path = namespace.metadata_path
        index_tmp = _temp_path(index_path)
        metadata_tmp = _temp_path(metadata_path)

        try:
            table = pa.Table.from_pylist([_entry_to_row(entry) for entry in entries], schema=ENTRY_SCHEMA)
            table = table.replace_schema_metadata({METADATA_DIGEST_KEY: _digest(metadata_bytes)})
            with open(index_tmp, "wb") as f:
                pq.write_table(table, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(index_tmp, index_path)

            with open(metadata_tmp, "wb") as f:
                f.write(metadata_bytes)
                f.flush()
                os.fsync(f.fileno())
            os.replace(metadata_tmp, metadata_path)
        except (OSError, ValueError, pa.ArrowException) as exc:
            logger.warning(f"Failed to save index cache to {namespace.directory}: {exc}")
            self._discard(index_tmp, metadata_tmp)
            return False

        logger.debug(f"Saved {len(entries)} entries to {namespace.directory}")
        return True

    def clear(self, namespace: CacheNamespace) -> list[Path]:
        """Delete the namespace's artifacts and stray temp files. Returns the removed paths."""
        candidates = [namespace.metadata_path, namespace.index_path]
        candidates.extend(sorted(namespace.directory.glob(f"*{TEMP_SUFFIX}")))
        removed: list[Path] = []
        for path in candidates:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            removed.append(path)
        return removed

    @staticmethod
    def _discard(*paths: Path) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning(f"Failed to remove temp file {path}: {exc}")
