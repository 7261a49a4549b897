"""Data models and schemas for aihistory."""
from aihistory.models.enums import EntryType
from aihistory.models.domain import (
    Entry,
    HistoryFingerprint,
    ProjectFingerprint,
    ProjectInfo,
    SourceFingerprints,
    IndexMetadata,
    IndexStats,
    sort_entries,
    max_timestamp,
    to_utc_millis,
)
from aihistory.models.schemas import (
    ENTRY_SCHEMA,
    METADATA_DIGEST_KEY,
)

__all__ = [
    # Enums
    "EntryType",
    # Domain models
    "Entry",
    "HistoryFingerprint",
    "ProjectFingerprint",
    "ProjectInfo",
    "SourceFingerprints",
    "IndexMetadata",
    "IndexStats",
    "sort_entries",
    "max_timestamp",
    "to_utc_millis",
    # Schemas
    "ENTRY_SCHEMA",
    "METADATA_DIGEST_KEY",
]
