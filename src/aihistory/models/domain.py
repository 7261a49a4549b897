"""Domain models for aihistory - entries, source fingerprints and index metadata."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from aihistory.models.enums import EntryType


def to_utc_millis(value: datetime) -> datetime:
    """Normalize a datetime to tz-aware UTC with millisecond resolution."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return to_utc_millis(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse a timestamp written by ``format_timestamp``.

    Raises:
        TypeError: If the value is not a string
        ValueError: If the string is not an ISO 8601 timestamp
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    raw = value[:-1] + "+00:00" if value.endswith("Z") else value
    return to_utc_millis(datetime.fromisoformat(raw))


@dataclass(frozen=True)
class Entry:
    """One searchable record: a prompt from history.jsonl or a conversation message."""
    entry_type: EntryType
    content: str
    timestamp: datetime
    project_path: str | None = None
    session_id: str | None = None
    role: str | None = None
    # Encoded project directory that produced the entry; None for history.jsonl prompts.
    project_id: str | None = None


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Return entries newest first. The sort is stable, so ties keep input order."""
    return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)


def max_timestamp(entries: Iterable[Entry]) -> datetime | None:
    return max((entry.timestamp for entry in entries), default=None)


@dataclass(frozen=True)
class HistoryFingerprint:
    """Freshness fingerprint of history.jsonl."""
    mtime_ns: int
    size: int
    max_timestamp: datetime | None = None
    entry_count: int = 0

    def same_source_as(self, other: HistoryFingerprint | None) -> bool:
        return other is not None and self.mtime_ns == other.mtime_ns and self.size == other.size

    def to_dict(self) -> dict:
        return {
            "mtime_ns": self.mtime_ns,
            "size": self.size,
            "max_timestamp": format_timestamp(self.max_timestamp),
            "entry_count": self.entry_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryFingerprint":
        return cls(
            mtime_ns=int(data["mtime_ns"]),
            size=int(data["size"]),
            max_timestamp=parse_timestamp(data.get("max_timestamp")),
            entry_count=int(data.get("entry_count", 0)),
        )


@dataclass(frozen=True)
class ProjectFingerprint:
    """Freshness fingerprint of one project directory.

    ``newest_file_mtime_ns`` catches appends to existing conversation files, which do
    not touch the directory mtime.
    """
    dir_mtime_ns: int
    file_count: int
    newest_file_mtime_ns: int = 0
    max_timestamp: datetime | None = None
    entry_count: int = 0

    def same_source_as(self, other: ProjectFingerprint | None) -> bool:
        return (
            other is not None
            and self.dir_mtime_ns == other.dir_mtime_ns
            and self.file_count == other.file_count
            and self.newest_file_mtime_ns == other.newest_file_mtime_ns
        )

    def to_dict(self) -> dict:
        return {
            "dir_mtime_ns": self.dir_mtime_ns,
            "file_count": self.file_count,
            "newest_file_mtime_ns": self.newest_file_mtime_ns,
            "max_timestamp": format_timestamp(self.max_timestamp),
            "entry_count": self.entry_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectFingerprint":
        return cls(
            dir_mtime_ns=int(data["dir_mtime_ns"]),
            file_count=int(data["file_count"]),
            newest_file_mtime_ns=int(data.get("newest_file_mtime_ns", 0)),
            max_timestamp=parse_timestamp(data.get("max_timestamp")),
            entry_count=int(data.get("entry_count", 0)),
        )


@dataclass(frozen=True)
class ProjectInfo:
    """A discovered project directory and its conversation files."""
    project_id: str
    decoded_path: str
    project_dir: Path
    conversation_files: tuple[Path, ...] = ()


@dataclass
class SourceFingerprints:
    """Result of one scan: the history.jsonl fingerprint plus one per project."""
    history: HistoryFingerprint | None
    projects: dict[str, ProjectFingerprint] = field(default_factory=dict)
    project_infos: dict[str, ProjectInfo] = field(default_factory=dict)


@dataclass
class IndexMetadata:
    """Persisted root descriptor of a cached index."""
    version: int
    history: HistoryFingerprint | None
    projects: dict[str, ProjectFingerprint] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "history_file": self.history.to_dict() if self.history is not None else None,
            "projects": {
                project_id: self.projects[project_id].to_dict()
                for project_id in sorted(self.projects)
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IndexMetadata":
        """
        Build metadata from its JSON form.

        Raises:
            KeyError, TypeError, ValueError: If the document is malformed
        """
        if not isinstance(data, dict):
            raise TypeError("Index metadata must be a JSON object")
        history_data = data["history_file"]
        projects_data = data["projects"]
        if not isinstance(projects_data, dict):
            raise TypeError("Index metadata 'projects' must be a JSON object")
        return cls(
            version=int(data["version"]),
            history=HistoryFingerprint.from_dict(history_data) if history_data is not None else None,
            projects={
                str(project_id): ProjectFingerprint.from_dict(value)
                for project_id, value in projects_data.items()
            },
        )


@dataclass
class IndexStats:
    """Statistics about one index build."""
    total_entries: int
    prompt_entries: int
    message_entries: int
    history_reparsed: bool
    projects_reused: int
    projects_reparsed: int
    projects_failed: int
    projects_dropped: int
    index_time_seconds: float = 0.0
