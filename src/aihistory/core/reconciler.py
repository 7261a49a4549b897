"""
Incremental reconciliation of the cached index against the current sources.

Given the previously cached (metadata, entries) pair and fresh scanner fingerprints,
reuses the cached entries of every source whose fingerprint is unchanged, re-parses
the rest, drops projects that disappeared, and sorts the merged collection newest
first. Ordering is re-established by the final sort on every run.
"""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, NamedTuple, Sequence

from aihistory.config.constants import CACHE_VERSION
from aihistory.core.logging_config import get_logger
from aihistory.core.parsers import ParseError
from aihistory.models import (
    Entry,
    EntryType,
    HistoryFingerprint,
    IndexMetadata,
    IndexStats,
    ProjectFingerprint,
    ProjectInfo,
    SourceFingerprints,
    max_timestamp,
    sort_entries,
)

logger = get_logger(__name__)

ParsePrimary = Callable[[], list[Entry]]
ParseProject = Callable[[ProjectInfo], list[Entry]]


class IndexBuildError(RuntimeError):
    """The primary history log could not be parsed; the index cannot be built."""

    def __init__(self, message: str, source: Path | None = None) -> None:
        super().__init__(message)
        self.source = source


class ReconcileResult(NamedTuple):
    metadata: IndexMetadata
    entries: list[Entry]
    stats: IndexStats


def group_cached_entries(entries: Iterable[Entry]) -> tuple[list[Entry], dict[str, list[Entry]]]:
    """Split cached entries into history prompts and per-project lists, keeping their order."""
    history: list[Entry] = []
    projects: dict[str, list[Entry]] = {}
    for entry in entries:
        if entry.project_id is None:
            history.append(entry)
        else:
            projects.setdefault(entry.project_id, []).append(entry)
    return history, projects


def _can_reuse(current, prior, cached: Sequence[Entry]) -> bool:
    # A fingerprint is only trusted together with the entries it was recorded with.
    return (
        prior is not None
        and current.same_source_as(prior)
        and prior.entry_count == len(cached)
    )


def _reconcile_history(
    current: HistoryFingerprint | None,
    prior: HistoryFingerprint | None,
    cached: list[Entry],
    parse_primary: ParsePrimary,
) -> tuple[HistoryFingerprint | None, list[Entry], bool]:
    if current is None:
        logger.debug("History file absent; no prompt entries")
        return None, [], False

    if _can_reuse(current, prior, cached):
        logger.debug(f"Reusing {len(cached)} cached history entries")
        return prior, cached, False

    try:
        entries = parse_primary()
    except ParseError as exc:
        raise IndexBuildError(
            f"Failed to parse history file {exc.source or '(unknown)'}: {exc}",
            source=exc.source,
        ) from exc

    fingerprint = replace(current, max_timestamp=max_timestamp(entries), entry_count=len(entries))
    logger.debug(f"Re-parsed history file: {len(entries)} entries")
    return fingerprint, entries, True


def reconcile(
    prior: tuple[IndexMetadata, Sequence[Entry]] | None,
    current: SourceFingerprints,
    parse_primary: ParsePrimary,
    parse_project: ParseProject,
) -> ReconcileResult:
    """
    Merge the cached index with the current state of the sources.

    Args:
        prior: Cached (metadata, entries) pair, or None for a full rebuild
        current: Fingerprints from the source scanner
        parse_primary: Parses history.jsonl; raises ParseError past its failure threshold
        parse_project: Parses every conversation file of a project; raises ParseError

    Returns:
        ReconcileResult with the new metadata, the sorted entries and build statistics

    Raises:
        IndexBuildError: If history.jsonl has to be parsed and fails
    """
    if prior is None:
        prior_metadata = None
        cached_history, cached_projects = [], {}
    else:
        prior_metadata, prior_entries = prior
        cached_history, cached_projects = group_cached_entries(prior_entries)

    history_fingerprint, history_entries, history_reparsed = _reconcile_history(
        current.history,
        prior_metadata.history if prior_metadata is not None else None,
        cached_history,
        parse_primary,
    )

    prior_projects = prior_metadata.projects if prior_metadata is not None else {}
    project_fingerprints: dict[str, ProjectFingerprint] = {}
    project_entries: list[list[Entry]] = []
    reused = reparsed = failed = 0

    for project_id in sorted(current.projects):
        fingerprint = current.projects[project_id]
        prior_fingerprint = prior_projects.get(project_id)
        cached = cached_projects.get(project_id, [])

        if _can_reuse(fingerprint, prior_fingerprint, cached):
            project_fingerprints[project_id] = prior_fingerprint
            project_entries.append(cached)
            reused += 1
            continue

        try:
            entries = parse_project(current.project_infos[project_id])
        except ParseError as exc:
            logger.warning(f"Skipping project {project_id} for this run: {exc}")
            failed += 1
            continue

        project_fingerprints[project_id] = replace(
            fingerprint,
            max_timestamp=max_timestamp(entries),
            entry_count=len(entries),
        )
        project_entries.append(entries)
        reparsed += 1

    dropped = [project_id for project_id in prior_projects if project_id not in current.projects]
    for project_id in dropped:
        logger.debug(f"Dropping project {project_id}: no longer present")

    merged = list(history_entries)
    for entries in project_entries:
        merged.extend(entries)
    merged = sort_entries(merged)

    prompt_count = sum(1 for entry in merged if entry.entry_type is EntryType.PROMPT)
    stats = IndexStats(
        total_entries=len(merged),
        prompt_entries=prompt_count,
        message_entries=len(merged) - prompt_count,
        history_reparsed=history_reparsed,
        projects_reused=reused,
        projects_reparsed=reparsed,
        projects_failed=failed,
        projects_dropped=len(dropped),
    )
    metadata = IndexMetadata(
        version=CACHE_VERSION,
        history=history_fingerprint,
        projects=project_fingerprints,
    )
    return ReconcileResult(metadata, merged, stats)
