from __future__ import annotations

import json
from pathlib import Path

from aihistory.config import PathResolver
from aihistory.config.constants import DEFAULT_MAX_FILE_SIZE_MB
from aihistory.core.logging_config import get_logger
from aihistory.models import Entry, EntryType

from .utils import (
    FailureTracker,
    ParseError,
    parse_timestamp_value,
    require_utf8,
    safe_open_file,
    strip_ansi_codes,
    validate_session_id,
)

logger = get_logger(__name__)


def _checked_project_path(project: object) -> str | None:
    if project is None:
        return None
    if not isinstance(project, str):
        raise ValueError("project must be a string")
    require_utf8(project, "project")
    try:
        PathResolver.validate_project_path(project)
    except ValueError as exc:
        logger.warning(f"Skipping project path of history entry: {exc}")
        return None
    return project


def _entry_from_line(data: object) -> Entry | None:
    if not isinstance(data, dict):
        raise ValueError("history line must be a JSON object")
    display = data.get("display")
    if not isinstance(display, str):
        raise ValueError("missing field 'display'")
    require_utf8(display, "display")
    timestamp = parse_timestamp_value(data.get("timestamp"))
    session_id = validate_session_id(data.get("sessionId"))
    project_path = _checked_project_path(data.get("project"))

    if not display.strip():
        return None

    return Entry(
        entry_type=EntryType.PROMPT,
        content=strip_ansi_codes(display),
        timestamp=timestamp,
        project_path=project_path,
        session_id=session_id,
        role="user",
    )


def parse_history_file(path: Path, max_bytes: int = DEFAULT_MAX_FILE_SIZE_MB * 1024 * 1024) -> list[Entry]:
    """
    Parse history.jsonl into prompt entries.

    Malformed lines are logged and skipped; whitespace-only prompts are dropped.

    Raises:
        ParseError: If the file cannot be opened or read, more than half of its
            lines fail, or 100 consecutive lines fail
    """
    tracker = FailureTracker(path, f"history file {path}")
    entries: list[Entry] = []

    with safe_open_file(path, max_bytes) as f:
        try:
            for line_num, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    entry = _entry_from_line(json.loads(line))
                except ValueError as exc:  # json.JSONDecodeError is a ValueError
                    tracker.failure(line_num, exc)
                    continue
                tracker.success()
                if entry is not None:
                    entries.append(entry)
        except OSError as exc:
            raise ParseError(f"Failed to read {path}: {exc}", source=path) from exc

    tracker.finish(len(entries))
    return entries
