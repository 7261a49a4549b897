from __future__ import annotations

import json
from pathlib import Path

from aihistory.config.constants import (
    DEFAULT_MAX_FILE_SIZE_MB,
    MAX_FAILURE_RATE,
    MAX_THINKING_CONTENT,
    MAX_TOOL_CONTENT,
)
from aihistory.core.logging_config import get_logger
from aihistory.models import Entry, EntryType, ProjectInfo

from .utils import (
    FailureTracker,
    ParseError,
    parse_timestamp_value,
    require_utf8,
    safe_open_file,
    strip_ansi_codes,
    truncate_utf8,
    validate_session_id,
)

logger = get_logger(__name__)

_CONVERSATION_TYPES = ("user", "assistant")


def _labelled(label: str, text: str, limit: int) -> str:
    truncated, was_truncated = truncate_utf8(text, limit)
    if was_truncated:
        return f"[{label}][truncated] {truncated}..."
    return f"[{label}] {text}"


def _serialize_json(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def extract_text_from_content(content: object) -> list[str]:
    """
    Extract searchable text parts from a message's content.

    Handles both plain string content and lists of content blocks:
    - text: included as-is
    - thinking: "[Thinking]" prefix, truncated to 1 KiB
    - tool_use: "[Tool: name] Input: <json>", truncated to 4 KiB
    - tool_result: "[Tool Result] <json>", truncated to 4 KiB
    - image: alt text with "[Image]" prefix, truncated to 1 KiB

    Unknown block types are ignored.

    Raises:
        ValueError: If content is neither a string nor a list
    """
    if isinstance(content, str):
        return [content]
    if not isinstance(content, list):
        raise ValueError("message content must be a string or a list of blocks")

    parts: list[str] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text")
            if isinstance(text, str):
                parts.append(text)
        elif block_type == "thinking":
            thinking = block.get("thinking")
            if isinstance(thinking, str):
                parts.append(_labelled("Thinking", thinking, MAX_THINKING_CONTENT))
        elif block_type == "tool_use":
            name = block.get("name") or "unknown"
            input_json = _serialize_json(block.get("input"))
            truncated, was_truncated = truncate_utf8(input_json, MAX_TOOL_CONTENT)
            if was_truncated:
                parts.append(f"[Tool: {name}][truncated] Input: {truncated}...")
            else:
                parts.append(f"[Tool: {name}] Input: {input_json}")
        elif block_type == "tool_result":
            parts.append(_labelled("Tool Result", _serialize_json(block.get("content")), MAX_TOOL_CONTENT))
        elif block_type == "image":
            alt_text = block.get("alt_text")
            if isinstance(alt_text, str):
                parts.append(_labelled("Image", alt_text, MAX_THINKING_CONTENT))
    return parts


def _entry_from_line(data: dict, project: ProjectInfo | None) -> Entry | None:
    message = data.get("message")
    if not isinstance(message, dict):
        raise ValueError("missing field 'message'")
    role = message.get("role")
    if not isinstance(role, str):
        raise ValueError("missing field 'message.role'")
    if "content" not in message:
        raise ValueError("missing field 'message.content'")
    parts = extract_text_from_content(message["content"])
    timestamp = parse_timestamp_value(data.get("timestamp"))
    session_id = validate_session_id(data.get("sessionId"))
    if not isinstance(data.get("uuid"), str):
        raise ValueError("missing field 'uuid'")

    if role not in _CONVERSATION_TYPES:
        return None
    content = require_utf8(strip_ansi_codes("\n".join(parts)), "message.content")
    if not content.strip():
        return None

    return Entry(
        entry_type=EntryType.MESSAGE,
        content=content,
        timestamp=timestamp,
        project_path=project.decoded_path if project is not None else None,
        session_id=session_id,
        role=role,
        project_id=project.project_id if project is not None else None,
    )


def parse_conversation_file(
    path: Path,
    project: ProjectInfo | None = None,
    max_bytes: int = DEFAULT_MAX_FILE_SIZE_MB * 1024 * 1024,
) -> list[Entry]:
    """
    Parse one conversation JSONL file into message entries.

    Only ``user`` and ``assistant`` lines are considered; other line types
    (summaries, snapshots, system records) are skipped without counting as failures.

    Raises:
        ParseError: If the file cannot be opened or read, or breaks the failure contract
    """
    tracker = FailureTracker(path, str(path))
    entries: list[Entry] = []

    with safe_open_file(path, max_bytes) as f:
        try:
            for line_num, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                except ValueError as exc:
                    tracker.failure(line_num, exc)
                    continue
                if not isinstance(data, dict) or data.get("type") not in _CONVERSATION_TYPES:
                    tracker.success()
                    continue
                try:
                    entry = _entry_from_line(data, project)
                except ValueError as exc:
                    tracker.failure(line_num, exc)
                    continue
                tracker.success()
                if entry is not None:
                    entries.append(entry)
        except OSError as exc:
            raise ParseError(f"Failed to read {path}: {exc}", source=path) from exc

    tracker.finish(len(entries))
    return entries


def parse_project(
    project: ProjectInfo,
    max_bytes: int = DEFAULT_MAX_FILE_SIZE_MB * 1024 * 1024,
) -> list[Entry]:
    """
    Parse every conversation file of a project.

    Files that fail are logged and skipped.

    Raises:
        ParseError: If more than half of the project's files fail
    """
    entries: list[Entry] = []
    failed = 0
    for conversation_file in project.conversation_files:
        try:
            entries.extend(parse_conversation_file(conversation_file, project, max_bytes))
        except ParseError as exc:
            failed += 1
            logger.warning(f"Failed to parse conversation file {conversation_file}: {exc}")

    total = len(project.conversation_files)
    if total and failed / total > MAX_FAILURE_RATE:
        raise ParseError(
            f"Project {project.project_id}: {failed}/{total} conversation files failed to parse "
            f"({int(failed / total * 100)}% failure rate)",
            source=project.project_dir,
        )
    return entries
