"""Pytest configuration and fixtures for aihistory tests."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest

from aihistory.config import PathResolver

SESSION_ID = "123e4567-e89b-12d3-a456-426614174000"
OTHER_SESSION_ID = "9b2f6c1e-4d3a-4f5e-8a7b-0c1d2e3f4a5b"

_AIHISTORY_ENV_VARS = (
    "AIHISTORY_CLAUDE_DIR",
    "AIHISTORY_CONVERSATION_GLOB",
    "AIHISTORY_MAX_PROJECTS",
    "AIHISTORY_MAX_FILES_PER_PROJECT",
    "AIHISTORY_MAX_FILE_SIZE_MB",
    "AIHISTORY_USE_CACHE",
    "AIHISTORY_LOG_LEVEL",
)


def write_jsonl(path: Path, lines: list) -> Path:
    """Write JSON lines; str items are written verbatim (for malformed lines)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for line in lines:
            f.write((line if isinstance(line, str) else json.dumps(line)) + "\n")
    return path


def bump_mtime(path: Path, seconds: int = 10) -> None:
    """Move a file's or directory's mtime forward without touching its contents."""
    info = path.stat()
    os.utime(path, ns=(info.st_atime_ns, info.st_mtime_ns + seconds * 1_000_000_000))


class FailingReader:
    """Stands in for an opened source file whose device fails after the first line."""

    def __init__(self, path: Path, first_line: str = "\n"):
        self.path = path
        self.first_line = first_line

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def __iter__(self):
        yield self.first_line
        raise OSError(5, "Input/output error", str(self.path))


class ClaudeDirBuilder:
    """Builds a fake ~/.claude directory: history.jsonl plus projects/<encoded>/agent-*.jsonl."""

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def history_path(self) -> Path:
        return self.root / "history.jsonl"

    @staticmethod
    def prompt(display: str, timestamp: int | str, project: str | None = None, session_id: str = SESSION_ID) -> dict:
        line = {"display": display, "timestamp": timestamp, "sessionId": session_id, "pastedContents": {}}
        if project is not None:
            line["project"] = project
        return line

    @staticmethod
    def message(
        content,
        timestamp: int | str,
        role: str = "user",
        session_id: str = SESSION_ID,
        uuid: str = "msg-1",
    ) -> dict:
        return {
            "type": role,
            "message": {"role": role, "content": content},
            "timestamp": timestamp,
            "sessionId": session_id,
            "uuid": uuid,
        }

    def write_history(self, lines: list) -> Path:
        return write_jsonl(self.history_path, lines)

    def project_dir(self, project_path: str) -> Path:
        return self.root / "projects" / PathResolver.encode_project_dir(project_path)

    def project_id(self, project_path: str) -> str:
        return PathResolver.encode_project_dir(project_path)

    def write_conversation(self, project_path: str, lines: list, name: str = "agent-1.jsonl") -> Path:
        return write_jsonl(self.project_dir(project_path) / name, lines)


@pytest.fixture(autouse=True)
def _isolate_aihistory_env(monkeypatch, tmp_path):
    """Keep tests away from ~/.aihistory, the real cache root and any AIHISTORY_* overrides."""
    data_dir = tmp_path / ".aihistory"
    (data_dir / "config").mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("AIHISTORY_DATA_DIR", str(data_dir))
    monkeypatch.setenv("AIHISTORY_CACHE_DIR", str(tmp_path / "cache-root"))
    for name in _AIHISTORY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces the root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def claude_builder(tmp_path) -> ClaudeDirBuilder:
    return ClaudeDirBuilder(tmp_path / ".claude")


@pytest.fixture
def cache_root(tmp_path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def populated_claude_dir(claude_builder) -> ClaudeDirBuilder:
    """history.jsonl with two prompts and two projects with one conversation each."""
    claude_builder.write_history([
        claude_builder.prompt("first prompt", 1_700_000_000_000, project="/home/user/alpha"),
        claude_builder.prompt("second prompt", 1_700_000_300_000, project="/home/user/beta"),
    ])
    claude_builder.write_conversation("/home/user/alpha", [
        claude_builder.message("alpha question", "2023-11-14T22:14:00.000Z", uuid="a-1"),
        claude_builder.message(
            [{"type": "text", "text": "alpha answer"}],
            "2023-11-14T22:15:00.000Z",
            role="assistant",
            uuid="a-2",
        ),
    ])
    claude_builder.write_conversation("/home/user/beta", [
        claude_builder.message("beta question", "2023-11-14T22:20:00.000Z", uuid="b-1"),
    ])
    return claude_builder
