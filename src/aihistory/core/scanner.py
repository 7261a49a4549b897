from __future__ import annotations

from pathlib import Path

from aihistory.config.constants import (
    DEFAULT_CONVERSATION_GLOB,
    DEFAULT_MAX_FILES_PER_PROJECT,
    DEFAULT_MAX_PROJECTS,
    HISTORY_FILENAME,
)
from aihistory.core.discovery import discover_projects
from aihistory.core.logging_config import get_logger
from aihistory.models import (
    HistoryFingerprint,
    ProjectFingerprint,
    ProjectInfo,
    SourceFingerprints,
)

logger = get_logger(__name__)


class SourceScanner:
    """
    Computes freshness fingerprints for every source under a Claude directory.

    Only file system metadata is read: history.jsonl is fingerprinted by mtime and
    size, each project by its directory mtime, conversation file count and the
    newest conversation file mtime. File contents are never read or hashed, so an
    edit that preserves all of these goes unnoticed.
    """

    def __init__(
        self,
        claude_dir: Path,
        conversation_glob: str = DEFAULT_CONVERSATION_GLOB,
        max_projects: int = DEFAULT_MAX_PROJECTS,
        max_files_per_project: int = DEFAULT_MAX_FILES_PER_PROJECT,
    ):
        self.claude_dir = Path(claude_dir)
        self.conversation_glob = conversation_glob
        self.max_projects = max_projects
        self.max_files_per_project = max_files_per_project

    @property
    def history_path(self) -> Path:
        return self.claude_dir / HISTORY_FILENAME

    def scan(self) -> SourceFingerprints:
        """
        Fingerprint history.jsonl and every discovered project.

        Projects that cannot be listed or stat'ed are logged and left out.

        Raises:
            DiscoveryError: If the projects directory is over the project limit
        """
        projects = discover_projects(
            self.claude_dir,
            conversation_glob=self.conversation_glob,
            max_projects=self.max_projects,
            max_files_per_project=self.max_files_per_project,
        )

        fingerprints: dict[str, ProjectFingerprint] = {}
        infos: dict[str, ProjectInfo] = {}
        for project in projects:
            fingerprint = self.fingerprint_project(project)
            if fingerprint is None:
                continue
            fingerprints[project.project_id] = fingerprint
            infos[project.project_id] = project

        return SourceFingerprints(
            history=self.fingerprint_history(),
            projects=fingerprints,
            project_infos=infos,
        )

    def fingerprint_history(self) -> HistoryFingerprint | None:
        """Return the history.jsonl fingerprint, or None if the file is absent or unreadable."""
        try:
            info = self.history_path.stat()
        except FileNotFoundError:
            logger.debug(f"No history file at {self.history_path}")
            return None
        except OSError as exc:
            logger.warning(f"Cannot stat history file {self.history_path}: {exc}")
            return None
        return HistoryFingerprint(mtime_ns=info.st_mtime_ns, size=info.st_size)

    def fingerprint_project(self, project: ProjectInfo) -> ProjectFingerprint | None:
        try:
            dir_mtime_ns = project.project_dir.stat().st_mtime_ns
            newest = max(
                (path.lstat().st_mtime_ns for path in project.conversation_files),
                default=0,
            )
        except OSError as exc:
            logger.warning(f"Excluding project {project.project_id} from this run: {exc}")
            return None
        return ProjectFingerprint(
            dir_mtime_ns=dir_mtime_ns,
            file_count=len(project.conversation_files),
            newest_file_mtime_ns=newest,
        )
