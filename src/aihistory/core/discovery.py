"""Enumerate Claude Code project directories and their conversation files."""
from __future__ import annotations

from pathlib import Path

from aihistory.config import PathResolver
from aihistory.config.constants import (
    CLAUDE_PROJECTS_SUBDIR,
    DEFAULT_CONVERSATION_GLOB,
    DEFAULT_MAX_FILES_PER_PROJECT,
    DEFAULT_MAX_PROJECTS,
)
from aihistory.core.logging_config import get_logger
from aihistory.core.parsers.utils import require_utf8
from aihistory.models import ProjectInfo

logger = get_logger(__name__)


class DiscoveryError(RuntimeError):
    """The projects directory holds more projects than the configured limit."""


def _list_project_dirs(projects_dir: Path) -> list[Path]:
    try:
        children = sorted(projects_dir.iterdir(), key=lambda p: p.name)
    except FileNotFoundError:
        return []
    except OSError as exc:
        logger.warning(f"Cannot read projects directory {projects_dir}: {exc}")
        return []

    project_dirs: list[Path] = []
    for child in children:
        if child.is_symlink():
            logger.warning(f"Skipping symlinked project directory: {child}")
            continue
        if child.is_dir():
            project_dirs.append(child)
    return project_dirs


def list_conversation_files(
    project_dir: Path,
    conversation_glob: str = DEFAULT_CONVERSATION_GLOB,
) -> list[Path]:
    """
    Return the project's conversation files sorted by name, skipping symlinks.

    Raises:
        OSError: If the project directory cannot be listed
    """
    files: list[Path] = []
    for path in sorted(project_dir.glob(conversation_glob)):
        if path.is_symlink():
            logger.warning(f"Skipping symlinked conversation file: {path}")
            continue
        if path.is_file():
            files.append(path)
    return files


def discover_projects(
    claude_dir: Path,
    conversation_glob: str = DEFAULT_CONVERSATION_GLOB,
    max_projects: int = DEFAULT_MAX_PROJECTS,
    max_files_per_project: int = DEFAULT_MAX_FILES_PER_PROJECT,
) -> list[ProjectInfo]:
    """
    Discover the projects under ``<claude_dir>/projects``.

    A missing projects directory yields no projects. Projects whose name is not
    valid UTF-8 or does not decode to a safe absolute path, that cannot be listed, or that hold more than
    ``max_files_per_project`` conversation files are logged and skipped.

    Returns:
        ProjectInfo list ordered by encoded directory name

    Raises:
        DiscoveryError: If there are more than ``max_projects`` project directories
    """
    projects_dir = claude_dir / CLAUDE_PROJECTS_SUBDIR
    project_dirs = _list_project_dirs(projects_dir)

    if len(project_dirs) > max_projects:
        raise DiscoveryError(
            f"Too many projects in {projects_dir}: {len(project_dirs)} (max {max_projects})"
        )

    projects: list[ProjectInfo] = []
    for project_dir in project_dirs:
        project_id = project_dir.name
        decoded_path = PathResolver.decode_project_dir(project_id)
        try:
            require_utf8(project_id, "project directory name")
            PathResolver.validate_project_path(decoded_path)
        except ValueError as exc:
            logger.warning(f"Skipping project {project_id}: {exc}")
            continue

        try:
            conversation_files = list_conversation_files(project_dir, conversation_glob)
        except OSError as exc:
            logger.warning(f"Cannot list project {project_id}: {exc}")
            continue

        if len(conversation_files) > max_files_per_project:
            logger.warning(
                f"Skipping project {project_id}: {len(conversation_files)} conversation files "
                f"(max {max_files_per_project})"
            )
            continue

        projects.append(
            ProjectInfo(
                project_id=project_id,
                decoded_path=decoded_path,
                project_dir=project_dir,
                conversation_files=tuple(conversation_files),
            )
        )

    logger.debug(f"Discovered {len(projects)} projects in {projects_dir}")
    return projects
