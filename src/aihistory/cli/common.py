"""Helpers shared by the CLI commands."""
from __future__ import annotations

import argparse
from pathlib import Path

from aihistory.config import Config, PathResolver


def add_claude_dir_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--claude-dir",
        type=Path,
        default=None,
        help="Claude Code data directory (default: from config, ~/.claude)",
    )


def resolve_claude_dir(config: Config, override: Path | None) -> Path:
    if override is not None:
        return Path(PathResolver.expand_path_template(str(override))).absolute()
    return PathResolver.get_claude_dir(config).absolute()
