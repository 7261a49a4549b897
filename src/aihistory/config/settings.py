"""
Configuration management with environment variable and .env support.

Configuration precedence (highest to lowest):
1. Environment variables (AIHISTORY_*)
2. User config file (~/.aihistory/config/settings.toml)
3. Default config file (bundled settings.default.toml)
4. Hardcoded constants (constants.py)
"""

from __future__ import annotations

import os
from typing import overload
from dataclasses import dataclass, fields
from pathlib import Path
import tomli
from dotenv import load_dotenv

from ..core.logging_config import LogConfig
from .constants import (
    DEFAULT_DATA_DIR,
    DEFAULT_CONFIG_SUBDIR,
    SETTINGS_FILE,
    DEFAULT_SETTINGS_FILE,
    ENV_FILE,
    # Defaults
    DEFAULT_CLAUDE_DIR,
    DEFAULT_CONVERSATION_GLOB,
    DEFAULT_MAX_PROJECTS,
    DEFAULT_MAX_FILES_PER_PROJECT,
    DEFAULT_MAX_FILE_SIZE_MB,
    DEFAULT_USE_CACHE,
    # Environment variable names
    ENV_DATA_DIR,
    ENV_CLAUDE_DIR,
    ENV_CACHE_DIR,
    ENV_CONVERSATION_GLOB,
    ENV_MAX_PROJECTS,
    ENV_MAX_FILES_PER_PROJECT,
    ENV_MAX_FILE_SIZE_MB,
    ENV_USE_CACHE,
    ENV_LOG_LEVEL,
    ERROR_NO_CONFIG,
)


# Load .env file at module import time
# Search order: ./.env, ~/.aihistory/.env, ~/.aihistory/config/.env
def _load_env_files():
    """Load .env files from standard locations."""
    env_locations = [
        Path.cwd() / ENV_FILE,  # Project root
        DEFAULT_DATA_DIR / ENV_FILE,  # Data directory
        DEFAULT_DATA_DIR / DEFAULT_CONFIG_SUBDIR / ENV_FILE,  # Config directory
    ]

    for env_path in env_locations:
        if env_path.exists():
            load_dotenv(env_path, override=False)  # Don't override already-set vars


_load_env_files()


@overload
def _get_env_str(key: str, default: str) -> str: ...


@overload
def _get_env_str(key: str, default: None = None) -> str | None: ...


def _get_env_str(key: str, default: str | None = None) -> str | None:
    """Get string value from environment variable. Empty strings are treated as missing."""
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class PathsConfig:
    claude_directory: str
    cache_directory: str

    @classmethod
    def from_dict(cls, data: dict) -> "PathsConfig":
        """Create PathsConfig from dict with environment variable overrides."""
        return cls(
            claude_directory=_get_env_str(
                ENV_CLAUDE_DIR,
                data.get("claude_directory", str(DEFAULT_CLAUDE_DIR))
            ) or str(DEFAULT_CLAUDE_DIR),
            # Empty means "use the platform cache root"
            cache_directory=_get_env_str(
                ENV_CACHE_DIR,
                data.get("cache_directory", "")
            ) or "",
        )


@dataclass
class IndexingConfig:
    conversation_glob: str
    max_projects: int
    max_files_per_project: int
    max_file_size_mb: int
    use_cache: bool

    @classmethod
    def from_dict(cls, data: dict) -> "IndexingConfig":
        """Create IndexingConfig from dict with environment variable overrides."""
        return cls(
            conversation_glob=_get_env_str(
                ENV_CONVERSATION_GLOB,
                data.get("conversation_glob", DEFAULT_CONVERSATION_GLOB)
            ) or DEFAULT_CONVERSATION_GLOB,
            max_projects=_get_env_int(
                ENV_MAX_PROJECTS,
                data.get("max_projects", DEFAULT_MAX_PROJECTS)
            ),
            max_files_per_project=_get_env_int(
                ENV_MAX_FILES_PER_PROJECT,
                data.get("max_files_per_project", DEFAULT_MAX_FILES_PER_PROJECT)
            ),
            max_file_size_mb=_get_env_int(
                ENV_MAX_FILE_SIZE_MB,
                data.get("max_file_size_mb", DEFAULT_MAX_FILE_SIZE_MB)
            ),
            use_cache=_get_env_bool(
                ENV_USE_CACHE,
                data.get("use_cache", DEFAULT_USE_CACHE)
            ),
        )

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


def _log_config_from_dict(data: dict) -> LogConfig:
    known = {f.name for f in fields(LogConfig)}
    values = {key: value for key, value in data.items() if key in known}
    level = _get_env_str(ENV_LOG_LEVEL)
    if level:
        values["level"] = level
    return LogConfig(**values)


@dataclass
class Config:
    paths: PathsConfig
    indexing: IndexingConfig
    logging: LogConfig

    @classmethod
    def load(cls, config_path: Path | None = None) -> "Config":
        """
        Load configuration with proper precedence.

        Precedence (highest to lowest):
        1. Environment variables (AIHISTORY_*)
        2. User config (~/.aihistory/config/settings.toml)
        3. Default config (bundled settings.default.toml)
        4. Hardcoded constants

        Args:
            config_path: Optional explicit config file path

        Returns:
            Loaded Config object

        Raises:
            FileNotFoundError: If an explicit config path does not exist
        """
        default_config = Path(__file__).parent / DEFAULT_SETTINGS_FILE
        if config_path is not None:
            config_files = [config_path]
        else:
            base_data_dir = Path(os.getenv(ENV_DATA_DIR, str(DEFAULT_DATA_DIR))).expanduser()
            user_config = base_data_dir / DEFAULT_CONFIG_SUBDIR / SETTINGS_FILE
            config_files = [user_config, default_config]

        data = None
        for config_file in config_files:
            if config_file.exists():
                with open(config_file, "rb") as f:
                    data = tomli.load(f)
                break

        if data is None:
            if config_path is not None:
                raise FileNotFoundError(
                    ERROR_NO_CONFIG.format(
                        path=config_path,
                        config_dir=DEFAULT_DATA_DIR / DEFAULT_CONFIG_SUBDIR,
                        default_file=default_config,
                        settings_file=SETTINGS_FILE,
                    )
                )
            # Otherwise rely on constants.py
            data = {}

        return cls(
            paths=PathsConfig.from_dict(data.get("paths", {})),
            indexing=IndexingConfig.from_dict(data.get("indexing", {})),
            logging=_log_config_from_dict(data.get("logging", {})),
        )
