"""
Constants and default values for aihistory.

Centralizes magic numbers and strings to improve maintainability.
"""

from pathlib import Path

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "aihistory"
CONFIG_DIR_NAME = ".aihistory"

# ============================================================================
# Path Defaults
# ============================================================================

# Claude Code keeps its history under ~/.claude
CLAUDE_DIR_NAME = ".claude"
CLAUDE_PROJECTS_SUBDIR = "projects"
HISTORY_FILENAME = "history.jsonl"
DEFAULT_CLAUDE_DIR = Path.home() / CLAUDE_DIR_NAME

DEFAULT_DATA_DIR = Path.home() / CONFIG_DIR_NAME
DEFAULT_CONFIG_SUBDIR = "config"
DEFAULT_LOGS_SUBDIR = "logs"

# Config file names
SETTINGS_FILE = "settings.toml"
DEFAULT_SETTINGS_FILE = "settings.default.toml"
ENV_FILE = ".env"

# ============================================================================
# Cache Layout
# ============================================================================

# Bump whenever the metadata document or the entry blob changes shape.
CACHE_VERSION = 2
METADATA_FILENAME = "index-metadata.json"
INDEX_FILENAME = "search-index.parquet"
TEMP_SUFFIX = ".tmp"
NAMESPACE_HASH_LENGTH = 12

# Platform cache roots, relative to the user's home unless overridden by env
MACOS_CACHE_SUBDIR = Path("Library") / "Caches"
XDG_CACHE_FALLBACK_SUBDIR = ".cache"
WINDOWS_CACHE_SUBDIR = "cache"

# ============================================================================
# Indexing Defaults
# ============================================================================

DEFAULT_CONVERSATION_GLOB = "agent-*.jsonl"
DEFAULT_MAX_PROJECTS = 1000
DEFAULT_MAX_FILES_PER_PROJECT = 1000
DEFAULT_MAX_FILE_SIZE_MB = 10
DEFAULT_USE_CACHE = True

# Parser failure contract
MAX_FAILURE_RATE = 0.5
MAX_CONSECUTIVE_ERRORS = 100

# Content truncation limits (bytes)
MAX_THINKING_CONTENT = 1024
MAX_TOOL_CONTENT = 4096

# ============================================================================
# Environment Variable Names
# ============================================================================

ENV_DATA_DIR = "AIHISTORY_DATA_DIR"
ENV_CLAUDE_DIR = "AIHISTORY_CLAUDE_DIR"
ENV_CACHE_DIR = "AIHISTORY_CACHE_DIR"
ENV_CONVERSATION_GLOB = "AIHISTORY_CONVERSATION_GLOB"
ENV_MAX_PROJECTS = "AIHISTORY_MAX_PROJECTS"
ENV_MAX_FILES_PER_PROJECT = "AIHISTORY_MAX_FILES_PER_PROJECT"
ENV_MAX_FILE_SIZE_MB = "AIHISTORY_MAX_FILE_SIZE_MB"
ENV_USE_CACHE = "AIHISTORY_USE_CACHE"
ENV_LOG_LEVEL = "AIHISTORY_LOG_LEVEL"

# ============================================================================
# Error Messages
# ============================================================================

ERROR_NO_CONFIG = """
Configuration file not found: {path}

Copy the bundled defaults to create one:
    mkdir -p {config_dir}
    cp {default_file} {config_dir}/{settings_file}
"""

ERROR_NO_CLAUDE_DIR = """
Claude directory not found: {path}

Make sure Claude Code has been used on this machine, or point aihistory
at the right location with --claude-dir or {env_var}.
"""
