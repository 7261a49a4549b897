"""
Cross-platform path resolution for aihistory.

Resolves:
- The Claude Code data directory (~/.claude by default)
- The per-user cache root (one fixed location per operating system)
- Claude's encoded project directory names (-Users%2Ffoo%2Fbar <-> /Users/foo/bar)
"""

import os
import sys
from pathlib import Path, PurePosixPath
from urllib.parse import quote, unquote

from .constants import (
    APP_NAME,
    ENV_CACHE_DIR,
    MACOS_CACHE_SUBDIR,
    WINDOWS_CACHE_SUBDIR,
    XDG_CACHE_FALLBACK_SUBDIR,
)

# Characters left unescaped when encoding a project path (RFC 3986 unreserved set
# plus the few punctuation marks Claude leaves alone).
_PROJECT_SAFE_CHARS = "-._~$&'()*+,;="


class PathResolver:
    """Resolves and translates paths across different platforms."""

    @staticmethod
    def expand_path_template(path: str) -> str:
        """
        Expand path templates with environment variables.

        Supports:
        - {username} -> current username
        - {home} -> user home directory
        - Environment variables: $VAR or ${VAR}

        Args:
            path: Path template string

        Returns:
            Expanded path string
        """
        path = path.replace("{username}", os.getenv("USERNAME") or os.getenv("USER") or "unknown")
        path = path.replace("{home}", str(Path.home()))
        path = os.path.expanduser(path)
        path = os.path.expandvars(path)
        return path

    @staticmethod
    def detect_platform() -> str:
        """
        Detect the current platform.

        Returns:
            One of: "windows", "wsl", "linux", "macos", "unknown"
        """
        if sys.platform == "win32":
            return "windows"
        elif sys.platform == "darwin":
            return "macos"
        elif sys.platform.startswith("linux"):
            if PathResolver._is_wsl():
                return "wsl"
            return "linux"
        return "unknown"

    @staticmethod
    def _is_wsl() -> bool:
        """Check if running under WSL."""
        try:
            with open("/proc/version", "r") as f:
                return "microsoft" in f.read().lower()
        except (FileNotFoundError, PermissionError):
            return False

    @staticmethod
    def get_claude_dir(config=None) -> Path:
        """
        Get the Claude Code data directory.

        Args:
            config: Optional Config object

        Returns:
            Path to the Claude directory (may not exist)
        """
        if config is None:
            from aihistory.config import Config
            config = Config.load()
        return Path(PathResolver.expand_path_template(config.paths.claude_directory))

    @staticmethod
    def get_cache_root(config=None) -> Path:
        """
        Get the cache root directory shared by every cache namespace.

        Checks in order:
        1. Environment variable (AIHISTORY_CACHE_DIR)
        2. Config file setting (paths.cache_directory)
        3. Platform default:
           - macOS: ~/Library/Caches/aihistory
           - Linux/WSL: $XDG_CACHE_HOME/aihistory or ~/.cache/aihistory
           - Windows: %LOCALAPPDATA%\\aihistory\\cache

        The directory is not created here.
        """
        env_dir = os.getenv(ENV_CACHE_DIR)
        if env_dir:
            return Path(PathResolver.expand_path_template(env_dir))

        if config is not None and config.paths.cache_directory:
            return Path(PathResolver.expand_path_template(config.paths.cache_directory))

        current_platform = PathResolver.detect_platform()
        if current_platform == "macos":
            return Path.home() / MACOS_CACHE_SUBDIR / APP_NAME
        if current_platform == "windows":
            local_app_data = os.getenv("LOCALAPPDATA")
            base = Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"
            return base / APP_NAME / WINDOWS_CACHE_SUBDIR

        xdg_cache = os.getenv("XDG_CACHE_HOME")
        if xdg_cache and os.path.isabs(xdg_cache):
            return Path(xdg_cache) / APP_NAME
        return Path.home() / XDG_CACHE_FALLBACK_SUBDIR / APP_NAME

    @staticmethod
    def encode_project_dir(path: str | Path) -> str:
        """Encode a filesystem path into Claude's project directory name format."""
        path_str = str(path)
        without_leading_slash = path_str[1:] if path_str.startswith("/") else path_str
        return "-" + quote(without_leading_slash, safe=_PROJECT_SAFE_CHARS)

    @staticmethod
    def decode_project_dir(encoded: str) -> str:
        """Decode Claude's project directory name format back to a filesystem path."""
        without_prefix = encoded[1:] if encoded.startswith("-") else encoded
        return "/" + unquote(without_prefix, errors="replace")

    @staticmethod
    def validate_project_path(path: str) -> None:
        """
        Reject project paths that are relative or contain '..' components.

        Raises:
            ValueError: If the path is unsafe
        """
        pure = PurePosixPath(path)
        if ".." in pure.parts:
            raise ValueError(f"Path contains '..' component: {path}")
        if not pure.is_absolute():
            raise ValueError(f"Path must be absolute: {path}")

    @staticmethod
    def format_path_with_tilde(path: Path) -> str:
        """Replace the home directory prefix with '~' for display."""
        home = Path.home()
        try:
            relative = path.relative_to(home)
        except ValueError:
            return str(path)
        return str(Path("~") / relative)

    @staticmethod
    def ensure_directory(path: Path) -> Path:
        """
        Ensure a directory exists, creating it if necessary.

        Args:
            path: Directory path to ensure

        Returns:
            The path object

        Raises:
            PermissionError: If directory cannot be created
        """
        path.mkdir(parents=True, exist_ok=True)
        return path
