"""Shared helpers for the JSONL parsers: safe file access, field validation, sanitizing."""
from __future__ import annotations

import os
import re
import stat
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

from aihistory.config.constants import MAX_CONSECUTIVE_ERRORS, MAX_FAILURE_RATE
from aihistory.core.logging_config import get_logger
from aihistory.models import to_utc_millis

logger = get_logger(__name__)

# CSI (ESC [ ... final byte) and OSC (ESC ] ... BEL / ST) escape sequences.
_ANSI_ESCAPE_RE: re.Pattern[str] = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)?",
)
_CONTROL_CHARS_RE: re.Pattern[str] = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


class ParseError(RuntimeError):
    """A source file could not be parsed within the failure-rate contract."""

    def __init__(self, message: str, source: Path | None = None) -> None:
        super().__init__(message)
        self.source = source


class FailureTracker:
    """Counts line failures and enforces the parser failure contract.

    A file fails when 100 consecutive lines fail, or when more than half of its
    non-blank lines fail.
    """

    def __init__(self, source: Path, label: str) -> None:
        self.source = source
        self.label = label
        self.total = 0
        self.failed = 0
        self.consecutive = 0

    def success(self) -> None:
        self.total += 1
        self.consecutive = 0

    def failure(self, line_num: int, error: object) -> None:
        self.total += 1
        self.failed += 1
        self.consecutive += 1
        logger.warning(f"Failed to parse line {line_num} in {self.label}: {error}")
        if self.consecutive >= MAX_CONSECUTIVE_ERRORS:
            raise ParseError(
                f"Too many consecutive parse errors ({self.consecutive}) in {self.label} "
                "- file may be corrupted",
                source=self.source,
            )

    def finish(self, parsed: int) -> None:
        if self.total == 0:
            return
        failure_rate = self.failed / self.total
        if failure_rate > MAX_FAILURE_RATE:
            raise ParseError(
                f"Too many parse failures in {self.label}: {self.failed} of {self.total} "
                f"lines failed ({failure_rate * 100:.1f}%)",
                source=self.source,
            )
        if self.failed:
            logger.warning(f"Parsed {self.label}: {parsed} entries ({self.failed} skipped)")


def safe_open_file(path: Path, max_bytes: int) -> TextIO:
    """
    Open a JSONL source for reading after validating it on the open descriptor.

    Refuses symlinks, non-regular files, files with more than one hard link
    (POSIX only) and files larger than ``max_bytes``.

    Raises:
        ParseError: If the file cannot be opened or fails validation
    """
    nofollow = getattr(os, "O_NOFOLLOW", 0)
    if not nofollow and path.is_symlink():
        raise ParseError(f"{path} is a symbolic link", source=path)
    try:
        fd = os.open(path, os.O_RDONLY | nofollow)
    except OSError as exc:
        raise ParseError(f"Failed to open {path}: {exc}", source=path) from exc

    try:
        info = os.fstat(fd)
        if not stat.S_ISREG(info.st_mode):
            raise ParseError(f"{path} is not a regular file", source=path)
        if info.st_size > max_bytes:
            raise ParseError(
                f"File too large: {path} ({info.st_size} bytes, max {max_bytes} bytes)",
                source=path,
            )
        if os.name == "posix" and info.st_nlink > 1:
            raise ParseError(
                f"{path} has {info.st_nlink} hard links (possible hardlink attack)",
                source=path,
            )
    except BaseException:
        os.close(fd)
        raise
    return os.fdopen(fd, "r", encoding="utf-8", errors="replace")


def parse_timestamp_value(value: object) -> datetime:
    """Parse an epoch-milliseconds integer or an RFC 3339 string into UTC.

    Raises:
        ValueError: If the value is neither, or out of range
    """
    if isinstance(value, bool):
        raise ValueError("timestamp must be a number or string")
    if isinstance(value, int):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValueError("timestamp out of range") from exc
        return to_utc_millis(parsed)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValueError(f"invalid RFC3339 timestamp: {value!r}") from exc
        if parsed.tzinfo is None:
            raise ValueError(f"timestamp has no UTC offset: {value!r}")
        return to_utc_millis(parsed)
    raise ValueError("timestamp must be a number or string")


def validate_session_id(value: object) -> str:
    """Return ``value`` if it is a non-empty UUID string.

    Raises:
        ValueError: If the session ID is missing, empty or not a UUID
    """
    if not isinstance(value, str):
        raise ValueError("session ID must be a string")
    if not value:
        raise ValueError("session ID cannot be empty")
    try:
        uuid.UUID(value)
    except ValueError as exc:
        raise ValueError(f"invalid UUID format for session ID: {value!r}") from exc
    return value


def require_utf8(value: str, field: str) -> str:
    """Return ``value`` if it encodes to UTF-8.

    JSON ``\\uXXXX`` escapes can decode to lone surrogates, which no UTF-8 writer accepts.

    Raises:
        ValueError: If the string holds a lone surrogate
    """
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ValueError(f"{field} is not valid UTF-8 (lone surrogate at offset {exc.start})") from exc
    return value


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI escape sequences and control characters other than tab, CR and LF."""
    return _CONTROL_CHARS_RE.sub("", _ANSI_ESCAPE_RE.sub("", text))


def truncate_utf8(text: str, max_bytes: int) -> tuple[str, bool]:
    """Truncate ``text`` to at most ``max_bytes`` UTF-8 bytes on a character boundary."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text, False
    return encoded[:max_bytes].decode("utf-8", errors="ignore"), True
