"""JSONL parsers for Claude Code history and conversation files.

Malformed lines are logged and skipped. A file is rejected with ``ParseError``
when more than half of its lines fail or 100 consecutive lines fail.
"""
from .utils import ParseError, strip_ansi_codes
from .history import parse_history_file
from .conversation import extract_text_from_content, parse_conversation_file, parse_project

__all__ = [
    "ParseError",
    "strip_ansi_codes",
    "parse_history_file",
    "extract_text_from_content",
    "parse_conversation_file",
    "parse_project",
]
