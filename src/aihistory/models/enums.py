"""Enumerations for aihistory."""
from __future__ import annotations

from enum import Enum


class EntryType(Enum):
    """Where an indexed entry came from."""
    PROMPT = "prompt"  # user prompt from history.jsonl
    MESSAGE = "message"  # message from a project conversation file
