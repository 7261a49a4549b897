"""Configuration management."""
from aihistory.config.settings import Config
from aihistory.config.path_resolver import PathResolver
from aihistory.config.constants import *

__all__ = [
    "Config",
    "PathResolver",
]
