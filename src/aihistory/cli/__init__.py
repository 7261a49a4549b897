"""Command line entry point: ``aihistory <command> [options]``."""
from __future__ import annotations

import sys

USAGE = """Usage: aihistory <command> [options]

Commands:
  stats    Build the index (incrementally, through the cache) and show statistics
  cache    Inspect or clear the index cache (cache path | cache clear)

Options:
  --version   Show the version and exit
  -h, --help  Show this message and exit
"""


def main(argv: list[str] | None = None) -> int:
    """Dispatch to a subcommand. Returns the process exit code."""
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        print(USAGE)
        return 0 if argv else 2
    if argv[0] == "--version":
        from aihistory import __version__

        print(__version__)
        return 0

    command, rest = argv[0], argv[1:]
    if command == "stats":
        from aihistory.cli.stats_cmd import run_stats

        return run_stats(rest)
    if command == "cache":
        from aihistory.cli.cache_cmd import run_cache

        return run_cache(rest)

    print(f"aihistory: unknown command '{command}'\n", file=sys.stderr)
    print(USAGE, file=sys.stderr)
    return 2


__all__ = ["main"]
