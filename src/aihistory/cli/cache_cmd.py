"""CLI command: aihistory cache - show or clear the index cache of a Claude directory."""
from __future__ import annotations

import argparse

from rich.console import Console

from aihistory.cli.common import add_claude_dir_argument, resolve_claude_dir


def run_cache(argv: list[str]) -> int:
    """Entry point for `aihistory cache`."""
    parser = argparse.ArgumentParser(
        prog="aihistory cache",
        description="Inspect or clear the cached index of a Claude directory.",
    )
    subparsers = parser.add_subparsers(dest="action", required=True)
    path_parser = subparsers.add_parser("path", help="Print the cache directory")
    add_claude_dir_argument(path_parser)
    clear_parser = subparsers.add_parser("clear", help="Delete the cached index")
    add_claude_dir_argument(clear_parser)
    args = parser.parse_args(argv)

    console = Console()

    from aihistory.config import Config
    from aihistory.core.indexer import HistoryIndexer
    from aihistory.core.logging_config import setup_logging

    config = Config.load()
    setup_logging(config.logging)

    indexer = HistoryIndexer(resolve_claude_dir(config, args.claude_dir), config)
    try:
        namespace = indexer.resolve_namespace()
    except (OSError, ValueError) as e:
        console.print(f"[red]Cache unavailable: {e}[/red]")
        return 1

    if args.action == "path":
        console.print(str(namespace.directory), soft_wrap=True)
        return 0

    removed = indexer.clear_cache()
    if removed:
        console.print(f"[green]Removed {len(removed)} cache file(s) from {namespace.directory}[/green]")
    else:
        console.print(f"Cache already empty: {namespace.directory}")
    return 0
