"""CLI command: aihistory stats - build the index and summarize it."""
from __future__ import annotations

import argparse

from rich.console import Console
from rich.table import Table

from aihistory.cli.common import add_claude_dir_argument, resolve_claude_dir


def run_stats(argv: list[str]) -> int:
    """Entry point for `aihistory stats`."""
    parser = argparse.ArgumentParser(
        prog="aihistory stats",
        description="Build the history index through the cache and show statistics.",
    )
    add_claude_dir_argument(parser)
    parser.add_argument(
        "--no-cache",
        action="store_true",
        default=False,
        help="Ignore the cached index and re-parse every source (the cache is still refreshed)",
    )
    args = parser.parse_args(argv)

    console = Console()

    from aihistory.config import Config, PathResolver
    from aihistory.config.constants import ENV_CLAUDE_DIR, ERROR_NO_CLAUDE_DIR
    from aihistory.core.discovery import DiscoveryError
    from aihistory.core.indexer import HistoryIndexer
    from aihistory.core.logging_config import setup_logging
    from aihistory.core.reconciler import IndexBuildError

    config = Config.load()
    setup_logging(config.logging)

    claude_dir = resolve_claude_dir(config, args.claude_dir)
    if not claude_dir.is_dir():
        console.print(f"[red]{ERROR_NO_CLAUDE_DIR.format(path=claude_dir, env_var=ENV_CLAUDE_DIR).strip()}[/red]")
        return 1

    use_cache = config.indexing.use_cache and not args.no_cache
    indexer = HistoryIndexer(claude_dir, config)
    try:
        result = indexer.build(use_cache=use_cache)
    except (IndexBuildError, DiscoveryError) as e:
        console.print(f"[red]Index build failed: {e}[/red]")
        return 1

    stats = result.stats
    entries = result.entries

    table = Table(title="History Index", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Claude directory", PathResolver.format_path_with_tilde(claude_dir))
    table.add_row("Total entries", str(stats.total_entries))
    table.add_row("Prompts", str(stats.prompt_entries))
    table.add_row("Messages", str(stats.message_entries))
    table.add_row("Projects", str(len(result.metadata.projects)))
    if entries:
        # entries are newest first
        table.add_row("Newest", entries[0].timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"))
        table.add_row("Oldest", entries[-1].timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"))
    console.print(table)

    if not use_cache:
        cache_line = "bypassed"
    elif result.cache_loaded:
        cache_line = "loaded"
    else:
        cache_line = "rebuilt"
    console.print(
        f"Cache: {cache_line}"
        f"{'' if result.cache_saved else ' [yellow](not saved)[/yellow]'}"
    )
    console.print(f"History: {'re-parsed' if stats.history_reparsed else 'reused'}")
    console.print(
        f"Projects: {stats.projects_reused} reused, {stats.projects_reparsed} re-parsed, "
        f"{stats.projects_failed} failed, {stats.projects_dropped} dropped"
    )
    console.print(f"[dim]Indexed in {stats.index_time_seconds:.2f}s[/dim]")
    return 0
