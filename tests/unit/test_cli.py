"""Unit tests for the aihistory command line (stats and cache commands)."""
from __future__ import annotations

import pytest

from aihistory.cli import main
from aihistory.core.namespace import CacheDirectoryResolver
from aihistory.core.parsers import ParseError


@pytest.fixture(autouse=True)
def _wide_console(monkeypatch):
    monkeypatch.setenv("COLUMNS", "200")


class TestDispatch:
    def test_help(self, capsys):
        assert main(["--help"]) == 0
        assert "Usage: aihistory" in capsys.readouterr().out

    def test_no_arguments_prints_usage(self, capsys):
        assert main([]) == 2
        assert "Commands:" in capsys.readouterr().out

    def test_version(self, capsys):
        from aihistory import __version__

        assert main(["--version"]) == 0
        assert capsys.readouterr().out.strip() == __version__

    def test_unknown_command(self, capsys):
        assert main(["search"]) == 2
        assert "unknown command 'search'" in capsys.readouterr().err

    def test_stats_unknown_flag_exits_nonzero(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["stats", "--unknown-flag"])

        assert exc_info.value.code != 0


class TestStatsCommand:
    def test_first_run_rebuilds(self, populated_claude_dir, capsys):
        code = main(["stats", "--claude-dir", str(populated_claude_dir.root)])

        out = capsys.readouterr().out
        assert code == 0
        assert "History Index" in out
        assert "Total entries" in out
        assert "Cache: rebuilt" in out
        assert "History: re-parsed" in out
        assert "Projects: 0 reused, 2 re-parsed, 0 failed, 0 dropped" in out
        assert "2023-11-14 22:20:00 UTC" in out
        assert "2023-11-14 22:13:20 UTC" in out

    def test_second_run_loads_cache(self, populated_claude_dir, capsys):
        main(["stats", "--claude-dir", str(populated_claude_dir.root)])
        capsys.readouterr()

        code = main(["stats", "--claude-dir", str(populated_claude_dir.root)])

        out = capsys.readouterr().out
        assert code == 0
        assert "Cache: loaded" in out
        assert "History: reused" in out
        assert "Projects: 2 reused, 0 re-parsed" in out

    def test_no_cache_bypasses(self, populated_claude_dir, capsys):
        main(["stats", "--claude-dir", str(populated_claude_dir.root)])
        capsys.readouterr()

        code = main(["stats", "--no-cache", "--claude-dir", str(populated_claude_dir.root)])

        out = capsys.readouterr().out
        assert code == 0
        assert "Cache: bypassed" in out
        assert "History: re-parsed" in out

    def test_missing_claude_dir(self, tmp_path, capsys):
        code = main(["stats", "--claude-dir", str(tmp_path / "nowhere")])

        assert code == 1
        assert "Claude directory not found" in capsys.readouterr().out

    def test_history_parse_failure_exits_1(self, populated_claude_dir, monkeypatch, capsys):
        import aihistory.core.indexer as indexer_module

        def broken(path, max_bytes):
            raise ParseError("every line is malformed", source=path)

        monkeypatch.setattr(indexer_module, "parse_history_file", broken)

        code = main(["stats", "--claude-dir", str(populated_claude_dir.root)])

        assert code == 1
        assert "Index build failed" in capsys.readouterr().out

    def test_too_many_projects_exits_1(self, populated_claude_dir, monkeypatch, capsys):
        monkeypatch.setenv("AIHISTORY_MAX_PROJECTS", "1")

        code = main(["stats", "--claude-dir", str(populated_claude_dir.root)])

        assert code == 1
        assert "Too many projects" in capsys.readouterr().out


class TestCacheCommand:
    def test_path(self, claude_builder, tmp_path, capsys):
        expected = CacheDirectoryResolver(tmp_path / "cache-root").resolve(claude_builder.root)

        code = main(["cache", "path", "--claude-dir", str(claude_builder.root)])

        assert code == 0
        assert capsys.readouterr().out.strip() == str(expected.directory)

    def test_clear_after_build(self, populated_claude_dir, capsys):
        main(["stats", "--claude-dir", str(populated_claude_dir.root)])
        capsys.readouterr()

        assert main(["cache", "clear", "--claude-dir", str(populated_claude_dir.root)]) == 0
        assert "Removed 2 cache file(s)" in capsys.readouterr().out

        assert main(["cache", "clear", "--claude-dir", str(populated_claude_dir.root)]) == 0
        assert "Cache already empty" in capsys.readouterr().out

    def test_clear_then_stats_rebuilds(self, populated_claude_dir, capsys):
        main(["stats", "--claude-dir", str(populated_claude_dir.root)])
        main(["cache", "clear", "--claude-dir", str(populated_claude_dir.root)])
        capsys.readouterr()

        main(["stats", "--claude-dir", str(populated_claude_dir.root)])

        assert "Cache: rebuilt" in capsys.readouterr().out

    def test_action_required(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["cache"])

        assert exc_info.value.code != 0
