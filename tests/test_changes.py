"""Tests for riskreview.engine.changes — numstat parsing, merging, git access."""

from __future__ import annotations

import subprocess

import pytest

from riskreview.engine.changes import (
    ChangeSetAnalyzer,
    FileChange,
    list_changed_paths,
    merge_changes,
    parse_numstat,
    resolve_rename_path,
)
from riskreview.errors import ChangeSetError


class FakeGit:
    """Returns canned numstat output keyed on whether --staged was passed."""

    def __init__(self, staged: str = "", unstaged: str = "", ranged: str = ""):
        self.staged = staged
        self.unstaged = unstaged
        self.ranged = ranged
        self.calls: list[list[str]] = []

    def __call__(self, args, *, cwd):
        self.calls.append(list(args))
        if "--staged" in args:
            return self.staged
        if args[2] != "--numstat":
            return self.ranged
        return self.unstaged


# ===========================================================================
# resolve_rename_path
# ===========================================================================

class TestResolveRenamePath:
    def test_brace_rename(self):
        assert resolve_rename_path("src/{old.ts => new.ts}") == "src/new.ts"

    def test_brace_rename_with_suffix(self):
        assert resolve_rename_path("src/{a => b}/index.ts") == "src/b/index.ts"

    def test_brace_rename_into_new_directory(self):
        assert resolve_rename_path("src/{ => nested}/x.ts") == "src/nested/x.ts"

    def test_plain_rename(self):
        assert resolve_rename_path("old.ts => new.ts") == "new.ts"

    def test_plain_path_unchanged(self):
        assert resolve_rename_path("src/app.ts") == "src/app.ts"


# ===========================================================================
# parse_numstat
# ===========================================================================

class TestParseNumstat:
    def test_basic_line(self):
        [change] = parse_numstat("3\t1\tsrc/app.ts\n")
        assert change == FileChange("src/app.ts", 3, 1)
        assert change.lines_changed == 4

    def test_binary_counts_as_zero(self):
        [change] = parse_numstat("-\t-\tbinary.png")
        assert change.lines_added == 0
        assert change.lines_deleted == 0
        assert change.lines_changed == 0

    def test_rename_resolved(self):
        [change] = parse_numstat("5\t2\tsrc/{old.ts => new.ts}")
        assert change.path == "src/new.ts"

    def test_malformed_lines_skipped(self):
        output = "garbage line\n1\t2\n4\t0\tok.ts\nx\ty\tbad.ts\n"
        changes = parse_numstat(output)
        assert [c.path for c in changes] == ["ok.ts"]

    def test_blank_output(self):
        assert parse_numstat("") == []
        assert parse_numstat("\n\n") == []

    def test_leading_dot_slash_stripped(self):
        [change] = parse_numstat("1\t1\t./src/a.ts")
        assert change.path == "src/a.ts"

    def test_lines_changed_invariant(self):
        for change in parse_numstat("3\t1\ta.ts\n0\t9\tb.ts\n-\t-\tc.bin\n12\t0\td.ts"):
            assert change.lines_changed == change.lines_added + change.lines_deleted


# ===========================================================================
# merge_changes
# ===========================================================================

class TestMergeChanges:
    def test_same_path_summed(self):
        merged = merge_changes([FileChange("a.ts", 3, 1), FileChange("a.ts", 2, 0)])
        assert merged == [FileChange("a.ts", 5, 1)]
        assert merged[0].lines_changed == 6

    def test_first_seen_order_kept(self):
        merged = merge_changes([
            FileChange("b.ts", 1, 0),
            FileChange("a.ts", 1, 0),
            FileChange("b.ts", 1, 1),
        ])
        assert [c.path for c in merged] == ["b.ts", "a.ts"]

    def test_to_dict_uses_camel_case(self):
        assert FileChange("a.ts", 2, 1).to_dict() == {
            "path": "a.ts",
            "linesAdded": 2,
            "linesDeleted": 1,
            "linesChanged": 3,
        }


# ===========================================================================
# ChangeSetAnalyzer
# ===========================================================================

class TestChangeSetAnalyzer:
    def test_staged_and_unstaged_merged(self, tmp_path):
        git = FakeGit(staged="3\t1\tsrc/a.ts\n", unstaged="2\t0\tsrc/a.ts\n1\t1\tsrc/b.ts\n")
        changes = ChangeSetAnalyzer(tmp_path, runner=git).get_changed_files()
        assert changes == [FileChange("src/a.ts", 5, 1), FileChange("src/b.ts", 1, 1)]

    def test_deletions_filtered_in_git_query(self, tmp_path):
        git = FakeGit()
        ChangeSetAnalyzer(tmp_path, runner=git).get_changed_files()
        assert len(git.calls) == 2
        for call in git.calls:
            assert call[0] == "git"
            assert "--diff-filter=d" in call
            assert "--numstat" in call

    def test_paths_become_pathspec(self, tmp_path):
        git = FakeGit()
        ChangeSetAnalyzer(tmp_path, runner=git).get_changed_files(["src/a.ts"])
        assert all(call[-2:] == ["--", "src/a.ts"] for call in git.calls)

    def test_base_uses_single_listing(self, tmp_path):
        git = FakeGit(ranged="4\t4\tsrc/a.ts\n")
        changes = ChangeSetAnalyzer(tmp_path, runner=git).get_changed_files(base="HEAD~2")
        assert len(git.calls) == 1
        assert git.calls[0][:3] == ["git", "diff", "HEAD~2"]
        assert changes == [FileChange("src/a.ts", 4, 4)]

    def test_missing_git_raises_change_set_error(self, tmp_path):
        def runner(args, *, cwd):
            raise FileNotFoundError("git")

        with pytest.raises(ChangeSetError, match="git executable not found"):
            ChangeSetAnalyzer(tmp_path, runner=runner).get_changed_files()

    def test_git_failure_chains_cause(self, tmp_path):
        def runner(args, *, cwd):
            raise subprocess.CalledProcessError(128, args, stderr="fatal: not a git repository")

        with pytest.raises(ChangeSetError, match="not a git repository") as excinfo:
            ChangeSetAnalyzer(tmp_path, runner=runner).get_changed_files()
        assert isinstance(excinfo.value.__cause__, subprocess.CalledProcessError)

    def test_default_runner_uses_subprocess(self, tmp_path):
        completed = subprocess.CompletedProcess([], 0, stdout="1\t0\ta.ts\n", stderr="")
        with pytest.MonkeyPatch.context() as mp:
            calls = []

            def fake_run(args, **kwargs):
                calls.append((args, kwargs))
                return completed

            mp.setattr(subprocess, "run", fake_run)
            changes = ChangeSetAnalyzer(tmp_path).get_changed_files()
        assert changes == [FileChange("a.ts", 2, 0)]
        assert calls[0][1]["cwd"] == str(tmp_path)
        assert calls[0][1]["check"] is True


class TestChangeStatsFor:
    def test_unmodified_file_gets_zero_entry(self, tmp_path):
        git = FakeGit(unstaged="2\t1\tsrc/a.ts\n")
        stats = ChangeSetAnalyzer(tmp_path, runner=git).change_stats_for(["src/a.ts", "src/b.ts"])
        assert stats == [FileChange("src/a.ts", 2, 1), FileChange("src/b.ts", 0, 0)]

    def test_directory_argument_expands(self, tmp_path):
        (tmp_path / "src").mkdir()
        git = FakeGit(unstaged="2\t1\tsrc/a.ts\n1\t0\tsrc/b.ts\n")
        stats = ChangeSetAnalyzer(tmp_path, runner=git).change_stats_for(["src"])
        assert [s.path for s in stats] == ["src/a.ts", "src/b.ts"]

    def test_empty_request(self, tmp_path):
        git = FakeGit()
        assert ChangeSetAnalyzer(tmp_path, runner=git).change_stats_for([]) == []
        assert git.calls == []

    def test_duplicate_requests_collapsed(self, tmp_path):
        git = FakeGit(unstaged="1\t1\ta.ts\n")
        stats = ChangeSetAnalyzer(tmp_path, runner=git).change_stats_for(["a.ts", "./a.ts"])
        assert stats == [FileChange("a.ts", 1, 1)]


def test_list_changed_paths(tmp_path):
    git = FakeGit(staged="1\t0\tb.ts\n", unstaged="1\t0\ta.ts\n")
    assert list_changed_paths(ChangeSetAnalyzer(tmp_path, runner=git)) == ["b.ts", "a.ts"]
