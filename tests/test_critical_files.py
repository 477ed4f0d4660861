"""Tests for riskreview.engine.critical_files — risk scoring and ranking."""

from __future__ import annotations

import pytest

from riskreview.engine.changes import FileChange
from riskreview.engine.critical_files import (
    ALGORITHM,
    CRITICAL_PATH_BONUS,
    NEW_FILE_BONUS,
    TEST_FILE_PENALTY,
    CriticalFileSelector,
    change_size_weight,
    fan_in_weight,
)
from riskreview.engine.results import RawToolResult
from riskreview.enums import CheckType, Severity


def _tsc(*lines):
    return RawToolResult(
        type=CheckType.TYPE_CHECKING, tool="typescript", success=False, stdout="\n".join(lines)
    )


class TestWeights:
    def test_zero_input_contributes_nothing(self):
        assert change_size_weight(0) == 0
        assert fan_in_weight(0) == 0

    def test_monotonic(self):
        sizes = [1, 10, 50, 100, 500, 5000]
        weights = [change_size_weight(n) for n in sizes]
        assert weights == sorted(weights)
        fans = [1, 5, 20, 50, 500]
        assert [fan_in_weight(n) for n in fans] == sorted(fan_in_weight(n) for n in fans)

    def test_diminishing_returns(self):
        first = change_size_weight(100) - change_size_weight(0)
        second = change_size_weight(200) - change_size_weight(100)
        assert second < first

    def test_saturates_below_one_blocker(self):
        assert change_size_weight(10**6) <= 50
        assert fan_in_weight(10**6) <= 60
        assert change_size_weight(10**6) < 100
        assert fan_in_weight(10**6) < 100

    def test_algorithm_tag_names_curve(self):
        assert ALGORITHM.startswith("risk-weighted-v")
        assert "expsat" in ALGORITHM
        assert "new-file" in ALGORITHM
        assert "test-file" in ALGORITHM


class TestSelectCriticalFiles:
    @pytest.mark.parametrize("max_files", [0, 1, 10])
    def test_empty_changes(self, max_files):
        report = CriticalFileSelector({}).select_critical_files([], [], max_files=max_files)
        assert report.top_files == []
        assert report.all_files == []

    def test_top_n_length_and_ordering(self):
        changes = [FileChange(f"src/f{i}.ts", i * 10, 0) for i in range(1, 8)]
        report = CriticalFileSelector({}).select_critical_files(changes, [], max_files=3)
        assert len(report.top_files) == 3
        assert len(report.all_files) == 7
        scores = [e.score for e in report.top_files]
        assert scores == sorted(scores, reverse=True)
        assert {e.path for e in report.top_files} <= {e.path for e in report.all_files}

    def test_top_files_bounded_by_all_files(self):
        changes = [FileChange("a.ts", 1, 0), FileChange("b.ts", 2, 0)]
        report = CriticalFileSelector({}).select_critical_files(changes, [], max_files=10)
        assert len(report.top_files) == 2

    def test_all_files_keep_input_order(self):
        changes = [FileChange("small.ts", 1, 0), FileChange("big.ts", 400, 0)]
        report = CriticalFileSelector({}).select_critical_files(changes, [])
        assert [e.path for e in report.all_files] == ["small.ts", "big.ts"]
        assert [e.path for e in report.top_files] == ["big.ts", "small.ts"]

    def test_blocker_outranks_large_change(self):
        changes = [FileChange("src/big.ts", 900, 300), FileChange("src/broken.ts", 1, 0)]
        results = [_tsc("src/broken.ts(1,1): error TS2304: Cannot find name 'x'.")]
        report = CriticalFileSelector({}).select_critical_files(changes, results)
        assert report.top_files[0].path == "src/broken.ts"

    def test_score_and_risk_factors(self):
        change = FileChange("src/core.ts", 200, 50)
        results = [_tsc("/repo/src/core.ts(3,1): error TS2304: Cannot find name 'x'.")]
        report = CriticalFileSelector({"src/core.ts": 25}).select_critical_files([change], results)
        [entry] = report.all_files
        expected = round(100 + fan_in_weight(25) + change_size_weight(250), 1)
        assert entry.score == pytest.approx(expected)
        assert entry.risk_factors == [
            "1 blocker issue",
            "high impact (25 imports)",
            "large change (250 lines)",
            "inferred critical (high fan-in)",
        ]
        assert entry.import_fan_in == 25
        assert entry.lines_changed == 250
        assert entry.severity_counts[Severity.BLOCKER] == 1
        assert report.inferred_critical_paths == ["src/core.ts"]

    def test_plural_issue_factor(self):
        change = FileChange("a.ts", 0, 0)
        results = [_tsc("a.ts(1,1): warning TS1: w", "a.ts(2,1): warning TS1: w")]
        [entry] = CriticalFileSelector({}).select_critical_files([change], results).all_files
        assert entry.risk_factors == ["2 minor issues"]
        assert entry.score == 20

    def test_impact_and_size_buckets(self):
        changes = [FileChange("m.ts", 140, 10), FileChange("s.ts", 4, 1)]
        fan_in = {"m.ts": 6, "s.ts": 1}
        report = CriticalFileSelector(fan_in).select_critical_files(changes, [])
        by_path = {e.path: e for e in report.all_files}
        assert by_path["m.ts"].risk_factors == ["medium impact (6 imports)", "medium change (150 lines)"]
        assert by_path["s.ts"].risk_factors == ["low impact (1 imports)", "small change (5 lines)"]

    def test_no_signals_scores_zero(self):
        [entry] = CriticalFileSelector({}).select_critical_files(
            [FileChange("a.ts", 0, 0)], []
        ).all_files
        assert entry.score == 0
        assert entry.risk_factors == []

    def test_configured_critical_path(self):
        selector = CriticalFileSelector({}, critical_paths=["src/payments/**"])
        changes = [FileChange("src/payments/charge.ts", 0, 0), FileChange("src/ui.ts", 0, 0)]
        report = selector.select_critical_files(changes, [])
        top = report.top_files[0]
        assert top.path == "src/payments/charge.ts"
        assert top.score == CRITICAL_PATH_BONUS
        assert top.risk_factors == ["critical path: src/payments/**"]
        assert report.configured_critical_paths == ["src/payments/**"]

    def test_ties_break_by_path(self):
        changes = [FileChange("b.ts", 10, 0), FileChange("a.ts", 10, 0)]
        report = CriticalFileSelector({}).select_critical_files(changes, [])
        assert [e.path for e in report.top_files] == ["a.ts", "b.ts"]

    def test_deterministic(self):
        changes = [FileChange(f"f{i}.ts", i, i) for i in range(20)]
        fan_in = {f"f{i}.ts": i for i in range(20)}
        first = CriticalFileSelector(fan_in).select_critical_files(changes, [], max_files=5)
        second = CriticalFileSelector(fan_in).select_critical_files(changes, [], max_files=5)
        assert first.to_dict() == second.to_dict()

    def test_skipped_results_ignored(self):
        skipped = RawToolResult(
            type=CheckType.TYPE_CHECKING, tool="typescript", skipped=True,
            stdout="a.ts(1,1): error TS1: boom",
        )
        [entry] = CriticalFileSelector({}).select_critical_files(
            [FileChange("a.ts", 0, 0)], [skipped]
        ).all_files
        assert entry.score == 0

    def test_to_dict_keys(self):
        report = CriticalFileSelector({}).select_critical_files([FileChange("a.ts", 1, 1)], [])
        payload = report.to_dict()
        assert set(payload) == {
            "topFiles", "allFiles", "inferredCriticalPaths", "configuredCriticalPaths", "algorithm",
        }
        entry = payload["topFiles"][0]
        assert set(entry) == {
            "path", "score", "riskFactors", "linesChanged", "importFanIn", "severityCounts",
        }
        assert set(entry["severityCounts"]) == {"blocker", "critical", "major", "minor", "info"}


class TestFileKindFactors:
    def test_new_file_bonus(self):
        [entry] = CriticalFileSelector({}).select_critical_files(
            [FileChange("src/added.ts", 40, 0)], []
        ).all_files
        assert entry.score == pytest.approx(round(change_size_weight(40) + NEW_FILE_BONUS, 1))
        assert entry.risk_factors == ["small change (40 lines)", "new file"]

    def test_edited_file_gets_no_new_file_bonus(self):
        [entry] = CriticalFileSelector({}).select_critical_files(
            [FileChange("src/edited.ts", 40, 1)], []
        ).all_files
        assert "new file" not in entry.risk_factors

    def test_test_file_penalty(self):
        change = FileChange("src/cart.test.ts", 30, 30)
        results = [_tsc("src/cart.test.ts(1,1): error TS2304: Cannot find name 'x'.")]
        [entry] = CriticalFileSelector({}).select_critical_files([change], results).all_files
        expected = round(100 + change_size_weight(60) - TEST_FILE_PENALTY, 1)
        assert entry.score == pytest.approx(expected)
        assert entry.risk_factors[-1] == "test file (lower priority)"

    def test_test_file_penalty_floored_at_zero(self):
        [entry] = CriticalFileSelector({}).select_critical_files(
            [FileChange("src/cart.spec.ts", 2, 2)], []
        ).all_files
        assert entry.score == 0
        assert entry.risk_factors == ["small change (4 lines)", "test file (lower priority)"]

    def test_test_file_ranks_below_source(self):
        changes = [FileChange("src/cart.test.ts", 10, 0), FileChange("src/cart.ts", 10, 0)]
        report = CriticalFileSelector({}).select_critical_files(changes, [])
        assert [e.path for e in report.top_files] == ["src/cart.ts", "src/cart.test.ts"]


class TestDiagnosticAttribution:
    def test_same_basename_in_other_directory_not_credited(self):
        changes = [FileChange("index.ts", 1, 1), FileChange("src/index.ts", 1, 1)]
        results = [_tsc("src/index.ts(1,1): error TS2304: Cannot find name 'x'.")]
        report = CriticalFileSelector({}).select_critical_files(changes, results)
        by_path = {e.path: e for e in report.all_files}
        assert by_path["index.ts"].severity_counts[Severity.BLOCKER] == 0
        assert by_path["src/index.ts"].severity_counts[Severity.BLOCKER] == 1

    def test_partial_file_name_not_credited(self):
        changes = [FileChange("a.ts", 1, 1)]
        results = [_tsc("src/data.ts(1,1): error TS2304: Cannot find name 'x'.")]
        [entry] = CriticalFileSelector({}).select_critical_files(changes, results).all_files
        assert entry.severity_counts[Severity.BLOCKER] == 0

    def test_absolute_diagnostic_path_credited(self):
        changes = [FileChange("src/index.ts", 1, 1)]
        results = [_tsc("/repo/src/index.ts(1,1): error TS2304: Cannot find name 'x'.")]
        [entry] = CriticalFileSelector({}).select_critical_files(changes, results).all_files
        assert entry.severity_counts[Severity.BLOCKER] == 1
