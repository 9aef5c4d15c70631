"""Tests for patch_coverage.coverage_report module."""

import json

import pytest

from patch_coverage.coverage_report import (
    BranchEntry,
    CoverageParser,
    FileCoverage,
    StatementRange,
)
from patch_coverage.errors import CoverageFormatError, EmptyCoverageError
from patch_coverage.paths import normalize_path


def _entry(path, statements, branches=()):
    """Istanbul entry from [(start, end, count)] and [(line, counts, skip)]."""
    return {
        "path": path,
        "statementMap": {
            str(i): {"start": {"line": s, "column": 0}, "end": {"line": e, "column": 1}}
            for i, (s, e, _) in enumerate(statements)
        },
        "s": {str(i): c for i, (_, _, c) in enumerate(statements)},
        "branchMap": {
            str(i): {"line": line, "skip": skip} for i, (line, _, skip) in enumerate(branches)
        },
        "b": {str(i): counts for i, (_, counts, _) in enumerate(branches)},
    }


class TestCoverageParser:
    """Tests for CoverageParser."""

    def test_parse_empty_object(self, tmp_path):
        coverage_file = tmp_path / "coverage-final.json"
        coverage_file.write_text(json.dumps({}))

        report = CoverageParser().parse(str(coverage_file))
        assert len(report) == 0

    def test_parse_statements_and_branches(self, tmp_path):
        source = str(tmp_path / "src" / "a.ts")
        data = {source: _entry(source, [(1, 1, 1), (3, 5, 0)], [(4, [2, 0], False)])}
        coverage_file = tmp_path / "coverage-final.json"
        coverage_file.write_text(json.dumps(data))

        report = CoverageParser().parse(str(coverage_file))

        fc = report.get(source)
        assert fc is not None
        assert fc.statements == {"0": StatementRange(1, 1), "1": StatementRange(3, 5)}
        assert fc.statement_counts == {"0": 1, "1": 0}
        assert fc.branches == {"0": BranchEntry(line=4, counts=[2, 0], skip=False)}

    def test_lookup_is_normalized(self, tmp_path):
        source = str(tmp_path / "src" / "a.ts")
        report = CoverageParser().parse_data({source: _entry(source, [(1, 1, 1)])})
        assert report.get(str(tmp_path / "src" / "." / "a.ts")) is not None
        assert report.get(str(tmp_path / "lib" / ".." / "src" / "a.ts")) is not None
        assert normalize_path(source) in report.files

    def test_branch_line_falls_back_to_loc(self):
        data = {
            "/r/a.ts": {
                "statementMap": {},
                "s": {},
                "branchMap": {
                    "0": {"loc": {"start": {"line": 7}, "end": {"line": 9}}},
                    "1": {"locations": [{"start": {"line": 12}, "end": {"line": 12}}]},
                },
                "b": {"0": [1, 1], "1": [0]},
            }
        }
        fc = CoverageParser().parse_data(data).get("/r/a.ts")
        assert fc.branches["0"].line == 7
        assert fc.branches["1"].line == 12

    def test_empty_file_raises(self, tmp_path):
        coverage_file = tmp_path / "coverage-final.json"
        coverage_file.write_text("")
        with pytest.raises(EmptyCoverageError):
            CoverageParser().parse(str(coverage_file))

    def test_whitespace_file_raises(self, tmp_path):
        coverage_file = tmp_path / "coverage-final.json"
        coverage_file.write_text("  \n")
        with pytest.raises(EmptyCoverageError):
            CoverageParser().parse(str(coverage_file))

    def test_invalid_json(self, tmp_path):
        coverage_file = tmp_path / "coverage-final.json"
        coverage_file.write_text("not valid json")
        with pytest.raises(CoverageFormatError, match="Invalid JSON"):
            CoverageParser().parse(str(coverage_file))

    def test_parse_missing_file(self):
        with pytest.raises(FileNotFoundError):
            CoverageParser().parse("nonexistent.json")

    def test_missing_statement_count_is_an_error(self):
        """A statement without a count is malformed, not an implicit zero."""
        entry = _entry("/r/a.ts", [(1, 1, 1), (2, 2, 1)])
        del entry["s"]["1"]
        with pytest.raises(CoverageFormatError, match="no execution count"):
            CoverageParser().parse_data({"/r/a.ts": entry})

    def test_top_level_must_be_object(self):
        with pytest.raises(CoverageFormatError):
            CoverageParser().parse_data([1, 2, 3])

    def test_malformed_statement_location(self):
        entry = _entry("/r/a.ts", [(1, 1, 1)])
        entry["statementMap"]["0"] = {"start": {}}
        with pytest.raises(CoverageFormatError, match="malformed entry"):
            CoverageParser().parse_data({"/r/a.ts": entry})

    def test_format_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            CoverageParser().parse_data("nope")


class TestFileCoverage:
    """Tests for FileCoverage line sets."""

    def test_executable_lines_expand_ranges(self):
        fc = FileCoverage(
            path="a.ts",
            statements={"0": StatementRange(1, 1), "1": StatementRange(4, 6)},
            statement_counts={"0": 1, "1": 1},
        )
        assert fc.executable_lines() == {1, 4, 5, 6}
        assert fc.uncovered_lines() == set()

    def test_uncovered_lines_from_statements_and_branches(self):
        fc = FileCoverage(
            path="a.ts",
            statements={"0": StatementRange(1, 2), "1": StatementRange(5, 5)},
            statement_counts={"0": 0, "1": 3},
            branches={
                "0": BranchEntry(line=5, counts=[3, 0]),
                "1": BranchEntry(line=8, counts=[0, 0], skip=True),
                "2": BranchEntry(line=9, counts=[1, 1]),
            },
        )
        assert fc.uncovered_lines() == {1, 2, 5}
