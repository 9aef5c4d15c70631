"""
Patch Coverage

Checks whether the lines changed in a working tree are exercised by tests.

Core components:
- parse_diff / ChangedLineSet: Changed executable lines from a unified diff
- LineContentIndex: Blank/comment/executable classification of source lines
- CoverageParser: Reads Istanbul coverage-final.json artifacts
- match_coverage: Covered/uncovered verdicts for changed lines
- TestRunner: Runs the test command while draining its output
- PatchCoverageCheck: Drives the whole check

Usage:
    from patch_coverage import CoverageConfig, PatchCoverageCheck

    check = PatchCoverageCheck(CoverageConfig(repo_root=Path(".")))
    summary = check.run()
    print(f"{summary.coverage_percent:.2f}%")
"""

from .coverage_report import (
    BranchEntry,
    CoverageParser,
    CoverageReport,
    FileCoverage,
    StatementRange,
)
from .errors import (
    ConfigurationError,
    CoverageFormatError,
    EmptyCoverageError,
    PatchCoverageError,
    TestRunError,
    ThresholdNotMetError,
)
from .hunks import ChangedLineSet, FileFilter, parse_diff, parse_hunk_header
from .line_classifier import LineContentIndex, LineKind, classify_line
from .matcher import LineVerdict, MatchResult, line_verdicts, match_coverage
from .orchestrator import CoverageConfig, CoverageSummary, PatchCoverageCheck
from .paths import normalize_path
from .reporter import render_report, render_uncovered_lines
from .test_runner import StatusLine, TestRunner, TestRunResult
from .workspace import GitDiffProvider, find_workspace_root

__all__ = [
    # Main entry point
    "CoverageConfig",
    "PatchCoverageCheck",
    "CoverageSummary",
    # Diff and line classification
    "ChangedLineSet",
    "FileFilter",
    "parse_diff",
    "parse_hunk_header",
    "LineContentIndex",
    "LineKind",
    "classify_line",
    "normalize_path",
    # Coverage data
    "BranchEntry",
    "CoverageParser",
    "CoverageReport",
    "FileCoverage",
    "StatementRange",
    "LineVerdict",
    "MatchResult",
    "line_verdicts",
    "match_coverage",
    # Collaborators
    "GitDiffProvider",
    "find_workspace_root",
    "StatusLine",
    "TestRunner",
    "TestRunResult",
    # Output
    "render_report",
    "render_uncovered_lines",
    # Errors
    "PatchCoverageError",
    "ConfigurationError",
    "CoverageFormatError",
    "EmptyCoverageError",
    "TestRunError",
    "ThresholdNotMetError",
]

__version__ = "0.1.0"
