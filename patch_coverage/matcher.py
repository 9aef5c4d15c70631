"""
Coverage Matcher - per-line verdicts for changed lines of one package.

A changed line is:
- not executable when no statement range covers it (e.g. a bare '} else {');
  it is left out of both the numerator and the denominator;
- uncovered when a zero-count statement spans it, or a non-skipped branch
  declared on it has a path that never ran (this wins over statement hits);
- covered otherwise.

A changed file the report has no entry for is entirely uncovered.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .coverage_report import CoverageReport, FileCoverage
from .hunks import ChangedLineSet
from .paths import is_under, normalize_path

logger = logging.getLogger(__name__)


class LineVerdict(Enum):
    NOT_EXECUTABLE = "not_executable"
    COVERED = "covered"
    UNCOVERED = "uncovered"


@dataclass
class MatchResult:
    """Outcome of matching one package report against the changed lines."""

    covered: int = 0
    not_executable: int = 0
    uncovered: dict[str, list[int]] = field(default_factory=dict)
    checked_files: list[str] = field(default_factory=list)

    @property
    def uncovered_count(self) -> int:
        return sum(len(lines) for lines in self.uncovered.values())


def line_verdicts(file_cov: FileCoverage, lines: list[int]) -> dict[int, LineVerdict]:
    """Classify each changed line against one file's coverage data."""
    executable = file_cov.executable_lines()
    uncovered = file_cov.uncovered_lines()

    verdicts = {}
    for line in lines:
        if line not in executable:
            verdicts[line] = LineVerdict.NOT_EXECUTABLE
        elif line in uncovered:
            verdicts[line] = LineVerdict.UNCOVERED
        else:
            verdicts[line] = LineVerdict.COVERED
    return verdicts


def match_coverage(
    report: CoverageReport,
    changed: ChangedLineSet,
    package_root,
    repo_root,
) -> MatchResult:
    """
    Match changed lines under ``package_root`` against a package report.

    Args:
        report: Parsed coverage artifact for the package
        changed: Changed lines, keyed by path relative to repo_root
        package_root: Directory of the package the report belongs to
        repo_root: Directory the changed paths are relative to

    Returns:
        MatchResult with covered count, uncovered lines per file and the
        number of changed lines outside every statement range.
    """
    result = MatchResult()
    package_dir = normalize_path(package_root, root=repo_root)

    for path in sorted(changed):
        absolute = normalize_path(path, root=repo_root)
        if not is_under(absolute, package_dir):
            continue

        lines = changed.lines_for(path)
        result.checked_files.append(path)
        file_cov = report.get(absolute)

        if file_cov is None:
            logger.debug(
                f"No coverage data found for changed file {path}. "
                "Lines from this file considered uncovered."
            )
            result.uncovered[path] = lines
            continue

        logger.debug(f"Found coverage data for {path} (matched as {absolute})")
        for line, verdict in line_verdicts(file_cov, lines).items():
            logger.debug(f"Line {line} in {path} is {verdict.value.upper()}")
            if verdict is LineVerdict.COVERED:
                result.covered += 1
            elif verdict is LineVerdict.UNCOVERED:
                result.uncovered.setdefault(path, []).append(line)
            else:
                result.not_executable += 1

    return result
