"""
Coverage Orchestrator - drives one patch coverage check.

Sequence:
1. Diff the working tree against the base branch and parse the hunks
2. Drop test files and, with a package filter, files outside that package
3. Stop early ("nothing to check") when no changed lines remain
4. Run the tests; a failing run aborts the check
5. Match every package's coverage artifact against the changed lines
6. Report changed files no artifact accounted for as fully uncovered

Usage:
    config = CoverageConfig(repo_root=Path("/repo"), package="core")
    check = PatchCoverageCheck(config)
    summary = check.run()
    check.enforce_threshold(summary)
"""

import glob
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol

from .coverage_report import CoverageParser
from .errors import CoverageFormatError, TestRunError, ThresholdNotMetError
from .hunks import ChangedLineSet, FileFilter, parse_diff
from .matcher import MatchResult, match_coverage
from .reporter import render_threshold
from .test_runner import TestRunner, TestRunResult
from .workspace import GitDiffProvider

logger = logging.getLogger(__name__)


class DiffProvider(Protocol):
    def diff(self) -> str: ...


class Runner(Protocol):
    def run(self, package: Optional[str] = None) -> TestRunResult: ...


@dataclass
class CoverageConfig:
    """Everything one check needs, built once at the CLI boundary."""

    repo_root: Path
    package: Optional[str] = None
    verbose: bool = False
    threshold: Optional[float] = None
    base: str = "main"
    packages_dir: str = "packages"
    tests_marker: str = "__tests__"
    source_extension: str = ".ts"
    test_suffix: str = ".test.ts"
    tool_dir: Optional[str] = "zedc/"
    coverage_relpath: str = "results/unit/coverage/coverage-final.json"
    test_command: tuple[str, ...] = ("pnpm",)

    def file_filter(self) -> FileFilter:
        return FileFilter(
            source_extension=self.source_extension,
            test_suffix=self.test_suffix,
            tool_dir=self.tool_dir,
        )

    def in_scope(self, path: str) -> bool:
        """Changed file belongs to the checked packages and is not a test."""
        if self.tests_marker and self.tests_marker in path:
            return False
        if self.package:
            return path.startswith(f"{self.packages_dir}/{self.package}/")
        return True

    def coverage_pattern(self) -> str:
        root = glob.escape(str(self.repo_root))
        package = glob.escape(self.package) if self.package else "*"
        return str(Path(root) / self.packages_dir / package / self.coverage_relpath)

    def package_root_for(self, artifact) -> Path:
        """Package directory a coverage artifact belongs to."""
        depth = len(Path(self.coverage_relpath).parts)
        return Path(artifact).parents[depth - 1]


@dataclass
class CoverageSummary:
    """Aggregate result of one check."""

    total_lines: int = 0
    covered: int = 0
    not_executable: int = 0
    uncovered: dict[str, list[int]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    skipped: bool = False
    message: str = ""

    @property
    def denominator(self) -> int:
        return self.total_lines - self.not_executable

    @property
    def uncovered_count(self) -> int:
        return sum(len(lines) for lines in self.uncovered.values())

    @property
    def coverage_percent(self) -> float:
        if self.denominator <= 0:
            return 100.0
        return self.covered / self.denominator * 100

    def add(self, result: MatchResult) -> None:
        self.covered += result.covered
        self.not_executable += result.not_executable
        for path, lines in result.uncovered.items():
            merged = set(self.uncovered.get(path, [])) | set(lines)
            self.uncovered[path] = sorted(merged)

    def to_dict(self) -> dict[str, Any]:
        return {
            "skipped": self.skipped,
            "message": self.message,
            "coverage_percent": round(self.coverage_percent, 2),
            "covered": self.covered,
            "total": self.denominator,
            "changed_lines": self.total_lines,
            "not_executable": self.not_executable,
            "uncovered": {path: self.uncovered[path] for path in sorted(self.uncovered)},
            "warnings": sorted(self.warnings),
        }


class PatchCoverageCheck:
    """One coverage check invocation; owns all of its state."""

    def __init__(
        self,
        config: CoverageConfig,
        diff_provider: Optional[DiffProvider] = None,
        test_runner: Optional[Runner] = None,
        parser: Optional[CoverageParser] = None,
    ):
        self.config = config
        self.diff_provider = diff_provider or GitDiffProvider(config.repo_root, config.base)
        self.test_runner = test_runner or TestRunner(config.test_command, cwd=config.repo_root)
        self.parser = parser or CoverageParser()

    def changed_lines(self) -> ChangedLineSet:
        """Executable changed lines of eligible source files."""
        diff_text = self.diff_provider.diff()
        return parse_diff(diff_text, self.config.file_filter(), self.config.repo_root)

    def run(self) -> CoverageSummary:
        """
        Run the check up to (not including) the threshold decision.

        Raises:
            ConfigurationError: If the diff cannot be produced
            TestRunError: If the test command fails
        """
        config = self.config
        summary = CoverageSummary()

        changed = self.changed_lines()
        if not changed:
            summary.skipped = True
            summary.message = f"No changes detected compared to {config.base} branch."
            return summary

        initial_total = changed.total_lines
        changed = changed.filter(config.in_scope)
        summary.total_lines = changed.total_lines
        if config.package:
            logger.debug(
                f"Filtered changed files to package '{config.package}' and excluded "
                f"'{config.tests_marker}'. {summary.total_lines} of {initial_total} lines remain."
            )
        else:
            logger.debug(
                f"Excluded '{config.tests_marker}' files. "
                f"{summary.total_lines} of {initial_total} lines remain."
            )

        if summary.total_lines == 0:
            summary.skipped = True
            if config.package:
                summary.message = (
                    f"No changed lines found in package '{config.package}' to check for coverage."
                )
            else:
                summary.message = "No changed lines found to check for coverage."
            return summary

        if config.package:
            logger.info(f"Running unit tests with coverage for package '{config.package}'...")
        else:
            logger.info("Running unit tests with coverage for all packages...")
        result = self.test_runner.run(config.package)
        if not result.success:
            raise TestRunError(
                f"{' '.join(config.test_command)} test failed.",
                result.stdout_lines,
                result.stderr_lines,
            )

        self.collect_coverage(changed, summary)
        return summary

    def collect_coverage(self, changed: ChangedLineSet, summary: CoverageSummary) -> None:
        """Fold every package coverage artifact into ``summary``."""
        pattern = self.config.coverage_pattern()
        logger.info("Processing coverage reports...")
        logger.debug(f"Searching for coverage files with pattern: {pattern}")

        accounted: set[str] = set()
        for artifact in sorted(glob.glob(pattern)):
            package_root = self.config.package_root_for(artifact)
            logger.debug(f"Processing coverage file {artifact} (package {package_root})")
            try:
                report = self.parser.parse(artifact)
            except (OSError, CoverageFormatError) as e:
                self._warn(summary, f"Skipping coverage file {artifact}: {e}")
                continue

            pending = changed.filter(lambda path: path not in accounted)
            result = match_coverage(report, pending, package_root, self.config.repo_root)
            summary.add(result)
            accounted.update(result.checked_files)

        for path, lines in changed.items():
            if path in accounted:
                continue
            self._warn(
                summary,
                f"No coverage data found for changed file {path}. "
                "Lines from this file considered uncovered.",
            )
            summary.add(MatchResult(uncovered={path: list(lines)}, checked_files=[path]))

    def enforce_threshold(self, summary: CoverageSummary) -> Optional[str]:
        """
        Compare patch coverage with the configured threshold.

        Returns:
            The pass message, or None when no threshold is configured

        Raises:
            ThresholdNotMetError: If coverage is below the threshold
        """
        threshold = self.config.threshold
        if threshold is None or summary.skipped:
            return None
        message = render_threshold(summary.coverage_percent, threshold, self.config.package)
        if summary.coverage_percent < threshold:
            raise ThresholdNotMetError(message, summary.coverage_percent, threshold)
        return message

    def _warn(self, summary: CoverageSummary, message: str) -> None:
        if self.config.verbose:
            logger.warning(message)
        else:
            logger.debug(message)
        summary.warnings.append(message)
