"""
Coverage report parsing for Istanbul-style ``coverage-final.json`` artifacts.

Each artifact is a JSON object keyed by absolute source path. Every entry
carries a statement map with execution counts and a branch map with per-path
counts:

    {
      "/repo/packages/a/src/x.ts": {
        "statementMap": {"0": {"start": {"line": 3}, "end": {"line": 5}}},
        "s": {"0": 1},
        "branchMap": {"0": {"line": 4}},
        "b": {"0": [1, 0]}
      }
    }
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import CoverageFormatError, EmptyCoverageError
from .paths import normalize_path

logger = logging.getLogger(__name__)


@dataclass
class StatementRange:
    """Inclusive 1-based line range of one statement."""

    start: int
    end: int

    def lines(self) -> range:
        return range(self.start, max(self.start, self.end) + 1)


@dataclass
class BranchEntry:
    """A branch decision point and the execution count of each path."""

    line: int
    counts: list[int] = field(default_factory=list)
    skip: bool = False

    @property
    def fully_taken(self) -> bool:
        return all(count > 0 for count in self.counts)


@dataclass
class FileCoverage:
    """Coverage data for a single instrumented file."""

    path: str
    statements: dict[str, StatementRange] = field(default_factory=dict)
    statement_counts: dict[str, int] = field(default_factory=dict)
    branches: dict[str, BranchEntry] = field(default_factory=dict)

    def executable_lines(self) -> set[int]:
        """Every line inside at least one statement range."""
        lines: set[int] = set()
        for statement in self.statements.values():
            lines.update(statement.lines())
        return lines

    def uncovered_lines(self) -> set[int]:
        """Lines of never-run statements plus lines of partially taken branches."""
        lines: set[int] = set()
        for stmt_id, statement in self.statements.items():
            if self.statement_counts[stmt_id] == 0:
                lines.update(statement.lines())
        for branch in self.branches.values():
            if not branch.skip and not branch.fully_taken:
                lines.add(branch.line)
        return lines


@dataclass
class CoverageReport:
    """Parsed coverage artifact, keyed by normalized absolute path."""

    source: str
    files: dict[str, FileCoverage] = field(default_factory=dict)

    def get(self, path: str) -> Optional[FileCoverage]:
        return self.files.get(normalize_path(path))

    def __len__(self) -> int:
        return len(self.files)


class CoverageParser:
    """Parse Istanbul JSON coverage output."""

    def parse(self, json_path: str) -> CoverageReport:
        """
        Parse a coverage-final.json file.

        Args:
            json_path: Path to the coverage artifact

        Returns:
            CoverageReport with per-file statement and branch data

        Raises:
            FileNotFoundError: If json_path doesn't exist
            EmptyCoverageError: If the file is empty
            CoverageFormatError: If the file is not valid coverage JSON
        """
        with open(json_path, "r", encoding="utf-8") as f:
            text = f.read()

        if not text.strip():
            raise EmptyCoverageError(f"Coverage file {json_path} is empty")

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CoverageFormatError(f"Invalid JSON in {json_path}: {e}") from e

        return self.parse_data(data, source=str(json_path))

    def parse_data(self, data: Any, source: str = "<memory>") -> CoverageReport:
        """Parse already-decoded coverage JSON."""
        if not isinstance(data, dict):
            raise CoverageFormatError(f"{source}: top level must be an object")

        report = CoverageReport(source=source)
        for key, file_data in data.items():
            if not isinstance(file_data, dict):
                raise CoverageFormatError(f"{source}: entry for {key} must be an object")
            file_path = file_data.get("path") or key
            report.files[normalize_path(file_path)] = self._parse_file(
                file_path, file_data, source
            )

        logger.debug(f"Parsed {len(report.files)} files from {source}")
        return report

    def _parse_file(self, path: str, file_data: dict, source: str) -> FileCoverage:
        statement_map = file_data.get("statementMap", {})
        counts = file_data.get("s", {})
        branch_map = file_data.get("branchMap", {})
        branch_counts = file_data.get("b", {})

        for name, value in (
            ("statementMap", statement_map),
            ("s", counts),
            ("branchMap", branch_map),
            ("b", branch_counts),
        ):
            if not isinstance(value, dict):
                raise CoverageFormatError(f"{source}: '{name}' for {path} must be an object")

        fc = FileCoverage(path=path)
        try:
            for stmt_id, loc in statement_map.items():
                if stmt_id not in counts:
                    raise CoverageFormatError(
                        f"{source}: statement {stmt_id} in {path} has no execution count"
                    )
                fc.statements[stmt_id] = StatementRange(
                    start=int(loc["start"]["line"]),
                    end=int(loc["end"]["line"]),
                )
                fc.statement_counts[stmt_id] = int(counts[stmt_id])

            for branch_id, entry in branch_map.items():
                fc.branches[branch_id] = BranchEntry(
                    line=_branch_line(entry),
                    counts=[int(c) for c in branch_counts.get(branch_id, [])],
                    skip=bool(entry.get("skip", False)),
                )
        except CoverageFormatError:
            raise
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise CoverageFormatError(f"{source}: malformed entry for {path}: {e!r}") from e

        return fc


def _branch_line(entry: dict) -> int:
    """Declared branch line, falling back to the start of its location."""
    if "line" in entry:
        return int(entry["line"])
    if "loc" in entry:
        return int(entry["loc"]["start"]["line"])
    return int(entry["locations"][0]["start"]["line"])
