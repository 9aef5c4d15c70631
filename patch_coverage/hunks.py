"""
Hunk Parser - turns unified diff text into changed executable lines.

Expects the output of ``git diff --unified=0 <base>``: '+++ b/<path>' file
headers and '@@ -a,b +c,d @@' hunk headers. Only the '+' side of each hunk
is used, so lines are numbered in the working-tree revision.
"""

import logging
import re
from bisect import bisect_left
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional

from .line_classifier import LineContentIndex, LineKind, split_lines
from .paths import to_posix

logger = logging.getLogger(__name__)

NEW_FILE_PREFIX = "+++ "
HUNK_PREFIX = "@@"

_HUNK_NEW_RANGE = re.compile(r"^\+(\d+)(?:,(\d+))?$")
_OCTAL_ESCAPE = re.compile(r"[0-7]{1,3}")
_C_ESCAPES = {
    "a": 0x07, "b": 0x08, "t": 0x09, "n": 0x0A,
    "v": 0x0B, "f": 0x0C, "r": 0x0D, '"': 0x22, "\\": 0x5C,
}


@dataclass
class ChangedLineSet:
    """Changed line numbers per repo-relative file path."""

    files: dict[str, list[int]] = field(default_factory=dict)

    def add(self, path: str, line_number: int) -> None:
        lines = self.files.setdefault(path, [])
        pos = bisect_left(lines, line_number)
        if pos < len(lines) and lines[pos] == line_number:
            return
        lines.insert(pos, line_number)

    def lines_for(self, path: str) -> list[int]:
        return list(self.files.get(path, []))

    def filter(self, keep: Callable[[str], bool]) -> "ChangedLineSet":
        """Return a new set holding only the paths ``keep`` accepts."""
        return ChangedLineSet(
            {path: list(lines) for path, lines in self.files.items() if keep(path)}
        )

    @property
    def total_lines(self) -> int:
        return sum(len(lines) for lines in self.files.values())

    def items(self):
        return self.files.items()

    def __iter__(self) -> Iterator[str]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path: object) -> bool:
        return path in self.files


@dataclass
class FileFilter:
    """Which diff paths are source files worth checking."""

    source_extension: str = ".ts"
    test_suffix: str = ".test.ts"
    tool_dir: Optional[str] = "zedc/"

    def __call__(self, path: str) -> bool:
        if self.tool_dir and path.startswith(self.tool_dir):
            return False
        if self.test_suffix and path.endswith(self.test_suffix):
            return False
        return path.endswith(self.source_extension)


def parse_hunk_header(line: str) -> Optional[tuple[int, int]]:
    """
    Extract (new_start, new_count) from '@@ -a,b +c,d @@ ...'.

    The count defaults to 1 when omitted. Returns None for malformed headers.
    """
    parts = line.split(HUNK_PREFIX)
    if len(parts) < 2:
        logger.debug(f"Malformed hunk header: {line!r}")
        return None

    for token in parts[1].split():
        if not token.startswith("+"):
            continue
        match = _HUNK_NEW_RANGE.match(token)
        if not match:
            logger.debug(f"Could not parse new range {token!r} in hunk header: {line!r}")
            return None
        start = int(match.group(1))
        count = int(match.group(2)) if match.group(2) is not None else 1
        return start, count

    logger.debug(f"No new range in hunk header: {line!r}")
    return None


def unquote_path(quoted: str) -> str:
    """
    Decode a path git wrapped in double quotes.

    git quotes paths holding non-ASCII bytes or control characters and
    writes them as C escapes: '"b/caf\\303\\251.ts"' is 'b/café.ts'. Octal
    escapes are raw bytes of the UTF-8 name.
    """
    body = quoted[1:-1]
    raw = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            escaped = body[i + 1]
            match = _OCTAL_ESCAPE.match(body, i + 1)
            if match:
                raw.append(int(match.group(), 8) & 0xFF)
                i = match.end()
                continue
            if escaped in _C_ESCAPES:
                raw.append(_C_ESCAPES[escaped])
            else:
                raw.extend(escaped.encode("utf-8"))
            i += 2
            continue
        raw.extend(ch.encode("utf-8"))
        i += 1
    return raw.decode("utf-8", errors="replace")


def _new_file_path(line: str) -> Optional[str]:
    """Path from a '+++ b/<path>' header, None for '/dev/null'."""
    target = line[len(NEW_FILE_PREFIX):].rstrip("\r\n")
    if "\t" in target:
        target = target.split("\t", 1)[0]
    if len(target) >= 2 and target.startswith('"') and target.endswith('"'):
        target = unquote_path(target)
    if target == "/dev/null":
        return None
    if target.startswith("b/"):
        target = target[2:]
    return to_posix(target)


def _load_index(repo_root: Path, path: str) -> Optional[LineContentIndex]:
    try:
        index = LineContentIndex.from_path(repo_root / path)
    except OSError as e:
        logger.debug(
            f"Could not read {path} for line classification: {e}. "
            "All changed lines in this file will be checked."
        )
        return None
    logger.debug(f"Read {path} ({index.line_count} lines) for line classification")
    return index


def parse_diff(
    diff_text: str,
    file_filter: Optional[Callable[[str], bool]] = None,
    repo_root=".",
) -> ChangedLineSet:
    """
    Parse unified diff text into a ChangedLineSet.

    Args:
        diff_text: Output of ``git diff --unified=0``
        file_filter: Predicate on repo-relative paths; rejected files get no entry
        repo_root: Directory the diff paths are relative to

    Returns:
        Executable changed lines per file. If a file cannot be read, every
        line its hunks touch is kept.
    """
    if file_filter is None:
        file_filter = FileFilter()
    root = Path(repo_root)

    changed = ChangedLineSet()
    current_file: Optional[str] = None
    index: Optional[LineContentIndex] = None

    for line in split_lines(diff_text):
        if line.startswith(NEW_FILE_PREFIX):
            current_file = _new_file_path(line)
            index = None
            if current_file is None:
                continue
            if not file_filter(current_file):
                logger.debug(f"Ignoring internal, test or non-source file: {current_file}")
                current_file = None
                continue
            logger.debug(f"Found changed file: {current_file}")
            index = _load_index(root, current_file)

        elif line.startswith(HUNK_PREFIX):
            if current_file is None:
                continue
            header = parse_hunk_header(line)
            if header is None:
                continue
            start, count = header
            _record_hunk(changed, current_file, start, count, index)

    for path, lines in changed.items():
        logger.debug(f"Changed lines in {path}: {lines}")
    return changed


def _record_hunk(
    changed: ChangedLineSet,
    path: str,
    start: int,
    count: int,
    index: Optional[LineContentIndex],
) -> None:
    for line_number in range(start, start + count):
        if index is None:
            changed.add(path, line_number)
            continue
        if not index.contains(line_number):
            logger.debug(
                f"Line {line_number} is past the end of {path} "
                f"({index.line_count} lines), skipping"
            )
            continue
        kind = index.classify(line_number)
        if kind is LineKind.EXECUTABLE:
            changed.add(path, line_number)
        else:
            logger.debug(f"Skipping {kind.value} line {line_number} in {path}")
