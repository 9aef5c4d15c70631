"""
Line Classifier - decides which source lines can carry coverage.

Coverage tools report statements by line range. Blank lines and lines that
only hold comments must not count as changed executable lines, otherwise a
diff that mostly edits comments would drag patch coverage down.

The block-comment check is a small state machine, not a lexer:

- only double-quoted strings are tracked (with backslash escapes), and an
  unterminated string carries over to the next line;
- single-quoted and template strings are NOT tracked, so a '/*' inside
  'single quotes' or `backticks` is treated as a real comment opener;
- '//' outside a string or block ends the scan of its line.

Usage:
    index = LineContentIndex.from_path("src/module.ts")
    if index.is_executable(42):
        ...
"""

import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

LINE_COMMENT = "//"
BLOCK_OPEN = "/*"
BLOCK_CLOSE = "*/"


class LineKind(Enum):
    """Classification of one physical source line."""

    BLANK = "blank"
    COMMENT_ONLY = "comment_only"
    IN_BLOCK_COMMENT = "in_block_comment"
    EXECUTABLE = "executable"


class _BlockState:
    """Scanner state carried from one line to the next."""

    __slots__ = ("in_string", "in_block")

    def __init__(self) -> None:
        self.in_string = False
        self.in_block = False

    def scan(self, line: str) -> tuple[bool, bool, bool]:
        """
        Advance over one line.

        Returns (started_in_block, opened_block, closed_block).
        """
        started_in_block = self.in_block
        opened = False
        closed = False

        i = 0
        length = len(line)
        while i < length:
            if self.in_block:
                if line.startswith(BLOCK_CLOSE, i):
                    self.in_block = False
                    closed = True
                    i += 2
                    continue
            elif self.in_string:
                ch = line[i]
                if ch == "\\":
                    i += 2
                    continue
                if ch == '"':
                    self.in_string = False
            else:
                ch = line[i]
                if ch == '"':
                    self.in_string = True
                elif line.startswith(LINE_COMMENT, i):
                    break
                elif line.startswith(BLOCK_OPEN, i):
                    self.in_block = True
                    opened = True
                    i += 2
                    continue
            i += 1

        return started_in_block, opened, closed


def _simple_kind(line: str) -> Optional[LineKind]:
    """Classify a line on its own text, or None if context is needed."""
    stripped = line.strip()
    if not stripped:
        return LineKind.BLANK
    if stripped.startswith(LINE_COMMENT):
        return LineKind.COMMENT_ONLY
    if (
        stripped.startswith(BLOCK_OPEN)
        and stripped.endswith(BLOCK_CLOSE)
        and len(stripped) > len(BLOCK_OPEN) + 1
    ):
        return LineKind.COMMENT_ONLY
    return None


def split_lines(content: str) -> list[str]:
    """
    Split file content the way git numbers lines: on '\\n' only.

    A trailing '\\r' is dropped from each line. Form feeds, U+2028 and the
    other separators ``str.splitlines`` honours stay inside their line.
    """
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def read_lines(path) -> list[str]:
    """
    Read a UTF-8 file (errors replaced) into git-numbered lines.

    Raises:
        OSError: If the file cannot be read.
    """
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        return split_lines(f.read())


def classify_line(lines: list[str], index: int) -> LineKind:
    """
    Classify ``lines[index]`` (0-based) by replaying lines 0..index.

    Raises:
        IndexError: If index is outside the file.
    """
    if index < 0 or index >= len(lines):
        raise IndexError(f"line index {index} out of range for {len(lines)} lines")
    return LineContentIndex(lines[:index + 1]).classify(index + 1)


class LineContentIndex:
    """
    Physical lines of one file plus lazily computed block-comment state.

    Gives the same answers as ``classify_line`` but scans the file once,
    the first time a classification is requested.
    """

    def __init__(self, lines: list[str], path: Optional[str] = None):
        self.lines = lines
        self.path = path
        self._in_block: Optional[list[bool]] = None

    @classmethod
    def from_path(cls, path) -> "LineContentIndex":
        """
        Read a file from disk.

        Raises:
            OSError: If the file cannot be read.
        """
        return cls(read_lines(path), path=str(path))

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def contains(self, line_number: int) -> bool:
        return 1 <= line_number <= len(self.lines)

    def text(self, line_number: int) -> str:
        """Text of a 1-based line."""
        if not self.contains(line_number):
            raise IndexError(f"line {line_number} out of range for {len(self.lines)} lines")
        return self.lines[line_number - 1]

    def classify(self, line_number: int) -> LineKind:
        """Classify a 1-based line."""
        line = self.text(line_number)
        simple = _simple_kind(line)
        if simple is not None:
            return simple
        if self._block_flags()[line_number - 1]:
            return LineKind.IN_BLOCK_COMMENT
        return LineKind.EXECUTABLE

    def is_executable(self, line_number: int) -> bool:
        return self.classify(line_number) is LineKind.EXECUTABLE

    def _block_flags(self) -> list[bool]:
        if self._in_block is None:
            state = _BlockState()
            flags = []
            for line in self.lines:
                started, opened, closed = state.scan(line)
                flags.append(started or opened or closed)
            self._in_block = flags
            logger.debug(
                f"Scanned {len(flags)} lines of {self.path or '<memory>'} for block comments"
            )
        return self._in_block
