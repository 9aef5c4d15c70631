"""
Error types for the patch coverage gate.

Library code raises these; cli.py maps them to messages and exit codes.
"""

from typing import Optional


class PatchCoverageError(RuntimeError):
    """Base class for patch coverage failures."""


class ConfigurationError(PatchCoverageError):
    """Raised before any test run when the workspace or diff base is unusable."""


class TestRunError(PatchCoverageError):
    """Raised when the test command cannot be spawned or exits non-zero."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        message: str,
        stdout_lines: Optional[list[str]] = None,
        stderr_lines: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.stdout_lines = stdout_lines or []
        self.stderr_lines = stderr_lines or []


class ThresholdNotMetError(PatchCoverageError):
    """Patch coverage fell below the configured threshold."""

    def __init__(self, message: str, coverage_percent: float, threshold: float):
        super().__init__(message)
        self.coverage_percent = coverage_percent
        self.threshold = threshold

    @property
    def shortfall(self) -> float:
        return self.threshold - self.coverage_percent


class CoverageFormatError(PatchCoverageError, ValueError):
    """A coverage artifact could not be parsed."""


class EmptyCoverageError(CoverageFormatError):
    """A coverage artifact exists but holds no data."""
