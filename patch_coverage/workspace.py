"""Workspace discovery and the git diff provider."""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def find_workspace_root(start=None, marker: str = "package.json") -> Optional[Path]:
    """Nearest directory at or above ``start`` that contains ``marker``."""
    current = Path(start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if (directory / marker).exists():
            return directory
    return None


class GitDiffProvider:
    """Produces ``git diff --unified=0 <base>`` for the working tree."""

    def __init__(self, repo_root, base: str = "main"):
        self.repo_root = repo_root
        self.base = base

    def diff(self) -> str:
        """
        Raises:
            ConfigurationError: If git is missing or the base can't be diffed
        """
        argv = ["git", "diff", "--unified=0", self.base]
        try:
            result = subprocess.run(
                argv,
                cwd=self.repo_root,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise ConfigurationError(f"Could not run git: {e}") from e

        if result.returncode != 0:
            raise ConfigurationError(
                f"Could not diff against '{self.base}': {result.stderr.strip()}"
            )

        logger.debug(f"Raw diff output:\n{result.stdout}")
        return result.stdout
