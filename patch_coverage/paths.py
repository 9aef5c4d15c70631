"""Path normalization shared by the hunk parser and the coverage matcher."""

import os
import posixpath
from typing import Optional, Union

PathLike = Union[str, "os.PathLike[str]"]


def to_posix(path: PathLike) -> str:
    """Return a path with forward slashes and no leading './'."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text


def normalize_path(
    path: PathLike,
    root: Optional[PathLike] = None,
    case_insensitive: Optional[bool] = None,
) -> str:
    """
    Normalize a path so diff paths and coverage report keys compare equal.

    Relative paths are joined to ``root`` (or the current directory), then
    made absolute with '.' and '..' collapsed and separators turned into '/'.
    On case-insensitive filesystems (Windows by default) the result is
    lowercased, which also folds drive letters ("C:/" vs "c:/").
    """
    if case_insensitive is None:
        case_insensitive = os.name == "nt"

    text = to_posix(path)
    is_absolute = text.startswith("/") or (len(text) > 1 and text[1] == ":")
    if not is_absolute:
        base = to_posix(os.path.abspath(root if root is not None else os.curdir))
        text = f"{base.rstrip('/')}/{text}"

    drive = ""
    if len(text) > 1 and text[1] == ":":
        drive, text = text[:2], text[2:]
    text = drive + posixpath.normpath(text)

    if case_insensitive:
        text = text.lower()
    return text


def is_under(path: str, root: str) -> bool:
    """True if normalized ``path`` lies inside normalized ``root``."""
    root = root.rstrip("/")
    return path == root or path.startswith(root + "/")
