from __future__ import annotations

"""
FileSystem Infrastructure Layer.

Provides cross-platform path manipulation and directory creation utilities.
Project-relative paths are always handled in POSIX form so the same build
produces identical archive entry names on Windows and Unix-like systems.
"""

import os
import posixpath
from typing import Optional, Tuple

# -----------------------------------------------------------------------------
# PATH RESOLUTION API
# -----------------------------------------------------------------------------

def normalize_path(path: Optional[str], fallback: str) -> str:
    """
    Normalize a directory path string into an absolute filesystem path.

    Handles environment variable expansion ($VAR/%VAR%) and user home
    shortcuts (~/). Reverts to fallback if the input is empty.

    Args:
        path: Raw input path string.
        fallback: Default path to use if the input is empty.

    Returns:
        str: Normalized absolute path.
    """
    p = (path or "").strip()
    if not p:
        p = fallback
    p = os.path.expandvars(os.path.expanduser(p))
    return os.path.abspath(p)


def normalize_source_path(path: Optional[str]) -> str:
    """
    Normalize a project-relative path to its canonical POSIX form.

    Backslashes become forward slashes, ``.`` and ``..`` segments are
    collapsed and any leading ``/`` or ``./`` is removed.

    Args:
        path: Raw relative path, as written in a manifest or found on disk.

    Returns:
        str: Canonical path, or an empty string when nothing usable remains
        (blank input, or a path escaping the project root).
    """
    p = (path or "").strip().replace("\\", "/")
    if not p:
        return ""
    p = posixpath.normpath(p).lstrip("/")
    if p in ("", ".") or p == ".." or p.startswith("../"):
        return ""
    return p


def to_relative_posix(abs_path: str, root: str) -> str:
    """Express an absolute path relative to ``root`` with forward slashes."""
    return os.path.relpath(abs_path, root).replace(os.sep, "/")

# -----------------------------------------------------------------------------
# FILESYSTEM VALIDATION API
# -----------------------------------------------------------------------------

def safe_mkdir(path: str) -> Tuple[bool, Optional[str]]:
    """
    Attempt to recursively create a directory structure safely.

    Args:
        path: Target directory path.

    Returns:
        Tuple[bool, Optional[str]]: (Success flag, Error message if applicable).
    """
    try:
        os.makedirs(path, exist_ok=True)
        return True, None
    except OSError as e:
        return False, str(e)
