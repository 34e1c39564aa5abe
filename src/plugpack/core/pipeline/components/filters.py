from __future__ import annotations

"""
File Filtering Engine.

Two matchers live here:

- ``should_ignore``: the Loader's permissive matcher for ``.plugpackrc``
  ``ignore`` entries (exact path, basename, substring or simple glob).
- ``is_archive_ignored``: the Packager's glob matcher for support files,
  applied to ``DEFAULT_IGNORED_FILES`` plus the project's ``ignoredFiles``.
"""

import fnmatch
import logging
import posixpath
import re
from typing import Iterable, List, Optional

from plugpack.domain.constants import DEFAULT_IGNORED_FILES

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# LOADER IGNORE MATCHING
# -----------------------------------------------------------------------------

def should_ignore(rel_path: str, patterns: Optional[Iterable[str]]) -> bool:
    """
    Decide whether a project path is excluded by the ``ignore`` patterns.

    Each pattern is tried in order and the first hit wins:
    exact path, basename, substring, then (for patterns holding ``*`` or
    ``?``) an anchored glob tested against the path and its basename.

    Args:
        rel_path: Project-relative path of a file or directory.
        patterns: Raw ignore patterns.

    Returns:
        bool: True if any pattern matches.
    """
    if not patterns:
        return False

    path = posixpath.normpath(rel_path.replace("\\", "/"))
    base = posixpath.basename(path)

    for pattern in patterns:
        if not pattern:
            continue
        if _matches_ignore_pattern(path, base, pattern.replace("\\", "/")):
            logger.debug(f"File {rel_path} ignored by pattern: {pattern}")
            return True
    return False


def _matches_ignore_pattern(path: str, base: str, pattern: str) -> bool:
    if path == pattern or base == pattern or pattern in path:
        return True

    if "*" not in pattern and "?" not in pattern:
        return False

    regex_body = pattern.replace(".", r"\.").replace("*", ".*").replace("?", ".")
    try:
        rx = re.compile(f"^{regex_body}$")
    except re.error:
        return pattern.replace("*", "") in path
    return rx.match(path) is not None or rx.match(base) is not None

# -----------------------------------------------------------------------------
# ARCHIVE IGNORE MATCHING
# -----------------------------------------------------------------------------

def archive_ignore_patterns(custom: Optional[Iterable[str]] = None) -> List[str]:
    """
    Combine the default archive ignore list with custom ``ignoredFiles``.

    Custom patterns not already starting with ``**/`` or ``/`` are made to
    match at any depth by prefixing ``**/``.

    Args:
        custom: Patterns read from the project configuration.

    Returns:
        List[str]: Default patterns followed by the adjusted custom ones.
    """
    out = list(DEFAULT_IGNORED_FILES)
    for pattern in custom or []:
        if not isinstance(pattern, str) or not pattern.strip():
            continue
        p = pattern.strip()
        if not (p.startswith("**/") or p.startswith("/")):
            p = f"**/{p}"
        out.append(p)
    return out


def is_archive_ignored(rel_path: str, patterns: Iterable[str]) -> bool:
    """
    Test a support file against archive ignore globs.

    ``*`` spans directory separators (fnmatch semantics); a leading ``**/``
    also matches at the project root and a leading ``/`` anchors the
    pattern to the root.
    """
    path = rel_path.replace("\\", "/")
    for pattern in patterns:
        if pattern.startswith("/"):
            if fnmatch.fnmatchcase(path, pattern[1:]):
                return True
            continue
        if fnmatch.fnmatchcase(path, pattern):
            return True
        if pattern.startswith("**/") and fnmatch.fnmatchcase(path, pattern[3:]):
            return True
    return False
