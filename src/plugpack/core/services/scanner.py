from __future__ import annotations

"""
File Discovery Service.

Walks a plugin project and classifies every file it keeps as a source
module or a support file.
"""

import logging
import os
from typing import Iterable, Iterator, List, Optional, Tuple

from plugpack.core.pipeline.components.filters import should_ignore
from plugpack.domain.constants import ALWAYS_SKIPPED_DIRS, SOURCE_EXTENSION
from plugpack.infra.fs import to_relative_posix

logger = logging.getLogger(__name__)


# ==============================================================================
# PUBLIC API (DISCOVERY SERVICES)
# ==============================================================================

def yield_project_files(
        root: str,
        ignore: Optional[Iterable[str]] = None,
) -> Iterator[Tuple[str, str]]:
    """
    Traverse a project and yield every file that survives the ignore rules.

    Version control, cache and virtualenv directories are always pruned.
    Directories matched by an ignore pattern are pruned in place so their
    content is never visited.

    Args:
        root: Absolute path to the project root.
        ignore: Raw ``.plugpackrc`` style ignore patterns.

    Yields:
        Tuple[str, str]: ``(absolute path, project-relative POSIX path)``
        in sorted order.
    """
    root_abs = os.path.abspath(root)
    patterns: List[str] = list(ignore or [])

    for current, dirs, files in os.walk(root_abs):
        kept_dirs = []
        for d in dirs:
            if d in ALWAYS_SKIPPED_DIRS:
                continue
            rel_dir = to_relative_posix(os.path.join(current, d), root_abs)
            if should_ignore(rel_dir, patterns):
                continue
            kept_dirs.append(d)
        dirs[:] = sorted(kept_dirs)

        for file_name in sorted(files):
            file_path = os.path.join(current, file_name)
            rel_path = to_relative_posix(file_path, root_abs)
            if should_ignore(rel_path, patterns):
                continue
            yield file_path, rel_path


def is_source_file(rel_path: str) -> bool:
    return rel_path.endswith(SOURCE_EXTENSION)


def split_sources(
        entries: Iterable[Tuple[str, str]],
) -> Tuple[List[Tuple[str, str]], List[Tuple[str, str]]]:
    """Partition walk entries into (source modules, support files)."""
    sources: List[Tuple[str, str]] = []
    support: List[Tuple[str, str]] = []
    for entry in entries:
        (sources if is_source_file(entry[1]) else support).append(entry)
    logger.debug(f"Discovered {len(sources)} source modules and {len(support)} support files.")
    return sources, support
