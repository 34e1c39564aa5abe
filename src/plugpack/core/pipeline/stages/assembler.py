from __future__ import annotations

"""
Packaging Stage.

Assembles the distributable archive of a built plugin:

1. Packaging marker naming the tool and its version.
2. Manifest copy whose capability list reflects the compiled entry class.
3. Compiled code: the bundle alone, or every compiled module.
4. Support files (assets, lock file, data) not matched by the archive
   ignore patterns.

The archive is written to a temporary file next to the destination and
moved into place only once complete, so a failed build never leaves a
partial archive behind.
"""

import logging
import os
import tempfile
import zipfile
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Union

from plugpack.core.pipeline.components.filters import archive_ignore_patterns, is_archive_ignored
from plugpack.core.pipeline.components.writer import (
    file_entry_info,
    packaged_by_marker,
    write_file_entry,
    write_json_entry,
    write_text_entry,
)
from plugpack.domain.constants import (
    LOCK_FILENAME,
    MANIFEST_FILENAME,
    PACKAGED_BY_FILENAME,
    TOOL_NAME,
    TOOL_VERSION,
)
from plugpack.domain.errors import PackagingFailure
from plugpack.domain.models import (
    BundledResult,
    CompilationResult,
    Manifest,
    SupportFile,
    is_bundled,
)

logger = logging.getLogger(__name__)

MAX_STAT_WORKERS = 8


# -----------------------------------------------------------------------------
# CORE PACKAGING LOGIC
# -----------------------------------------------------------------------------

def package(
        result: Union[CompilationResult, BundledResult],
        support_files: Sequence[SupportFile],
        output_path: str,
        *,
        project_root: str,
        manifest: Manifest,
        ignored_files: Optional[List[str]] = None,
) -> str:
    """
    Write the plugin archive.

    Args:
        result: Compiler output, or Bundler output to package the bundle only.
        support_files: Non-source files found by the Loader.
        output_path: Destination ``.zip`` path.
        project_root: Project directory, for log messages.
        manifest: Parsed project manifest.
        ignored_files: Extra archive ignore patterns (``ignoredFiles``).

    Returns:
        str: Absolute path of the written archive.

    Raises:
        PackagingFailure: If nothing is left to package or the archive
            cannot be written.
    """
    patterns = archive_ignore_patterns(ignored_files or [])
    kept = [f for f in support_files if not is_archive_ignored(f.rel_path, patterns)]
    logger.debug(f"Archive keeps {len(kept)} of {len(support_files)} support files.")

    if not kept:
        raise PackagingFailure(
            "No files to package were found",
            {"project_root": project_root, "patterns": patterns},
        )
    if not any(f.rel_path == LOCK_FILENAME for f in kept):
        logger.warning(f"{LOCK_FILENAME} not found in {project_root}; packaging without a lock file.")

    # The manifest is written separately, with its implemented list rewritten
    selected = [f for f in kept if f.rel_path != MANIFEST_FILENAME]

    out_path = os.path.abspath(output_path)
    out_dir = os.path.dirname(out_path)

    # --- 1. Stat support files concurrently ---
    try:
        with ThreadPoolExecutor(max_workers=MAX_STAT_WORKERS) as executor:
            infos = list(executor.map(lambda f: file_entry_info(f.abs_path, f.rel_path), selected))
    except OSError as e:
        raise PackagingFailure(f"Cannot read support file: {e}", {"error": str(e)}) from e

    # --- 2. Write archive to a staging file ---
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".plugpack-", suffix=".zip", dir=out_dir)
        os.close(fd)
    except OSError as e:
        raise PackagingFailure(f"Cannot create archive in {out_dir}: {e}", {"output": out_path}) from e
    try:
        with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            write_json_entry(archive, PACKAGED_BY_FILENAME, packaged_by_marker(TOOL_NAME, TOOL_VERSION))
            write_json_entry(archive, MANIFEST_FILENAME, manifest.with_implemented(result.implemented))

            for arcname, text in _code_entries(result):
                write_text_entry(archive, arcname, text)

            for support, info in zip(selected, infos):
                write_file_entry(archive, info, support.abs_path)

        os.replace(tmp_path, out_path)
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        _discard(tmp_path)
        raise PackagingFailure(f"Failed to write archive {out_path}: {e}", {"output": out_path}) from e

    logger.info(
        f"Packaged {manifest.name} {manifest.version} "
        f"({'bundled' if is_bundled(result) else f'{len(result.files)} modules'}, "
        f"{len(selected)} support files) -> {out_path}"
    )
    return out_path


# -----------------------------------------------------------------------------
# PRIVATE HELPERS
# -----------------------------------------------------------------------------

def _code_entries(result: Union[CompilationResult, BundledResult]) -> List[tuple]:
    if isinstance(result, BundledResult):
        if result.main_file is None:
            raise PackagingFailure("Bundled result has no entry module.")
        return [(result.main_file.path, result.bundle)]
    return [(path, f.compiled) for path, f in sorted(result.files.items())]


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove staging archive {path}: {e}")
