from __future__ import annotations

"""
Project Loading Stage.

Turns a plugin project directory into a ``LoadedProject``:
1. Reads the optional ``.plugpackrc`` and merges its ``ignore`` list.
2. Walks the tree, splitting source modules from support files.
3. Reads sources concurrently.
4. Parses and validates the manifest.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple

from plugpack.core.pipeline.components.reader import read_json, read_text
from plugpack.core.services.scanner import split_sources, yield_project_files
from plugpack.domain.config import load_project_config
from plugpack.domain.constants import MANIFEST_FILENAME
from plugpack.domain.errors import InvalidManifest, InvalidSourceFile, ManifestNotFound
from plugpack.domain.models import (
    CompilationUnit,
    LoadedProject,
    Manifest,
    SourceFile,
    SupportFile,
)

logger = logging.getLogger(__name__)

MAX_READ_WORKERS = 8


# ==============================================================================
# PUBLIC API
# ==============================================================================

def load_project(root: str, ignore: Optional[Iterable[str]] = None) -> LoadedProject:
    """
    Load every plugin source and the manifest of a project directory.

    Args:
        root: Project directory.
        ignore: Extra ignore patterns, applied after the ``.plugpackrc`` ones.

    Returns:
        LoadedProject: Compilation unit, support files and project config.

    Raises:
        ManifestNotFound: If the manifest is missing from the project root.
        InvalidSourceFile: If a source file cannot be read.
        InvalidManifest: If the manifest is not a valid JSON object or lacks
            a required field.
    """
    root_abs = os.path.abspath(root)
    project_cfg = load_project_config(root_abs)

    patterns: List[str] = []
    if project_cfg and isinstance(project_cfg.get("ignore"), list):
        patterns.extend(str(p) for p in project_cfg["ignore"] if p)
    patterns.extend(ignore or [])

    manifest_path = os.path.join(root_abs, MANIFEST_FILENAME)
    if not os.path.isfile(manifest_path):
        raise ManifestNotFound(manifest_path)

    sources, support = split_sources(yield_project_files(root_abs, patterns))
    files = _read_sources(sources)
    manifest = _read_manifest(manifest_path)

    support_files = [SupportFile(rel_path=rel, abs_path=abs_path) for abs_path, rel in support]

    logger.info(
        f"Loaded project '{manifest.name}' {manifest.version}: "
        f"{len(files)} source files, {len(support_files)} support files."
    )
    return LoadedProject(
        root=root_abs,
        unit=CompilationUnit(manifest=manifest, files=files),
        support_files=support_files,
        config=project_cfg,
    )


# ==============================================================================
# PRIVATE HELPERS
# ==============================================================================

def _read_sources(sources: List[Tuple[str, str]]) -> Dict[str, SourceFile]:
    if not sources:
        return {}

    workers = min(MAX_READ_WORKERS, len(sources))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="SourceReader") as executor:
        contents = list(executor.map(_read_source, sources))

    return {
        rel: SourceFile(path=rel, content=content)
        for (_, rel), content in zip(sources, contents)
    }


def _read_source(entry: Tuple[str, str]) -> str:
    abs_path, rel = entry
    try:
        return read_text(abs_path)
    except OSError as e:
        raise InvalidSourceFile(f'Cannot read source file "{rel}": {e}', rel) from e


def _read_manifest(manifest_path: str) -> Manifest:
    try:
        data = read_json(manifest_path)
    except ValueError as e:
        raise InvalidManifest(
            f"{MANIFEST_FILENAME} parsing failed: {e}", {"path": manifest_path}
        ) from e
    except OSError as e:
        raise InvalidManifest(
            f"{MANIFEST_FILENAME} cannot be read: {e}", {"path": manifest_path}
        ) from e
    return Manifest.from_dict(data)
