from __future__ import annotations

"""
Module Path Arithmetic.

Maps Python import specifiers onto project-relative file keys. All keys are
POSIX paths relative to the project root. A package is either a regular
package (``<dir>/__init__.py``) or a namespace directory, keyed as
``<dir>/`` (``./`` for the project root).
"""

import posixpath
from typing import Iterable, List, Optional, Set, Tuple

from plugpack.domain.constants import OUTPUT_EXTENSION, PACKAGE_INDEX, SOURCE_EXTENSION

ROOT_NAMESPACE_KEY = "./"


# -----------------------------------------------------------------------------
# SPECIFIERS
# -----------------------------------------------------------------------------

def split_specifier(specifier: str) -> Tuple[int, str]:
    """Split ``..pkg.mod`` into ``(2, "pkg.mod")``."""
    stripped = specifier.lstrip(".")
    return len(specifier) - len(stripped), stripped


def join_specifier(level: int, module: Optional[str]) -> str:
    return "." * level + (module or "")


def to_output_path(path: str, extension: str = OUTPUT_EXTENSION) -> str:
    """Rewrite a source key to the key of its emitted output."""
    if path.endswith(SOURCE_EXTENSION):
        return path[: -len(SOURCE_EXTENSION)] + extension
    return path


def module_name_for(key: str) -> str:
    """
    Derive a dotted module name from a file key.

    ``pkg/__init__.py`` -> ``pkg``, ``pkg/mod.py`` -> ``pkg.mod``,
    ``pkg/`` -> ``pkg``. Absolute paths keep only their file stem.
    """
    if key == ROOT_NAMESPACE_KEY:
        return "__root__"
    if key.startswith("/"):
        key = posixpath.basename(key)
    key = key.rstrip("/")
    stem, ext = posixpath.splitext(key)
    if ext and posixpath.basename(stem) == PACKAGE_INDEX:
        stem = posixpath.dirname(stem)
    return stem.replace("/", ".") or "__root__"


# -----------------------------------------------------------------------------
# CANDIDATES
# -----------------------------------------------------------------------------

def importer_base(importer: str, level: int) -> Optional[str]:
    """
    Directory a relative import of ``level`` dots starts from.

    Returns None when the import climbs above the project root.
    """
    base = posixpath.dirname(importer)
    for _ in range(level - 1):
        if not base:
            return None
        base = posixpath.dirname(base)
    return base


def _join(base: str, module: str) -> str:
    parts = [p for p in module.split(".") if p]
    if not parts:
        return base
    return posixpath.join(base, *parts) if base else posixpath.join(*parts)


def candidate_bases(level: int, importer: str) -> List[str]:
    """
    Directories an import is looked up from.

    Relative imports start at the importer's package walked up ``level - 1``
    times. Absolute imports try the importer's directory, then the root.
    """
    if level > 0:
        base = importer_base(importer, level)
        return [] if base is None else [base]
    importer_dir = posixpath.dirname(importer)
    return [importer_dir, ""] if importer_dir else [""]


def candidate_paths(module: str, level: int, importer: str) -> List[str]:
    """Extension-less candidate paths for a specifier, in lookup order."""
    return [_join(base, module) for base in candidate_bases(level, importer)]


def expand_candidate(path: str, extension: str = SOURCE_EXTENSION) -> List[str]:
    """File keys tried for one candidate path: package index first, then module."""
    index = posixpath.join(path, PACKAGE_INDEX + extension) if path else PACKAGE_INDEX + extension
    if not path:
        return [index]
    return [index, path + extension]


def find_module_file(
        module: str,
        level: int,
        importer: str,
        keys: Iterable[str],
        extension: str = SOURCE_EXTENSION,
) -> Optional[str]:
    """Return the first existing file key for a specifier, or None."""
    key_set = keys if isinstance(keys, (set, frozenset, dict)) else set(keys)
    for path in candidate_paths(module, level, importer):
        for key in expand_candidate(path, extension):
            if key in key_set:
                return key
    return None


# -----------------------------------------------------------------------------
# PACKAGES
# -----------------------------------------------------------------------------

def namespace_key(directory: str) -> str:
    return directory + "/" if directory else ROOT_NAMESPACE_KEY


def is_package_key(key: str) -> bool:
    return key.endswith("/") or posixpath.basename(key).startswith(PACKAGE_INDEX + ".")


def package_dir(key: str) -> Optional[str]:
    """Directory holding the submodules of a package key, None for plain modules."""
    if key == ROOT_NAMESPACE_KEY:
        return ""
    if key.endswith("/"):
        return key[:-1]
    if is_package_key(key):
        return posixpath.dirname(key)
    return None


def locate_in(
        directory: str,
        keys: Set[str],
        extension: str = SOURCE_EXTENSION,
        allow_namespace: bool = True,
) -> Optional[str]:
    """Key of the module or package found at ``directory`` (extension-less)."""
    for key in expand_candidate(directory, extension):
        if key in keys:
            return key
    if allow_namespace:
        prefix = directory + "/" if directory else ""
        if any(k.startswith(prefix) for k in keys):
            return namespace_key(directory)
    return None


def find_child(
        parent_key: str,
        name: str,
        keys: Set[str],
        extension: str = SOURCE_EXTENSION,
) -> Optional[str]:
    """Key of submodule ``name`` of a package key, or None."""
    directory = package_dir(parent_key)
    if directory is None:
        return None
    return locate_in(_join(directory, name), keys, extension)


def resolve_chain(
        module: str,
        level: int,
        importer: str,
        keys: Set[str],
        extension: str = SOURCE_EXTENSION,
) -> Optional[List[str]]:
    """
    Resolve a specifier to the keys Python would execute for it.

    Absolute imports yield one key per dotted prefix (``a``, ``a.b``,
    ``a.b.c``), namespace directories included. Relative imports yield the
    single key of the target, which for ``from . import x`` is the
    importer's own package.

    Returns:
        Optional[List[str]]: The keys, or None if the target is not part
        of the project.
    """
    for base in candidate_bases(level, importer):
        if level > 0:
            target = locate_in(_join(base, module), keys, extension)
            if target is not None:
                return [target]
            continue

        parts = [p for p in module.split(".") if p]
        chain: List[str] = []
        for i in range(1, len(parts) + 1):
            found = locate_in(_join(base, ".".join(parts[:i])), keys, extension)
            if found is None or (i < len(parts) and not is_package_key(found)):
                break
            chain.append(found)
        else:
            if chain:
                return chain
    return None
