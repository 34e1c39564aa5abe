from __future__ import annotations

"""
Domain Constants and Static Data Structures.

Provides centralized access to build-wide constants: tool identity for the
packaging marker, well-known project file names, extension mapping, the
built-in module allow-list and the default ignore patterns used by the
Loader and the Packager.
"""

from typing import Dict, FrozenSet, List, Tuple

TOOL_NAME = "plugpack"
TOOL_VERSION = "1.4.0"

# -----------------------------------------------------------------------------
# PROJECT LAYOUT
# -----------------------------------------------------------------------------
MANIFEST_FILENAME = "plugin.json"
PROJECT_CONFIG_FILENAME = ".plugpackrc"
PACKAGED_BY_FILENAME = ".packagedby"
LOCK_FILENAME = "requirements.txt"

SOURCE_EXTENSION = ".py"
OUTPUT_EXTENSION = ".py"
PACKAGE_INDEX = "__init__"

# Directories pruned from every walk regardless of user configuration
ALWAYS_SKIPPED_DIRS: FrozenSet[str] = frozenset({
    ".git", ".hg", ".svn",
    "__pycache__", "node_modules",
    ".venv", "venv", ".tox",
    ".mypy_cache", ".pytest_cache",
})

# Glob patterns removed from the archive's support files
DEFAULT_IGNORED_FILES: List[str] = [
    "**/README.md",
    "**/*.py",
    "**/*.pyi",
    "**/*.pyc",
    "**/__pycache__/**",
    "**/test_*.py",
    "**/*_test.py",
    "**/dist/**",
    "**/.*",
]

# -----------------------------------------------------------------------------
# MODULE RESOLUTION
# -----------------------------------------------------------------------------
DEFAULT_HOST_NAMESPACE = "apps_engine"

DEFAULT_LEGACY_ALIASES: Dict[str, str] = {
    "apps_definition": "apps_engine.definition",
}

# Importers under this path are stub files shipped with the type checker
BUILTIN_TYPE_DEFINITIONS_PATTERN = r"(^|/)typeshed/stdlib/\S+\.pyi$"

# Standard-library modules a plugin may import without any lookup
ALLOWED_BUILTIN_MODULES: FrozenSet[str] = frozenset({
    "__future__",
    "abc",
    "base64",
    "collections",
    "collections.abc",
    "dataclasses",
    "datetime",
    "enum",
    "functools",
    "hashlib",
    "itertools",
    "json",
    "math",
    "re",
    "string",
    "typing",
    "urllib.parse",
    "uuid",
})

CAPABILITY_DECORATORS: Tuple[str, ...] = ("implements", "implementer")

# -----------------------------------------------------------------------------
# COMPILATION TARGET
# -----------------------------------------------------------------------------
DEFAULT_TARGET_VERSION: Tuple[int, int] = (3, 8)
MIN_TARGET_MINOR = 7
