from __future__ import annotations

"""
Pipeline Setup & Configuration Validation Stage.

Acts as the gatekeeper of the pipeline:
1. Type coercion of the layered configuration dictionary.
2. Target version parsing.
3. Path normalization of the project directory and the archive path.
"""

import logging
import os
from typing import Any, Dict, List, Tuple

from plugpack.domain.config import get_default_config
from plugpack.domain.constants import DEFAULT_TARGET_VERSION, MIN_TARGET_MINOR
from plugpack.infra.fs import normalize_path, safe_mkdir

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def validate_config(
        config: Any,
        *,
        strict: bool = False,
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate and normalize a build configuration dictionary.

    Converts untrusted input (CLI flags, ``.plugpackrc``) into strictly
    typed settings and fills missing keys with defaults.

    Args:
        config: Raw configuration data (usually a dictionary).
        strict: If True, raises exceptions on type mismatch instead of coercing.

    Returns:
        Tuple[Dict[str, Any], List[str]]: The normalized configuration and
        the list of warnings produced while coercing it.
    """
    warnings: List[str] = []
    defaults = get_default_config()

    if not isinstance(config, dict):
        msg = f"Invalid config type: expected dict, received {type(config).__name__}."
        if strict:
            raise TypeError(msg)
        warnings.append(f"{msg} Using defaults.")
        logger.warning(msg)
        return defaults, warnings

    merged: Dict[str, Any] = dict(defaults)
    merged.update(config)

    string_fields = [
        "target_version", "host_package", "base_class",
        "permissions_attr", "capabilities_attr",
    ]

    bool_fields = [
        "bundle", "minify", "inline_external",
        "strict_resolution", "continue_on_diagnostics",
    ]

    list_fields = ["ignore", "ignored_files"]

    for field in string_fields:
        merged[field] = _as_str(merged.get(field), defaults[field], field, warnings, strict)

    # May legitimately be empty
    url = merged.get("permissions_url")
    merged["permissions_url"] = _as_str(url, "", "permissions_url", warnings, strict)

    for field in bool_fields:
        merged[field] = _as_bool(merged.get(field), defaults[field], field, warnings, strict)

    for field in list_fields:
        merged[field] = _as_list_str(merged.get(field), defaults[field], field, warnings, strict)

    try:
        parse_target_version(merged["target_version"])
    except ValueError as e:
        if strict:
            raise
        warnings.append(f"{e} Using fallback.")
        merged["target_version"] = defaults["target_version"]

    return merged, warnings


def parse_target_version(value: Any) -> Tuple[int, int]:
    """
    Parse a ``"3.8"`` style version string into a ``(major, minor)`` tuple.

    Raises:
        ValueError: If the value is malformed or not a supported Python 3 target.
    """
    if isinstance(value, tuple) and len(value) == 2:
        major, minor = value
    else:
        parts = str(value or "").strip().split(".")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValueError(f"Invalid target version '{value}': expected 'MAJOR.MINOR'.")
        major, minor = int(parts[0]), int(parts[1])

    if major != DEFAULT_TARGET_VERSION[0] or minor < MIN_TARGET_MINOR:
        raise ValueError(
            f"Unsupported target version '{major}.{minor}': "
            f"expected 3.{MIN_TARGET_MINOR} or later."
        )
    return int(major), int(minor)


def prepare_paths(source_dir: str, output_file: str) -> Tuple[str, str]:
    """
    Resolve the project directory and the archive path.

    The archive's parent directory is created if needed. A missing ``.zip``
    suffix is appended.

    Returns:
        Tuple[str, str]: Absolute project directory and absolute archive path.

    Raises:
        NotADirectoryError: If the project directory does not exist.
        OSError: If the output directory cannot be created.
    """
    base_path = normalize_path(source_dir, os.getcwd())
    if not os.path.isdir(base_path):
        raise NotADirectoryError(f"Invalid or non-existent project directory: {base_path}")

    out_path = normalize_path(output_file, os.path.join(base_path, "dist", "plugin.zip"))
    if not out_path.lower().endswith(".zip"):
        out_path += ".zip"

    ok, err = safe_mkdir(os.path.dirname(out_path))
    if not ok:
        raise OSError(f"Critical error creating output directory: {err}")

    logger.debug(f"Build paths resolved: {base_path} -> {out_path}")
    return base_path, out_path


# -----------------------------------------------------------------------------
# PRIVATE HELPERS: TYPE COERCION
# -----------------------------------------------------------------------------

def _as_str(value: Any, fallback: str, field: str, warnings: List[str], strict: bool) -> str:
    if value is None:
        return fallback
    if isinstance(value, str):
        v = value.strip()
        return v if v else fallback

    msg = f"Invalid field '{field}': expected str, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_bool(value: Any, fallback: bool, field: str, warnings: List[str], strict: bool) -> bool:
    """Coerce numbers and human-friendly keywords into booleans."""
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback

    if not strict:
        if isinstance(value, (int, float)) and value in (0, 1):
            warnings.append(f"Field '{field}' converted from number {value} to bool.")
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s in ("true", "1", "yes", "y", "on"):
                warnings.append(f"Field '{field}' converted from '{value}' to True.")
                return True
            if s in ("false", "0", "no", "n", "off"):
                warnings.append(f"Field '{field}' converted from '{value}' to False.")
                return False

    msg = f"Invalid field '{field}': expected bool, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_list_str(value: Any, fallback: List[str], field: str, warnings: List[str], strict: bool) -> List[str]:
    """Ensure input is a list of stripped strings, accepting CSV strings."""
    if value is None:
        return list(fallback)

    if isinstance(value, str) and not strict:
        items = [x.strip() for x in value.split(",") if x.strip()]
        if items:
            warnings.append(f"Field '{field}' converted from CSV string to list.")
        return items or list(fallback)

    if isinstance(value, list):
        out: List[str] = []
        for i, item in enumerate(value):
            if isinstance(item, str):
                s = item.strip()
                if s:
                    out.append(s)
            else:
                msg = f"Invalid item in '{field}[{i}]': expected str."
                if strict:
                    raise TypeError(msg)
                warnings.append(f"{msg} Item discarded.")
        return out

    msg = f"Invalid field '{field}': expected list[str], received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return list(fallback)
