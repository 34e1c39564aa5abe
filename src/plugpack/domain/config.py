from __future__ import annotations

"""
Configuration Domain Management.

Dict-based build configuration. Values are layered in increasing order of
precedence: built-in defaults, the project's ``.plugpackrc`` file and the
command line flags.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from plugpack.domain.constants import (
    DEFAULT_HOST_NAMESPACE,
    DEFAULT_TARGET_VERSION,
    PROJECT_CONFIG_FILENAME,
)

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Constants & Defaults
# -----------------------------------------------------------------------------
DEFAULT_BASE_CLASS_ATTR = "definition.App"
DEFAULT_PERMISSIONS_ATTR = "permissions.PERMISSIONS"
DEFAULT_CAPABILITIES_ATTR = "interfaces.CAPABILITIES"

# .plugpackrc keys that are not build settings
_PROJECT_LIST_KEYS = {"ignore": "ignore", "ignoredFiles": "ignored_files"}


# -----------------------------------------------------------------------------
# Configuration Models (Dict-based)
# -----------------------------------------------------------------------------
def get_default_config() -> Dict[str, Any]:
    """
    Generate the default build configuration.

    Returns:
        Dict[str, Any]: Default configuration values.
    """
    return {
        # Output shape
        "bundle": True,
        "minify": True,
        "inline_external": False,

        # Compilation
        "strict_resolution": False,
        "continue_on_diagnostics": False,
        "target_version": ".".join(str(p) for p in DEFAULT_TARGET_VERSION),

        # Filtering
        "ignore": [],
        "ignored_files": [],

        # Host API
        "host_package": DEFAULT_HOST_NAMESPACE,
        "base_class": DEFAULT_BASE_CLASS_ATTR,
        "permissions_attr": DEFAULT_PERMISSIONS_ATTR,
        "capabilities_attr": DEFAULT_CAPABILITIES_ATTR,
        "permissions_url": "",
    }


# -----------------------------------------------------------------------------
# Project Configuration (.plugpackrc)
# -----------------------------------------------------------------------------
def load_project_config(root: str) -> Optional[Dict[str, Any]]:
    """
    Read the project's ``.plugpackrc`` file.

    A missing file is normal. A file that is not a JSON object is reported
    and ignored rather than failing the build.

    Args:
        root: Absolute project directory.

    Returns:
        Optional[Dict[str, Any]]: The decoded object, or None.
    """
    path = os.path.join(root, PROJECT_CONFIG_FILENAME)
    if not os.path.isfile(path):
        logger.debug(f"No {PROJECT_CONFIG_FILENAME} in {root}.")
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable {PROJECT_CONFIG_FILENAME}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {PROJECT_CONFIG_FILENAME}: root is not an object.")
        return None

    ignored = data.get("ignoredFiles")
    if ignored is not None and not isinstance(ignored, list):
        logger.warning(f"Ignoring 'ignoredFiles' in {PROJECT_CONFIG_FILENAME}: expected a list.")
        data = dict(data)
        del data["ignoredFiles"]

    return data


def project_overrides(project_cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Translate ``.plugpackrc`` content into build configuration keys.

    ``ignore`` and ``ignoredFiles`` map to their snake_case settings; every
    other recognized build key is taken as-is. Unknown keys are dropped.
    """
    if not project_cfg:
        return {}

    defaults = get_default_config()
    out: Dict[str, Any] = {}
    for key, value in project_cfg.items():
        if key in _PROJECT_LIST_KEYS:
            out[_PROJECT_LIST_KEYS[key]] = value
        elif key in defaults:
            out[key] = value
        else:
            logger.debug(f"Unknown {PROJECT_CONFIG_FILENAME} key ignored: {key}")
    return out


def merge_layers(*layers: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge configuration layers, later layers winning; list values are concatenated."""
    merged: Dict[str, Any] = get_default_config()
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            if key in ("ignore", "ignored_files") and isinstance(value, list):
                current: List[Any] = list(merged.get(key) or [])
                merged[key] = current + [v for v in value if v not in current]
            else:
                merged[key] = value
    return merged
