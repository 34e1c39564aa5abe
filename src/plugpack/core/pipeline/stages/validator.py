from __future__ import annotations

"""
Plugin Validation Stage.

Two independent checks run on a compiled plugin:

1. Permission schema: every declared permission must exist in the host's
   permission registry.
2. Base-class conformance: the entry module, executed in a sandbox, must
   export a class whose instances derive from the host's base class.

Capability names surfaced in the packaged manifest are filtered here as
well when the host publishes a capability registry.
"""

import logging
import posixpath
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional

from plugpack.core.services.sandbox import (
    NoopLogger,
    Sandbox,
    VirtualModuleTable,
    placeholder_info,
)
from plugpack.domain.errors import InheritanceValidationFailure, PermissionSchemaInvalid
from plugpack.domain.models import CompilationResult

if TYPE_CHECKING:
    from plugpack.core.host import HostApi

logger = logging.getLogger(__name__)

DEFAULT_EXPORT = "default"


# -----------------------------------------------------------------------------
# PERMISSIONS
# -----------------------------------------------------------------------------

def flatten_permission_registry(registry: Any) -> List[str]:
    """
    Flatten a nested permission registry into the list of valid names.

    Entries may be ``{"name": ...}`` mappings, objects with a ``name``
    attribute or plain strings. Nested scopes are walked recursively.

    Args:
        registry: ``{scope: {key: entry}}`` style mapping (or a flat list).

    Returns:
        List[str]: Permission names in registry order.
    """
    names: List[str] = []

    def walk(node: Any) -> None:
        if isinstance(node, str):
            names.append(node)
        elif isinstance(node, Mapping):
            if isinstance(node.get("name"), str):
                names.append(node["name"])
                return
            for value in node.values():
                walk(value)
        elif isinstance(node, (list, tuple, set, frozenset)):
            for value in node:
                walk(value)
        elif isinstance(getattr(node, "name", None), str):
            names.append(node.name)

    walk(registry or {})
    return names


def validate_permissions_schema(permissions: Any, registry: Any) -> None:
    """
    Check declared permissions against the host registry.

    An absent or empty permissions list is valid.

    Args:
        permissions: The manifest's ``permissions`` value as written.
        registry: Host permission registry (nested or flat).

    Raises:
        PermissionSchemaInvalid: ``not-a-list`` if the value is not a list,
            ``unknown-permission`` naming the first unknown permission.
    """
    if permissions is None:
        return
    if not isinstance(permissions, list):
        raise PermissionSchemaInvalid(
            f"Invalid permission definition: expected a list, received {type(permissions).__name__}.",
            PermissionSchemaInvalid.NOT_A_LIST,
        )
    if not permissions:
        return

    known = set(flatten_permission_registry(registry))
    for item in permissions:
        if not item:
            continue
        name = item.get("name") if isinstance(item, Mapping) else getattr(item, "name", item)
        if name not in known:
            raise PermissionSchemaInvalid(
                f"Invalid permission \"{name}\" defined in the manifest.",
                PermissionSchemaInvalid.UNKNOWN_PERMISSION,
                permission=str(name),
            )
    logger.debug(f"Permission schema valid ({len(permissions)} declared).")


# -----------------------------------------------------------------------------
# CAPABILITIES
# -----------------------------------------------------------------------------

def filter_known_capabilities(implemented: Iterable[str], known: Optional[Iterable[str]]) -> List[str]:
    """
    Drop capability names the host does not know about.

    Without a registry (``known`` is None) every name is kept.
    """
    implemented = list(implemented)
    if known is None:
        return implemented

    known_set = set(known)
    kept: List[str] = []
    for name in implemented:
        if name in known_set or name.rsplit(".", 1)[-1] in known_set:
            kept.append(name)
        else:
            logger.warning(f"Ignoring unknown capability '{name}' declared by the plugin.")
    return kept


# -----------------------------------------------------------------------------
# INHERITANCE
# -----------------------------------------------------------------------------

def check_inheritance(result: CompilationResult, host_api: "HostApi") -> type:
    """
    Execute the entry module in a sandbox and verify its exported class.

    The class is ``default`` if the module defines it, else the attribute
    named after the entry file stem. It is instantiated with placeholder
    metadata and a no-op logger.

    Args:
        result: Compilation output holding every compiled module.
        host_api: Supplies host modules and the required base class.

    Returns:
        type: The validated entry class.

    Raises:
        InheritanceValidationFailure: ``missing-export``, ``wrong-ancestor``
            or ``load-error``.
    """
    entry = result.entry_file or (result.main_file.source_path if result.main_file else "")
    main = result.main_file
    if main is None:
        raise InheritanceValidationFailure(
            f"No compiled output for entry file {entry}.",
            InheritanceValidationFailure.MISSING_EXPORT,
            entry,
        )

    sandbox = Sandbox(VirtualModuleTable.from_result(result), host_api)
    try:
        module = sandbox.load(main.path)
    except Exception as e:
        raise InheritanceValidationFailure(
            f"Entry module {entry} failed to load: {type(e).__name__}: {e}",
            InheritanceValidationFailure.LOAD_ERROR,
            entry,
        ) from e

    stem = posixpath.splitext(posixpath.basename(main.source_path))[0]
    cls = getattr(module, DEFAULT_EXPORT, None)
    if not isinstance(cls, type):
        cls = getattr(module, stem, None)
    if not isinstance(cls, type):
        raise InheritanceValidationFailure(
            f"Entry file {entry} exports no '{DEFAULT_EXPORT}' class and no class named '{stem}'.",
            InheritanceValidationFailure.MISSING_EXPORT,
            entry,
        )

    try:
        instance = cls(placeholder_info(), NoopLogger())
    except Exception as e:
        raise InheritanceValidationFailure(
            f"Entry class {cls.__name__} failed to construct: {type(e).__name__}: {e}",
            InheritanceValidationFailure.LOAD_ERROR,
            entry,
        ) from e

    if host_api.base_class is None:
        logger.warning("Host API declares no base class; skipping ancestry check.")
        return cls

    if not isinstance(instance, host_api.base_class):
        raise InheritanceValidationFailure(
            f"Entry class {cls.__name__} does not extend {host_api.base_class.__name__}.",
            InheritanceValidationFailure.WRONG_ANCESTOR,
            entry,
        )

    logger.info(f"Entry class {cls.__name__} extends {host_api.base_class.__name__}.")
    return cls
