from __future__ import annotations

"""
Host API Collaborator.

Describes the runtime that will load the packaged plugin: the import
namespace it exposes, the base class plugins must derive from, the
permission registry and the optional capability registry. Built either by
hand (tests, embedding hosts) or from an installed host package.
"""

import dataclasses
import importlib
import importlib.util
import logging
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from plugpack.domain.config import (
    DEFAULT_BASE_CLASS_ATTR,
    DEFAULT_CAPABILITIES_ATTR,
    DEFAULT_PERMISSIONS_ATTR,
)
from plugpack.domain.constants import DEFAULT_HOST_NAMESPACE, DEFAULT_LEGACY_ALIASES
from plugpack.domain.errors import CompilerOptionsFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostApi:
    """
    Handle on the host runtime's public API.

    Attributes:
        namespace: Top-level package name plugins import the host API from.
        base_class: Class every plugin entry class must derive from.
        permissions: Nested permission registry ``{scope: {key: entry}}``.
        capabilities: Known capability names, or None when the host does
            not publish a registry.
        legacy_aliases: Deprecated import prefixes and their replacements.
        module_loader: Imports a host module by name.
        resolver: Maps an import specifier to a file path; defaults to the
            interpreter's own module finder.
    """
    namespace: str = DEFAULT_HOST_NAMESPACE
    base_class: Optional[type] = None
    permissions: Any = field(default_factory=dict)
    capabilities: Optional[FrozenSet[str]] = None
    legacy_aliases: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LEGACY_ALIASES))
    module_loader: Callable[[str], ModuleType] = importlib.import_module
    resolver: Optional[Callable[[str], str]] = None

    # -------------------------------------------------------------------------
    # Specifier helpers
    # -------------------------------------------------------------------------

    def is_host_specifier(self, specifier: str) -> bool:
        return specifier == self.namespace or specifier.startswith(self.namespace + ".")

    def rewrite_legacy(self, specifier: str) -> str:
        """Replace a deprecated namespace prefix with its current target."""
        for alias, target in self.legacy_aliases.items():
            if specifier == alias or specifier.startswith(alias + "."):
                return target + specifier[len(alias):]
        return specifier

    # -------------------------------------------------------------------------
    # Runtime access
    # -------------------------------------------------------------------------

    def resolve(self, specifier: str) -> str:
        """
        Locate the file backing an absolute import specifier.

        Returns:
            str: The module origin (a file path, or ``built-in``/``frozen``).

        Raises:
            ModuleNotFoundError: If no module answers to the specifier.
        """
        if self.resolver is not None:
            return self.resolver(specifier)

        spec = importlib.util.find_spec(specifier)
        if spec is None or not spec.origin:
            raise ModuleNotFoundError(f"No module named '{specifier}'", name=specifier)
        return spec.origin

    def load_module(self, name: str) -> ModuleType:
        return self.module_loader(name)

    def available_permissions(self) -> List[str]:
        from plugpack.core.pipeline.stages.validator import flatten_permission_registry
        return flatten_permission_registry(self.permissions)

    def with_permissions(self, registry: Any) -> "HostApi":
        return dataclasses.replace(self, permissions=registry)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_package(
            cls,
            package: str = DEFAULT_HOST_NAMESPACE,
            base_attr: str = DEFAULT_BASE_CLASS_ATTR,
            permissions_attr: str = DEFAULT_PERMISSIONS_ATTR,
            capabilities_attr: Optional[str] = DEFAULT_CAPABILITIES_ATTR,
            module_loader: Callable[[str], ModuleType] = importlib.import_module,
    ) -> "HostApi":
        """
        Build a HostApi from an installed host package.

        Attribute paths are dotted and relative to the package, e.g.
        ``definition.App`` looks up ``App`` in ``<package>.definition``.

        Raises:
            CompilerOptionsFailure: If the package or its base class cannot
                be found.
        """
        try:
            module_loader(package)
        except ImportError as e:
            raise CompilerOptionsFailure(
                f"Host API package '{package}' is not importable: {e}", {"package": package}
            ) from e

        base_class = _lookup(package, base_attr, module_loader)
        if not isinstance(base_class, type):
            raise CompilerOptionsFailure(
                f"Host API base class '{package}.{base_attr}' not found.",
                {"package": package, "attribute": base_attr},
            )

        permissions = _lookup(package, permissions_attr, module_loader)
        if permissions is None:
            logger.warning(f"Host package '{package}' publishes no permission registry at '{permissions_attr}'.")
            permissions = {}

        capabilities = None
        if capabilities_attr:
            found = _lookup(package, capabilities_attr, module_loader)
            if found is not None:
                capabilities = frozenset(str(c) for c in found)

        return cls(
            namespace=package,
            base_class=base_class,
            permissions=permissions,
            capabilities=capabilities,
            module_loader=module_loader,
        )


def _lookup(package: str, dotted: str, module_loader: Callable[[str], ModuleType]) -> Any:
    """Resolve a dotted attribute path inside a package, importing submodules on the way."""
    obj: Any = module_loader(package)
    parts = [p for p in dotted.split(".") if p]
    for i, part in enumerate(parts):
        if hasattr(obj, part):
            obj = getattr(obj, part)
            continue
        try:
            obj = module_loader(".".join([package] + parts[:i + 1]))
        except ImportError:
            return None
    return obj
