from __future__ import annotations

"""
Module Resolution Policy.

Decides, for one import specifier and one importing file, where the
imported module comes from. Rules are tried in order and the first match
wins:

1. legacy host namespace aliases are rewritten;
2. importers inside the type checker's bundled stdlib stubs resolve to
   nothing (ABSENT);
3. allow-listed standard modules resolve to a synthetic path (BUILTIN);
4. project files, package index first (IN_PROJECT);
5. the injected external resolver (EXTERNAL).

Anything else is UNRESOLVED. The policy holds no mutable state; the only
side effect it may cause is calling the external resolver.
"""

import logging
import re
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional

from plugpack.core.analysis.ast_parser import ImportRef
from plugpack.core.analysis.paths import (
    candidate_paths,
    expand_candidate,
    find_module_file,
    join_specifier,
    split_specifier,
)
from plugpack.domain.constants import (
    ALLOWED_BUILTIN_MODULES,
    BUILTIN_TYPE_DEFINITIONS_PATTERN,
    DEFAULT_HOST_NAMESPACE,
    DEFAULT_LEGACY_ALIASES,
    SOURCE_EXTENSION,
)
from plugpack.domain.models import Resolution, ResolutionKind

logger = logging.getLogger(__name__)

ExternalResolver = Callable[[str], Optional[str]]

_TYPE_DEFINITIONS_RX = re.compile(BUILTIN_TYPE_DEFINITIONS_PATTERN)


class ResolverPolicy:
    """
    Import resolution over a fixed set of project files.

    Args:
        files: Project file keys (a mapping or any iterable of paths).
        external_resolver: Maps an absolute specifier to a file path. May
            return None or raise ImportError/ValueError when not found.
        namespace: Host API package name.
        legacy_aliases: Deprecated specifier prefixes and their targets.
        builtins: Standard modules resolved without lookup.
        extension: Extension of project module files.
    """

    def __init__(
            self,
            files: Iterable[str],
            external_resolver: Optional[ExternalResolver] = None,
            *,
            namespace: str = DEFAULT_HOST_NAMESPACE,
            legacy_aliases: Optional[Mapping[str, str]] = None,
            builtins: FrozenSet[str] = ALLOWED_BUILTIN_MODULES,
            extension: str = SOURCE_EXTENSION,
    ):
        self._keys: FrozenSet[str] = frozenset(files)
        self._external = external_resolver
        self.namespace = namespace
        self._aliases: Dict[str, str] = dict(
            DEFAULT_LEGACY_ALIASES if legacy_aliases is None else legacy_aliases
        )
        self._builtins = builtins
        self._extension = extension

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def rewrite_legacy(self, specifier: str) -> str:
        for alias, target in self._aliases.items():
            if specifier == alias or specifier.startswith(alias + "."):
                return target + specifier[len(alias):]
        return specifier

    def resolve(self, specifier: str, importer: str) -> Resolution:
        """
        Resolve one specifier as imported from ``importer``.

        Args:
            specifier: Dotted import target, leading dots for relative ones.
            importer: Project key (or absolute path) of the importing file.

        Returns:
            Resolution: The matching rule's outcome.
        """
        level, module = split_specifier(specifier)
        if level == 0:
            module = self.rewrite_legacy(module)
        spec = join_specifier(level, module)

        if _TYPE_DEFINITIONS_RX.search(importer.replace("\\", "/")):
            return Resolution(ResolutionKind.ABSENT, spec)

        if level == 0 and module in self._builtins:
            return Resolution(ResolutionKind.BUILTIN, spec, f"{module}{SOURCE_EXTENSION}")

        in_project = find_module_file(module, level, importer, self._keys, self._extension)
        if in_project is not None:
            return Resolution(ResolutionKind.IN_PROJECT, spec, in_project)

        if level > 0 or not module or self._external is None:
            return Resolution(ResolutionKind.UNRESOLVED, spec)

        try:
            path = self._external(module)
        except (ImportError, ValueError) as e:
            logger.debug(f"External resolution of '{module}' failed: {e}")
            path = None

        if not path:
            return Resolution(ResolutionKind.UNRESOLVED, spec)
        return Resolution(ResolutionKind.EXTERNAL, spec, path)

    def resolve_from_import(
            self,
            module: str,
            names: Iterable[str],
            level: int,
            importer: str,
    ) -> List[Resolution]:
        """
        Resolve ``from <module> import <names>``.

        When the module itself is unresolved but every imported name is a
        project submodule of it, the statement is resolved as imports of
        those submodules.
        """
        spec = join_specifier(level, module)
        base = self.resolve(spec, importer)
        if base.resolved:
            return [base]

        names = [n for n in names if n != "*"]
        if not names:
            return [base]

        subs = [self.resolve(_child(spec, name), importer) for name in names]
        if all(s.kind is ResolutionKind.IN_PROJECT for s in subs):
            return subs
        return [base]

    def resolve_import(self, ref: ImportRef, importer: str) -> List[Resolution]:
        if ref.is_from:
            return self.resolve_from_import(ref.module, ref.names, ref.level, importer)
        return [self.resolve(ref.specifier, importer)]

    def project_candidates(self, specifier: str, importer: str) -> List[str]:
        """File keys tried for a specifier, in lookup order (for reporting)."""
        level, module = split_specifier(specifier)
        out: List[str] = []
        for path in candidate_paths(module, level, importer):
            out.extend(expand_candidate(path, self._extension))
        return out


def _child(specifier: str, name: str) -> str:
    if specifier.endswith(".") or not specifier:
        return specifier + name
    return f"{specifier}.{name}"
