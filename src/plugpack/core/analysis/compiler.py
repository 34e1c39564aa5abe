from __future__ import annotations

"""
Compiler Host.

Drives CPython's own compiler services over an in-memory compilation unit:

1. Pre-flight validation of the unit (entry file, paths, content).
2. Parsing and import resolution through the ResolverPolicy.
3. Option diagnostics.
4. Whole-program diagnostics (grammar cap, code generation, imported names).
5. Capability extraction from the entry module.
6. Emission of every parsable module.

Diagnostics never abort compilation; the caller decides what to do with a
result whose ``diagnostics`` list is not empty.
"""

import ast
import logging
import re
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Tuple

from plugpack.core.analysis.ast_parser import (
    ImportRef,
    has_dynamic_exports,
    iter_imports,
    parse_source,
    rewrite_import_modules,
    source_line,
    top_level_names,
)
from plugpack.core.analysis.capabilities import extract_capabilities
from plugpack.core.analysis.paths import find_child, resolve_chain, to_output_path
from plugpack.core.analysis.resolver import ResolverPolicy
from plugpack.core.host import HostApi
from plugpack.domain.constants import (
    ALLOWED_BUILTIN_MODULES,
    DEFAULT_TARGET_VERSION,
    MIN_TARGET_MINOR,
    OUTPUT_EXTENSION,
)
from plugpack.domain.errors import (
    CompilerOptionsFailure,
    InvalidSourceFile,
    ModuleResolutionFailure,
)
from plugpack.domain.models import (
    CompilationResult,
    CompilationUnit,
    CompiledFile,
    Diagnostic,
    ResolutionKind,
    SourceFile,
)
from plugpack.infra.fs import normalize_source_path

logger = logging.getLogger(__name__)

_EXTENSION_RX = re.compile(r"^\.[A-Za-z0-9_]+$")


# ==============================================================================
# OPTIONS
# ==============================================================================

@dataclass(frozen=True)
class CompilerOptions:
    """
    Compiler Host settings.

    Attributes:
        target_version: Oldest Python grammar the emitted code must run on.
        strict_resolution: Raise on the first unresolved import instead of
            reporting it as a diagnostic.
        check_imported_names: Report ``from <project module> import <name>``
            statements naming something the module does not define.
        output_extension: Extension of emitted module keys.
    """
    target_version: Tuple[int, int] = DEFAULT_TARGET_VERSION
    strict_resolution: bool = False
    check_imported_names: bool = True
    output_extension: str = OUTPUT_EXTENSION

    def diagnostics(self) -> List[Diagnostic]:
        """Problems with the options themselves, reported without a filename."""
        out: List[Diagnostic] = []
        major, minor = self.target_version
        if major != 3 or minor < MIN_TARGET_MINOR:
            out.append(Diagnostic(
                f"Unsupported target version {major}.{minor}: "
                f"expected 3.{MIN_TARGET_MINOR} or later."
            ))
        if not _EXTENSION_RX.match(self.output_extension or ""):
            out.append(Diagnostic(f"Invalid output extension: '{self.output_extension}'."))
        return out


# ==============================================================================
# COMPILER HOST
# ==============================================================================

class CompilerHost:
    """
    Compiles one plugin project at a time.

    The external resolution cache is owned by the instance; a host must not
    be shared between concurrent builds of different projects.
    """

    def __init__(self, host_api: HostApi, options: Optional[CompilerOptions] = None):
        self.host_api = host_api
        self.options = options or CompilerOptions()
        self._library_cache: Dict[str, Optional[str]] = {}

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def compile(self, unit: CompilationUnit) -> CompilationResult:
        """
        Compile a unit into emitted modules plus diagnostics.

        Args:
            unit: Manifest and source files. Never mutated.

        Returns:
            CompilationResult: Emitted files, entry module, capabilities and
            diagnostics.

        Raises:
            InvalidSourceFile: If the unit fails pre-flight validation.
            ModuleResolutionFailure: On an unresolved import in strict mode.
            CompilerOptionsFailure: If the options are invalid and no
                resolution diagnostics were collected.
        """
        start = time.perf_counter()
        manifest = unit.manifest

        files = self._preflight(unit)
        resolver = ResolverPolicy(
            files.keys(),
            self._resolve_external,
            namespace=self.host_api.namespace,
            legacy_aliases=self.host_api.legacy_aliases,
            builtins=ALLOWED_BUILTIN_MODULES,
        )

        # --- 1. Parse and resolve ---
        trees: Dict[str, ast.Module] = {}
        for path in sorted(files):
            try:
                trees[path] = parse_source(files[path].content, path)
            except SyntaxError:
                logger.debug(f"Skipping resolution of unparsable module: {path}")

        unresolved = self._resolve_imports(trees, files, resolver)

        # --- 2. Option diagnostics ---
        option_diags = self.options.diagnostics()
        if option_diags:
            if unresolved:
                return self._result(manifest, {}, None, [], unresolved, start)
            raise CompilerOptionsFailure(
                f"Compiler options contain {len(option_diags)} diagnostics: "
                + "; ".join(d.message for d in option_diags),
                {"diagnostics": [d.message for d in option_diags]},
            )

        # --- 3. Whole-program diagnostics ---
        diagnostics: List[Diagnostic] = []
        for path in sorted(files):
            diagnostics.extend(self._file_diagnostics(files[path]))
        diagnostics.extend(unresolved)
        if self.options.check_imported_names:
            diagnostics.extend(self._imported_name_diagnostics(trees, files))

        # --- 4. Capabilities ---
        entry_tree = trees.get(manifest.entry_file)
        implemented = extract_capabilities(entry_tree) if entry_tree is not None else []

        # --- 5. Emission ---
        emitted: Dict[str, CompiledFile] = {}
        for path, tree in trees.items():
            compiled = self._emit(tree)
            out_key = to_output_path(path, self.options.output_extension)
            emitted[out_key] = CompiledFile(
                path=out_key,
                source_path=path,
                compiled=compiled,
                revision=files[path].revision,
            )

        main_file = next(
            (f for f in emitted.values() if f.source_path == manifest.entry_file), None
        )
        if main_file is None and not diagnostics:
            diagnostics.append(Diagnostic(
                f"Entry file {manifest.entry_file} produced no output.",
                filename=manifest.entry_file,
            ))

        result = self._result(manifest, emitted, main_file, implemented, diagnostics, start)
        logger.info(
            f"Compiled {len(emitted)} modules in {result.duration_ms:.1f} ms "
            f"({len(diagnostics)} diagnostics)."
        )
        return result

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _preflight(self, unit: CompilationUnit) -> Dict[str, SourceFile]:
        files: Dict[str, SourceFile] = {}
        raw_keys: Dict[str, str] = {}
        for key, source in unit.files.items():
            normalized = normalize_source_path(source.path or key)
            if not normalized:
                raise InvalidSourceFile(f'Invalid source file: "{key}".', key)
            if normalized in files:
                raise InvalidSourceFile(
                    f'Duplicate source file: "{key}" and "{raw_keys[normalized]}" '
                    f'both refer to "{normalized}".',
                    key,
                )
            files[normalized] = source if source.path == normalized else replace(source, path=normalized)
            raw_keys[normalized] = key

        entry = normalize_source_path(unit.manifest.entry_file) or unit.manifest.entry_file
        entry_file = files.get(entry)
        if entry_file is None or not entry_file.content.strip():
            raise InvalidSourceFile(
                f"Invalid plugin package. Could not find the entry file ({entry}).", entry
            )

        for normalized, source in files.items():
            if not source.content or not source.content.strip():
                key = raw_keys[normalized]
                raise InvalidSourceFile(f'Invalid source file: "{key}".', key)
        return files

    def _resolve_imports(
            self,
            trees: Mapping[str, ast.Module],
            files: Mapping[str, SourceFile],
            resolver: ResolverPolicy,
    ) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        external_seen = False
        for path, tree in trees.items():
            for ref in iter_imports(tree):
                for resolution in resolver.resolve_import(ref, path):
                    if resolution.kind is ResolutionKind.EXTERNAL and not external_seen:
                        if not self.host_api.is_host_specifier(resolution.specifier):
                            external_seen = True
                            logger.warning("Plugin has external module(s) as dependency.")
                    if resolution.resolved:
                        continue
                    if self.options.strict_resolution:
                        raise ModuleResolutionFailure(resolution.specifier, path)
                    diagnostics.append(self._ref_diagnostic(
                        f"Failed to resolve module: {resolution.specifier}", path, ref, files
                    ))
        return diagnostics

    def _file_diagnostics(self, source: SourceFile) -> List[Diagnostic]:
        try:
            tree = parse_source(source.content, source.path, self.options.target_version)
        except SyntaxError as e:
            return [Diagnostic(
                message=e.msg,
                filename=source.path,
                line=e.lineno,
                character=max((e.offset or 1) - 1, 0),
                line_text=(e.text or "").rstrip("\n") or None,
            )]

        try:
            compile(tree, source.path, "exec", dont_inherit=True)
        except SyntaxError as e:
            return [Diagnostic(
                message=e.msg,
                filename=source.path,
                line=e.lineno,
                character=max((e.offset or 1) - 1, 0),
                line_text=source_line(source.content, e.lineno),
            )]
        except ValueError as e:
            return [Diagnostic(str(e), filename=source.path)]
        return []

    def _imported_name_diagnostics(
            self,
            trees: Mapping[str, ast.Module],
            files: Mapping[str, SourceFile],
    ) -> List[Diagnostic]:
        keys = set(trees)
        exports = {
            path: (top_level_names(tree), has_dynamic_exports(tree))
            for path, tree in trees.items()
        }

        diagnostics: List[Diagnostic] = []
        for path, tree in trees.items():
            for ref in iter_imports(tree):
                if not ref.is_from:
                    continue
                chain = resolve_chain(ref.module, ref.level, path, keys)
                if not chain:
                    continue
                target = chain[-1]
                names, dynamic = exports.get(target, (set(), True))
                if dynamic:
                    continue
                for name in ref.names:
                    if name == "*" or name in names:
                        continue
                    if find_child(target, name, keys) is not None:
                        continue
                    diagnostics.append(self._ref_diagnostic(
                        f"Module '{ref.specifier}' has no exported member '{name}'.",
                        path, ref, files,
                    ))
        return diagnostics

    def _emit(self, tree: ast.Module) -> str:
        rewritten = rewrite_import_modules(tree, self.host_api.rewrite_legacy)
        return ast.unparse(rewritten) + "\n"

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _resolve_external(self, specifier: str) -> Optional[str]:
        if specifier not in self._library_cache:
            try:
                self._library_cache[specifier] = self.host_api.resolve(specifier)
            except (ImportError, ValueError) as e:
                logger.debug(f"Library lookup failed for '{specifier}': {e}")
                self._library_cache[specifier] = None
        return self._library_cache[specifier]

    @staticmethod
    def _ref_diagnostic(
            message: str,
            path: str,
            ref: ImportRef,
            files: Mapping[str, SourceFile],
    ) -> Diagnostic:
        return Diagnostic(
            message=message,
            filename=path,
            line=ref.lineno or None,
            character=ref.col_offset,
            line_text=source_line(files[path].content, ref.lineno),
        )

    @staticmethod
    def _result(manifest, files, main_file, implemented, diagnostics, start) -> CompilationResult:
        return CompilationResult(
            files=files,
            main_file=main_file,
            implemented=list(implemented),
            diagnostics=list(diagnostics),
            duration_ms=(time.perf_counter() - start) * 1000.0,
            permissions=manifest.permissions,
            name=manifest.name,
            version=manifest.version,
            entry_file=manifest.entry_file,
        )


def compile_unit(
        unit: CompilationUnit,
        host_api: HostApi,
        options: Optional[CompilerOptions] = None,
) -> CompilationResult:
    """Compile with a fresh host, so no library cache outlives the call."""
    return CompilerHost(host_api, options).compile(unit)
