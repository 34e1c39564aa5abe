from __future__ import annotations

"""
Bundling Stage.

Folds a compiled plugin into one self-contained module. Starting from the
entry module, every import is classified:

- project modules (relative or absolute) are inlined;
- host API and allow-listed standard modules stay external;
- anything else is located through the host; a plain ``.py`` file found on
  disk is inlined when ``inline_external`` is set, otherwise it stays
  external;
- an import that cannot be located aborts with BundleResolutionFailure.

The bundle text is laid out as: ``__future__`` imports of the entry module,
the module runtime, the table of inlined module sources, then the entry
module's own (rewritten) code. Inlined imports become calls into the
runtime (``__bundle_import__``, ``__bundle_from__``, ``__bundle_star__``).
"""

import ast
import logging
import os
from collections import deque
from dataclasses import fields
from typing import Deque, Dict, List, Optional, Set, Tuple

from plugpack.core.analysis.ast_parser import parse_source
from plugpack.core.analysis.paths import (
    find_child,
    importer_base,
    join_specifier,
    module_name_for,
    resolve_chain,
)
from plugpack.core.host import HostApi
from plugpack.core.processing.minifier import minify_code
from plugpack.domain.constants import (
    ALLOWED_BUILTIN_MODULES,
    DEFAULT_TARGET_VERSION,
    PACKAGE_INDEX,
    SOURCE_EXTENSION,
)
from plugpack.domain.errors import BundleError, BundleResolutionFailure
from plugpack.domain.models import BundledResult, CompilationResult

logger = logging.getLogger(__name__)

# ==============================================================================
# RUNTIME
# ==============================================================================

_RUNTIME = '''import types as __bundle_types__
__bundle_cache__ = {}

def __bundle_require__(key):
    module = __bundle_cache__.get(key)
    if module is not None:
        return module
    module = __bundle_types__.ModuleType(__bundle_names__.get(key, key))
    module.__file__ = key
    module.__dict__.update(__bundle_runtime__)
    __bundle_cache__[key] = module
    source = __bundle_modules__.get(key)
    if source is not None:
        exec(compile(source, key, 'exec', dont_inherit=True), module.__dict__)
    return module

def __bundle_import__(keys, attrs, leaf):
    modules = [__bundle_require__(key) for key in keys]
    for parent, child, attr in zip(modules, modules[1:], attrs):
        setattr(parent, attr, child)
    return modules[-1] if leaf else modules[0]

def __bundle_from__(parent_key, name, child_key):
    parent = __bundle_require__(parent_key)
    if child_key is not None and not hasattr(parent, name):
        setattr(parent, name, __bundle_require__(child_key))
    return getattr(parent, name)

def __bundle_star__(namespace, key):
    module = __bundle_require__(key)
    names = getattr(module, '__all__', None)
    if names is None:
        names = [name for name in vars(module) if not name.startswith('_')]
    for name in names:
        namespace[name] = getattr(module, name)
'''

_RUNTIME_EXPORTS = ("__bundle_require__", "__bundle_import__", "__bundle_from__", "__bundle_star__")


# ==============================================================================
# BUNDLER
# ==============================================================================

class Bundler:
    """
    Produces a BundledResult from a CompilationResult.

    Args:
        host_api: Host namespace, allow-list partner and external resolver.
        inline_external: Inline ``.py`` files found outside the project.
        minify: Minify the entry code and every inlined module.
        target_version: Oldest grammar the bundle must parse under.
    """

    def __init__(
            self,
            host_api: HostApi,
            *,
            inline_external: bool = False,
            minify: bool = True,
            target_version: Tuple[int, int] = DEFAULT_TARGET_VERSION,
    ):
        self.host_api = host_api
        self.inline_external = inline_external
        self.minify = minify
        self.target_version = target_version

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def bundle(self, result: CompilationResult) -> BundledResult:
        """
        Bundle the compiled modules reachable from the entry module.

        Raises:
            BundleResolutionFailure: If an import cannot be placed.
            BundleError: If the bundle is rejected under the target version.
        """
        main = result.main_file
        if main is None:
            raise BundleError("Cannot bundle a compilation result without an entry module.")

        state = _BundleState(self, {k: f.compiled for k, f in result.files.items()})
        entry_tree = state.rewrite(main.path, main.compiled)

        while state.queue:
            key = state.queue.popleft()
            source = state.read(key)
            tree = state.rewrite(key, source)
            state.table[key] = self._render(tree)

        futures, body = _split_future_imports(entry_tree)
        bundle_text = self._assemble(futures, state, self._render(body))
        self._check(bundle_text)

        inlined = tuple([main.path] + sorted(k for k in state.table if not k.endswith("/")))
        external = tuple(sorted(state.external))
        logger.info(
            f"Bundled {len(inlined)} modules ({len(external)} external imports, "
            f"{len(bundle_text)} chars)."
        )

        base = {f.name: getattr(result, f.name) for f in fields(CompilationResult)}
        return BundledResult(**base, bundle=bundle_text, inlined=inlined, external=external)

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def _render(self, tree: ast.Module) -> str:
        text = ast.unparse(ast.fix_missing_locations(tree)) + "\n"
        return minify_code(text) if self.minify else text

    def _assemble(self, futures: List[str], state: "_BundleState", entry_code: str) -> str:
        parts: List[str] = []
        if futures:
            parts.append("\n".join(futures) + "\n")
        parts.append(_RUNTIME)

        table_lines = ["__bundle_modules__ = {"]
        table_lines += [f"    {key!r}: {source!r}," for key, source in sorted(state.table.items())]
        table_lines.append("}")
        table_lines.append("__bundle_names__ = {")
        table_lines += [f"    {key!r}: {module_name_for(key)!r}," for key in sorted(state.table)]
        table_lines.append("}")
        table_lines.append(
            "__bundle_runtime__ = {" + ", ".join(f"{n!r}: {n}" for n in _RUNTIME_EXPORTS) + "}"
        )
        parts.append("\n".join(table_lines) + "\n")
        parts.append(entry_code)
        return "\n".join(parts)

    def _check(self, bundle_text: str) -> None:
        try:
            parse_source(bundle_text, "<bundle>", self.target_version)
        except SyntaxError as e:
            major, minor = self.target_version
            raise BundleError(
                f"Bundle is not valid Python {major}.{minor}: {e.msg} (line {e.lineno})",
                {"line": e.lineno, "target_version": f"{major}.{minor}"},
            ) from e


# ==============================================================================
# PRIVATE HELPERS
# ==============================================================================

class _BundleState:
    """Traversal state of one ``Bundler.bundle`` call."""

    def __init__(self, bundler: Bundler, sources: Dict[str, str]):
        self.bundler = bundler
        self.host_api = bundler.host_api
        self.sources = sources
        self.keys: Set[str] = set(sources)
        self.table: Dict[str, str] = {}
        self.queue: Deque[str] = deque()
        self.external: Set[str] = set()
        self._seen: Set[str] = set()

    def read(self, key: str) -> Optional[str]:
        if key.endswith("/"):
            return None
        if key in self.sources:
            return self.sources[key]
        try:
            with open(key, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            raise BundleResolutionFailure(key, "<bundle>", str(e)) from e

    def rewrite(self, key: str, source: Optional[str]) -> ast.Module:
        if source is None:
            return ast.Module(body=[], type_ignores=[])
        try:
            tree = ast.parse(source, filename=key)
        except SyntaxError as e:
            raise BundleError(f"Cannot parse {key} while bundling: {e.msg}", {"file": key}) from e
        return _ImportInliner(self, key).visit(tree)

    def enqueue(self, keys: List[str]) -> None:
        for key in keys:
            if key not in self._seen:
                self._seen.add(key)
                self.table.setdefault(key, "")
                if key.endswith("/"):
                    continue
                self.queue.append(key)

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def locate(self, module: str, level: int, importer: str) -> Optional[List[str]]:
        """Keys to inline for an import, or None to leave it external."""
        spec = join_specifier(level, module)
        if importer.startswith("/"):
            return self._locate_on_disk(module, level, importer, spec)

        if level > 0:
            chain = resolve_chain(module, level, importer, self.keys)
            if chain is None:
                raise BundleResolutionFailure(spec, importer)
            return chain

        if self._is_external_by_policy(module):
            self.external.add(module)
            return None

        chain = resolve_chain(module, 0, importer, self.keys)
        if chain is not None:
            return chain
        return self._locate_external(module, importer)

    def _is_external_by_policy(self, module: str) -> bool:
        if self.host_api.is_host_specifier(self.host_api.rewrite_legacy(module)):
            return True
        parts = module.split(".")
        return any(".".join(parts[:i]) in ALLOWED_BUILTIN_MODULES for i in range(len(parts), 0, -1))

    def _locate_external(self, module: str, importer: str) -> Optional[List[str]]:
        try:
            origin = self.host_api.resolve(module)
        except (ImportError, ValueError) as e:
            raise BundleResolutionFailure(module, importer, str(e)) from e

        if not (self.bundler.inline_external and _is_source_path(origin)):
            self.external.add(module)
            return None

        parts = module.split(".")
        chain: List[str] = []
        for i in range(1, len(parts)):
            try:
                prefix_origin = self.host_api.resolve(".".join(parts[:i]))
            except (ImportError, ValueError):
                prefix_origin = ""
            if not _is_source_path(prefix_origin):
                self.external.add(module)
                return None
            chain.append(prefix_origin)
        chain.append(origin)
        return chain

    def _locate_on_disk(self, module: str, level: int, importer: str, spec: str) -> Optional[List[str]]:
        if level == 0:
            if self._is_external_by_policy(module):
                self.external.add(module)
                return None
            return self._locate_external(module, importer)

        base = importer_base(importer, level)
        if base is not None:
            target = os.path.join(base, *[p for p in module.split(".") if p])
            for candidate in (os.path.join(target, PACKAGE_INDEX + SOURCE_EXTENSION), target + SOURCE_EXTENSION):
                if os.path.isfile(candidate):
                    return [candidate]
        raise BundleResolutionFailure(spec, importer)

    def child_key(self, parent_key: str, name: str) -> Optional[str]:
        if parent_key.startswith("/"):
            if os.path.basename(parent_key) != PACKAGE_INDEX + SOURCE_EXTENSION:
                return None
            directory = os.path.dirname(parent_key)
            for candidate in (
                    os.path.join(directory, name, PACKAGE_INDEX + SOURCE_EXTENSION),
                    os.path.join(directory, name + SOURCE_EXTENSION),
            ):
                if os.path.isfile(candidate):
                    return candidate
            return None
        return find_child(parent_key, name, self.keys)


class _ImportInliner(ast.NodeTransformer):
    """Rewrites inlined imports of one module into runtime calls."""

    def __init__(self, state: _BundleState, importer: str):
        self.state = state
        self.importer = importer

    def visit_Import(self, node: ast.Import):
        kept: List[ast.alias] = []
        stmts: List[ast.stmt] = []
        for alias in node.names:
            chain = self.state.locate(alias.name, 0, self.importer)
            if chain is None:
                kept.append(alias)
                continue
            self.state.enqueue(chain)
            leaf = alias.asname is not None
            target = alias.asname or alias.name.split(".")[0]
            call = _call("__bundle_import__", [
                _str_list(chain),
                _str_list(alias.name.split(".")[1:]),
                ast.Constant(value=leaf),
            ])
            stmts.append(_assign(target, call))

        if kept:
            stmts.insert(0, ast.Import(names=kept))
        return [ast.copy_location(s, node) for s in stmts]

    def visit_ImportFrom(self, node: ast.ImportFrom):
        if node.module == "__future__":
            return node
        chain = self.state.locate(node.module or "", node.level or 0, self.importer)
        if chain is None:
            return node
        self.state.enqueue(chain)

        parent = chain[-1]
        stmts: List[ast.stmt] = []
        if len(chain) > 1:
            attrs = (node.module or "").split(".")[1:]
            stmts.append(ast.Expr(value=_call("__bundle_import__", [
                _str_list(chain), _str_list(attrs), ast.Constant(value=True),
            ])))

        for alias in node.names:
            if alias.name == "*":
                stmts.append(ast.Expr(value=_call("__bundle_star__", [
                    _call("globals", []), ast.Constant(value=parent),
                ])))
                continue
            child = self.state.child_key(parent, alias.name)
            if child is not None:
                self.state.enqueue([child])
            stmts.append(_assign(alias.asname or alias.name, _call("__bundle_from__", [
                ast.Constant(value=parent),
                ast.Constant(value=alias.name),
                ast.Constant(value=child),
            ])))
        return [ast.copy_location(s, node) for s in stmts]


def _call(func: str, args: List[ast.expr]) -> ast.Call:
    return ast.Call(func=ast.Name(id=func, ctx=ast.Load()), args=args, keywords=[])


def _assign(target: str, value: ast.expr) -> ast.Assign:
    return ast.Assign(targets=[ast.Name(id=target, ctx=ast.Store())], value=value)


def _str_list(items: List[str]) -> ast.List:
    return ast.List(elts=[ast.Constant(value=i) for i in items], ctx=ast.Load())


def _is_source_path(origin: Optional[str]) -> bool:
    return bool(origin) and os.path.isabs(origin) and origin.endswith(SOURCE_EXTENSION)


def _split_future_imports(tree: ast.Module) -> Tuple[List[str], ast.Module]:
    futures: List[str] = []
    body: List[ast.stmt] = []
    for node in tree.body:
        if isinstance(node, ast.ImportFrom) and node.module == "__future__":
            futures.append(ast.unparse(node))
        else:
            body.append(node)
    return futures, ast.Module(body=body, type_ignores=[])
