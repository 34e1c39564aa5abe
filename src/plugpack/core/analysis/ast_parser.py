from __future__ import annotations

"""
AST Analysis Service.

Parsing and import inspection for plugin sources. Everything downstream of
the Loader (resolution, capability extraction, emission, bundling) works on
the trees produced here rather than on raw text.
"""

import ast
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)

ImportNode = Union[ast.Import, ast.ImportFrom]


@dataclass(frozen=True)
class ImportRef:
    """
    One imported module as written in the source.

    Attributes:
        module: Dotted module path, empty for ``from . import x``.
        level: Number of leading dots (0 for absolute imports).
        names: Names imported by a ``from`` statement, empty for ``import``.
        lineno: 1-based line of the statement.
        col_offset: 0-based column of the statement.
    """
    module: str
    level: int = 0
    names: Tuple[str, ...] = ()
    lineno: int = 0
    col_offset: int = 0

    @property
    def is_from(self) -> bool:
        return bool(self.names)

    @property
    def specifier(self) -> str:
        return "." * self.level + self.module


# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def parse_source(
        source: str,
        filename: str = "<plugin>",
        feature_version: Optional[Tuple[int, int]] = None,
) -> ast.Module:
    """
    Parse plugin source into a module tree.

    Args:
        source: Module text.
        filename: Name reported in syntax errors.
        feature_version: Oldest grammar the source must be valid for.

    Raises:
        SyntaxError: If the text is not valid under the requested grammar.
    """
    if feature_version is None:
        return ast.parse(source, filename=filename)
    return ast.parse(source, filename=filename, feature_version=feature_version)


def iter_imports(tree: ast.AST) -> Iterator[ImportRef]:
    """Yield every import in the tree, nested ones included, in source order."""
    for node in iter_import_nodes(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield ImportRef(alias.name, 0, (), node.lineno, node.col_offset)
        else:
            names = tuple(alias.name for alias in node.names)
            yield ImportRef(node.module or "", node.level or 0, names, node.lineno, node.col_offset)


def iter_import_nodes(tree: ast.AST) -> Iterator[ImportNode]:
    collector = _ImportCollector()
    collector.visit(tree)
    return iter(collector.nodes)


def top_level_names(tree: ast.Module) -> Set[str]:
    """
    Names bound at module scope.

    Walks compound statements (``if``, ``try``, ``with``, ``match``, loops)
    but not function or class bodies, which bind in their own scopes. Names
    declared ``global`` inside those bodies are included.
    """
    names: Set[str] = set()
    _collect_bindings(tree.body, names)
    _collect_globals(tree, names)
    return names


def has_dynamic_exports(tree: ast.Module) -> bool:
    """True if the module's attribute set cannot be known statically."""
    for node in tree.body:
        if isinstance(node, ast.ImportFrom) and any(a.name == "*" for a in node.names):
            return True
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.name == "__getattr__":
            return True
    return False


def source_line(source: str, lineno: Optional[int]) -> Optional[str]:
    if not lineno:
        return None
    lines = source.splitlines()
    if 0 < lineno <= len(lines):
        return lines[lineno - 1]
    return None


def rewrite_import_modules(tree: ast.Module, rewrite: Callable[[str], str]) -> ast.Module:
    """
    Apply a specifier rewrite to every absolute import of a tree.

    ``import old.x`` keeps binding the name ``old``: an extra
    ``import new as old`` statement is emitted for single-segment prefixes.
    """
    new_tree = _ImportRewriter(rewrite).visit(tree)
    return ast.fix_missing_locations(new_tree)


# -----------------------------------------------------------------------------
# PRIVATE HELPERS
# -----------------------------------------------------------------------------

class _ImportCollector(ast.NodeVisitor):
    def __init__(self) -> None:
        self.nodes: List[ImportNode] = []

    def visit_Import(self, node: ast.Import) -> None:
        self.nodes.append(node)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self.nodes.append(node)


class _ImportRewriter(ast.NodeTransformer):
    def __init__(self, rewrite: Callable[[str], str]):
        self._rewrite = rewrite

    def visit_Import(self, node: ast.Import) -> Union[ast.stmt, List[ast.stmt]]:
        new_aliases: List[ast.alias] = []
        rebinds: List[ast.stmt] = []
        for alias in node.names:
            target = self._rewrite(alias.name)
            new_aliases.append(ast.alias(name=target, asname=alias.asname))
            if target == alias.name or alias.asname:
                continue
            old_top = alias.name.split(".")[0]
            if target.split(".")[0] == old_top:
                continue
            prefix = self._rewrite(old_top)
            if prefix != old_top:
                rebinds.append(ast.Import(names=[ast.alias(name=prefix, asname=old_top)]))

        new_node = ast.copy_location(ast.Import(names=new_aliases), node)
        if not rebinds:
            return new_node
        return [new_node] + [ast.copy_location(r, node) for r in rebinds]

    def visit_ImportFrom(self, node: ast.ImportFrom) -> ast.stmt:
        if node.level or not node.module:
            return node
        target = self._rewrite(node.module)
        if target == node.module:
            return node
        return ast.copy_location(
            ast.ImportFrom(module=target, names=node.names, level=0), node
        )


# match and except* only exist on newer interpreters
_MATCH_NODES = tuple(t for t in (getattr(ast, "Match", None),) if t is not None)
_TRY_NODES = tuple(t for t in (ast.Try, getattr(ast, "TryStar", None)) if t is not None)


def _collect_bindings(body: List[ast.stmt], names: Set[str]) -> None:
    for node in body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(node.name)
        elif isinstance(node, ast.Import):
            for alias in node.names:
                names.add(alias.asname or alias.name.split(".")[0])
        elif isinstance(node, ast.ImportFrom):
            for alias in node.names:
                if alias.name != "*":
                    names.add(alias.asname or alias.name)
        elif isinstance(node, ast.Assign):
            for target in node.targets:
                _collect_target(target, names)
        elif isinstance(node, (ast.AnnAssign, ast.AugAssign)):
            _collect_target(node.target, names)
        elif isinstance(node, (ast.For, ast.AsyncFor)):
            _collect_target(node.target, names)
            _collect_bindings(node.body, names)
            _collect_bindings(node.orelse, names)
        elif isinstance(node, (ast.With, ast.AsyncWith)):
            for item in node.items:
                if item.optional_vars is not None:
                    _collect_target(item.optional_vars, names)
            _collect_bindings(node.body, names)
        elif isinstance(node, (ast.If, ast.While)):
            _collect_bindings(node.body, names)
            _collect_bindings(node.orelse, names)
        elif isinstance(node, _MATCH_NODES):
            for case in node.cases:
                _collect_pattern(case.pattern, names)
                _collect_bindings(case.body, names)
        elif isinstance(node, _TRY_NODES):
            _collect_bindings(node.body, names)
            for handler in node.handlers:
                if handler.name:
                    names.add(handler.name)
                _collect_bindings(handler.body, names)
            _collect_bindings(node.orelse, names)
            _collect_bindings(node.finalbody, names)

    # Walrus targets at module level
    for node in body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            continue
        for sub in ast.walk(node):
            if isinstance(sub, ast.NamedExpr) and isinstance(sub.target, ast.Name):
                names.add(sub.target.id)


def _collect_globals(tree: ast.Module, names: Set[str]) -> None:
    # A `global` statement at any depth binds the name at module scope
    for node in ast.walk(tree):
        if isinstance(node, ast.Global):
            names.update(node.names)


def _collect_pattern(pattern: ast.AST, names: Set[str]) -> None:
    # MatchAs and MatchStar capture into .name, MatchMapping into .rest
    for sub in ast.walk(pattern):
        for attr in ("name", "rest"):
            captured = getattr(sub, attr, None)
            if isinstance(captured, str):
                names.add(captured)


def _collect_target(target: ast.AST, names: Set[str]) -> None:
    if isinstance(target, ast.Name):
        names.add(target.id)
    elif isinstance(target, (ast.Tuple, ast.List)):
        for elt in target.elts:
            _collect_target(elt, names)
    elif isinstance(target, ast.Starred):
        _collect_target(target.value, names)
