from __future__ import annotations

"""
Capability Extraction.

Collects the capability interfaces a plugin declares through class
decorators::

    @implements(IPreMessageSentPrevent, IPostMessageSent)
    class MyPlugin(App):
        ...

Extraction is lexical: the decorator arguments are reported as written,
without resolving them to their definitions.
"""

import ast
from typing import Iterable, List, Sequence

from plugpack.core.analysis.ast_parser import parse_source
from plugpack.domain.constants import CAPABILITY_DECORATORS


def extract_capabilities(
        tree: ast.AST,
        decorator_names: Sequence[str] = CAPABILITY_DECORATORS,
) -> List[str]:
    """
    Collect declared capability names from every class in a tree.

    Classes are visited depth-first in source order, nested ones included.
    Duplicates are preserved.

    Args:
        tree: Parsed entry module.
        decorator_names: Decorator names (or attribute tails, as in
            ``zope.interface.implementer``) that declare capabilities.

    Returns:
        List[str]: Source text of each positional decorator argument.
    """
    names = set(decorator_names)
    found: List[str] = []
    for cls in _iter_classes(tree):
        for decorator in cls.decorator_list:
            if not isinstance(decorator, ast.Call):
                continue
            if _callee_name(decorator.func) not in names:
                continue
            found.extend(
                ast.unparse(arg) for arg in decorator.args if not isinstance(arg, ast.Starred)
            )
    return found


def extract_from_source(source: str, decorator_names: Sequence[str] = CAPABILITY_DECORATORS) -> List[str]:
    return extract_capabilities(parse_source(source), decorator_names)


def _iter_classes(node: ast.AST) -> Iterable[ast.ClassDef]:
    for child in ast.iter_child_nodes(node):
        if isinstance(child, ast.ClassDef):
            yield child
        yield from _iter_classes(child)


def _callee_name(func: ast.expr) -> str:
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return ""
