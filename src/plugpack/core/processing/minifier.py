from __future__ import annotations

"""
Code Minification Utility.

Shrinks emitted modules before they are embedded in a bundle. Comments are
already gone after emission; this pass removes docstrings through the AST
and then collapses vertical whitespace with a line stream. Working on the
tree keeps ``#`` characters inside string literals intact.
"""

import ast
import logging
from typing import Iterator, List

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def minify_code(text: str, strip_docstrings: bool = True) -> str:
    """
    Minify a module's source text.

    Args:
        text: Valid Python source.
        strip_docstrings: Remove module, class and function docstrings.

    Returns:
        str: Equivalent source without docstrings, comments and blank lines.

    Raises:
        SyntaxError: If the text does not parse.
    """
    if not text:
        return ""

    original_len = len(text)
    tree = ast.parse(text)
    if strip_docstrings:
        _strip_docstrings(tree)

    # Without docstrings no emitted line belongs to a multi-line literal
    max_blank = 0 if strip_docstrings else 1
    unparsed = ast.unparse(ast.fix_missing_locations(tree))
    result = "".join(minify_code_stream(iter(unparsed.splitlines(keepends=True)), max_blank))

    optimized_len = len(result)
    if original_len > 0:
        reduction = 100 - (optimized_len * 100 / original_len)
        logger.debug(f"Minified module: {original_len} -> {optimized_len} chars ({reduction:.1f}% reduction)")

    return result.rstrip() + "\n"


def minify_code_stream(lines: Iterator[str], max_blank_lines: int = 1) -> Iterator[str]:
    """
    Collapse runs of blank lines and trailing whitespace in a line stream.

    Args:
        lines: Iterator yielding lines of code.
        max_blank_lines: Blank lines kept out of each run.

    Yields:
        str: Processed lines.
    """
    empty_line_count = 0

    for line in lines:
        processed = line.rstrip()

        if not processed:
            empty_line_count += 1
            if empty_line_count <= max_blank_lines:
                yield "\n"
        else:
            empty_line_count = 0
            yield processed + "\n"


# -----------------------------------------------------------------------------
# PRIVATE HELPERS
# -----------------------------------------------------------------------------

_DOCSTRING_OWNERS = (ast.Module, ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)


def _strip_docstrings(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        if not isinstance(node, _DOCSTRING_OWNERS):
            continue
        body: List[ast.stmt] = node.body
        if body and _is_docstring(body[0]):
            del body[0]
            if not body and not isinstance(node, ast.Module):
                body.append(ast.Pass())


def _is_docstring(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )
