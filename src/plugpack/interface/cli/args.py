from __future__ import annotations

"""
CLI Argument Definition and Mapping.

Defines the command-line interface schema, including help messages,
argument types, and defaults. Provides logic to translate raw argparse
namespaces into build configuration overrides.
"""

import argparse
from typing import Any, Dict, List, Optional

from plugpack.domain.constants import TOOL_NAME, TOOL_VERSION

# -----------------------------------------------------------------------------
# ARGUMENT DEFINITION
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Construct the argument parser for the plugpack CLI.

    Returns:
        argparse.ArgumentParser: Configured parser instance.
    """
    p = argparse.ArgumentParser(
        prog=TOOL_NAME,
        description="Compile, validate, bundle and package a plugin project into a zip archive.",
    )
    p.add_argument("--version", action="version", version=f"{TOOL_NAME} {TOOL_VERSION}")

    # --- Path Management ---
    p.add_argument(
        "-s", "--source",
        dest="source_dir",
        default=".",
        help="Plugin project directory containing plugin.json (default: current directory).",
    )
    p.add_argument(
        "-o", "--output",
        dest="output_file",
        default=None,
        help="Destination archive (default: <source>/dist/plugin.zip).",
    )

    # --- Output Shape ---
    p.add_argument(
        "--no-bundle",
        action="store_true",
        help="Package every compiled module instead of a single bundle.",
    )
    p.add_argument(
        "--no-minify",
        action="store_true",
        help="Keep docstrings and blank lines in the bundle.",
    )
    p.add_argument(
        "--inline-external",
        action="store_true",
        help="Inline pure-Python dependencies found outside the project.",
    )

    # --- Compilation ---
    p.add_argument(
        "--strict",
        action="store_true",
        help="Abort on the first unresolved import.",
    )
    p.add_argument(
        "--continue-on-diagnostics",
        action="store_true",
        help="Package even when the compiler reports diagnostics.",
    )
    p.add_argument(
        "--target",
        dest="target_version",
        default=None,
        help="Oldest Python version the plugin must run on (e.g. 3.8).",
    )
    p.add_argument(
        "--ignore",
        default=None,
        help="Comma-separated patterns of project files to skip.",
    )

    # --- Host API ---
    p.add_argument(
        "--host-package",
        default=None,
        help="Import name of the host API package.",
    )
    p.add_argument(
        "--base-class",
        default=None,
        help="Dotted path of the plugin base class inside the host package.",
    )
    p.add_argument(
        "--permissions-attr",
        default=None,
        help="Dotted path of the permission registry inside the host package.",
    )
    p.add_argument(
        "--permissions-url",
        default=None,
        help="URL of a JSON permission registry replacing the host package's.",
    )

    # --- Configuration and Diagnostic Tools ---
    p.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the effective configuration and exit.",
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help="Elevate logging verbosity to DEBUG.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Also write a rotating log to this file.",
    )

    # --- Format Selection ---
    p.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print the build result as JSON.",
    )

    return p

# -----------------------------------------------------------------------------
# ARGUMENT MAPPING
# -----------------------------------------------------------------------------

def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Translate the argparse Namespace into build configuration overrides.

    Only flags actually given on the command line appear in the result, so
    the project's ``.plugpackrc`` values survive unless overridden.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Dict[str, Any]: Configuration overrides subset.
    """
    overrides: Dict[str, Any] = {}

    if args.no_bundle:
        overrides["bundle"] = False
    if args.no_minify:
        overrides["minify"] = False
    if args.inline_external:
        overrides["inline_external"] = True

    if args.strict:
        overrides["strict_resolution"] = True
    if args.continue_on_diagnostics:
        overrides["continue_on_diagnostics"] = True
    if args.target_version:
        overrides["target_version"] = args.target_version
    if args.ignore:
        overrides["ignore"] = _split_csv(args.ignore)

    mapping = {
        "host_package": args.host_package,
        "base_class": args.base_class,
        "permissions_attr": args.permissions_attr,
        "permissions_url": args.permissions_url,
    }
    for key, value in mapping.items():
        if value is not None:
            overrides[key] = value

    return overrides

# -----------------------------------------------------------------------------
# HELPERS
# -----------------------------------------------------------------------------

def _split_csv(value: Optional[str]) -> Optional[List[str]]:
    """
    Convert a comma-separated string into a list of sanitized strings.
    """
    if value is None:
        return None
    parts = [x.strip() for x in value.split(",")]
    return [x for x in parts if x]
