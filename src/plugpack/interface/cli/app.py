from __future__ import annotations

"""
Command Line Interface (CLI) Application Controller.

Orchestrates the CLI lifecycle: initialization of logging, layering of
configuration sources (defaults, project ``.plugpackrc`` and CLI overrides),
pipeline execution, and result rendering. Acts as the primary interface for
build scripts and CI environments.
"""

import json
import os
import sys
from dataclasses import asdict
from typing import List, Optional

from plugpack.core.pipeline.engine import FAILURE_INVALID_PATH, run_pipeline
from plugpack.core.pipeline.stages.setup import validate_config
from plugpack.domain.config import load_project_config, merge_layers, project_overrides
from plugpack.domain.pipeline_models import PipelineResult
from plugpack.infra.fs import normalize_path
from plugpack.infra.logging import LoggingConfig, configure_logging, get_logger
from plugpack.interface.cli import args as cli_args

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_PATH = 2
EXIT_INTERRUPTED = 130

# -----------------------------------------------------------------------------
# ENTRYPOINT ORCHESTRATOR
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """
    Execute the main CLI application workflow.

    Args:
        argv: Optional list of command line arguments. Defaults to sys.argv.

    Returns:
        int: Process exit code (0 success, 1 build failure, 2 invalid
        project path, 130 interrupted).
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8")

    # 1. Argument parsing phase
    parser = cli_args.build_parser()
    args = parser.parse_args(argv)

    # 2. Logging bootstrap (console on stderr, optional rotating file)
    configure_logging(LoggingConfig.for_cli(debug=args.debug, log_file=args.log_file))
    logger.debug("CLI execution initiated. Resolving configuration hierarchy...")

    overrides = cli_args.args_to_overrides(args)
    source_dir = normalize_path(args.source_dir, os.getcwd())

    # Short-circuit if configuration dump is requested
    if args.dump_config:
        project_cfg = load_project_config(source_dir) if os.path.isdir(source_dir) else None
        clean_conf, warnings = validate_config(
            merge_layers(project_overrides(project_cfg), overrides), strict=False
        )
        for w in warnings:
            logger.warning(f"Configuration Constraint: {w}")
        print(json.dumps(clean_conf, ensure_ascii=False, indent=2))
        return EXIT_OK

    # 3. Pre-flight input verification
    if not os.path.isdir(source_dir):
        msg = f"Project directory does not exist: {source_dir}"
        logger.error(msg)
        print(f"ERROR: {msg}", file=sys.stderr)
        return EXIT_BAD_PATH

    # 4. Pipeline execution phase
    logger.info(f"Building plugin project: {source_dir}")
    try:
        result = run_pipeline(source_dir, args.output_file or "", config=overrides)
    except KeyboardInterrupt:
        msg = "Build interrupted by user."
        logger.warning(msg)
        print(msg, file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        msg = f"Build pipeline crashed: {e}"
        logger.critical(msg, exc_info=True)
        print(f"ERROR: {msg}", file=sys.stderr)
        return EXIT_FAILURE

    # 5. Output rendering phase
    if args.json_output:
        print(json.dumps(asdict(result), ensure_ascii=False, indent=2))
    else:
        _print_human_summary(result)

    if result.ok:
        return EXIT_OK
    if result.failure_kind == FAILURE_INVALID_PATH:
        return EXIT_BAD_PATH
    return EXIT_FAILURE

# -----------------------------------------------------------------------------
# VIEW RENDERING (HUMAN READABLE)
# -----------------------------------------------------------------------------

def _print_human_summary(result: PipelineResult) -> None:
    """
    Format and print the build result.

    Successful builds are reported on stdout; failures and diagnostics go
    to stderr.

    Args:
        result: The pipeline result to render.
    """
    for diag in result.diagnostics:
        print(diag.formatted(), file=sys.stderr)

    if not result.ok:
        print(f"ERROR: {result.error}", file=sys.stderr)
        return

    summary = result.summary
    print(f"Packaged {result.name} {result.version}")
    print(f"Archive: {result.output_file}")
    print(f"Modules compiled: {summary.get('modules', 0)} ({result.duration_ms:.1f} ms)")
    print(f"Support files: {summary.get('support_files', 0)}")

    if result.bundled:
        external = summary.get("external") or []
        print(f"Bundled modules: {len(summary.get('inlined') or [])}")
        if external:
            print("External imports:")
            for spec in external:
                print(f"  - {spec}")

    if result.implemented:
        print(f"Implements: {', '.join(result.implemented)}")

# -----------------------------------------------------------------------------
# CLI ENTRYPOINT
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
