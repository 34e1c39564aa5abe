from __future__ import annotations

"""
Core orchestration pipeline.

This module coordinates the entire build of one plugin project:
1. Validates paths and layers the configuration (defaults, ``.plugpackrc``,
   caller overrides).
2. Loads the project (manifest, sources, support files).
3. Connects to the host API, optionally refreshing its permission registry.
4. Compiles the sources and stops on diagnostics.
5. Validates permissions, capabilities and the entry class ancestry.
6. Bundles the compiled modules into one (when enabled).
7. Packages the archive.

Every typed failure is converted into an error PipelineResult; nothing is
written to the output path unless every stage succeeded.
"""

import dataclasses
import logging
import time
from typing import Any, Dict, Optional, Union

from plugpack.core.analysis.compiler import CompilerOptions, compile_unit
from plugpack.core.host import HostApi
from plugpack.core.pipeline.stages.assembler import package
from plugpack.core.pipeline.stages.bundler import Bundler
from plugpack.core.pipeline.stages.loader import load_project
from plugpack.core.pipeline.stages.setup import (
    parse_target_version,
    prepare_paths,
    validate_config,
)
from plugpack.core.pipeline.stages.validator import (
    check_inheritance,
    filter_known_capabilities,
    validate_permissions_schema,
)
from plugpack.domain.config import merge_layers, project_overrides
from plugpack.domain.errors import PlugpackError
from plugpack.domain.models import BundledResult, CompilationResult
from plugpack.domain.pipeline_models import (
    PipelineResult,
    create_error_result,
    create_success_result,
)
from plugpack.infra.network import fetch_permission_registry

logger = logging.getLogger(__name__)

FAILURE_INVALID_PATH = "invalid-path"
FAILURE_OUTPUT_PATH = "output-path"


def run_pipeline(
        source_dir: str,
        output_file: str,
        *,
        host_api: Optional[HostApi] = None,
        config: Optional[Dict[str, Any]] = None,
) -> PipelineResult:
    """
    Build and package a plugin project.

    Args:
        source_dir: Project directory holding ``plugin.json``.
        output_file: Destination archive path.
        host_api: Host API handle; built from ``config["host_package"]``
            when omitted.
        config: Caller overrides (usually CLI flags), layered above the
            project's ``.plugpackrc``.

    Returns:
        PipelineResult: Object containing status, diagnostics and summary.
    """
    logger.info("Pipeline execution started.")
    start = time.perf_counter()

    # -------------------------------------------------------------------------
    # 1) Paths
    # -------------------------------------------------------------------------
    try:
        base_path, out_path = prepare_paths(source_dir, output_file)
    except NotADirectoryError as e:
        logger.error(str(e))
        return create_error_result(str(e), source_dir, kind=FAILURE_INVALID_PATH)
    except OSError as e:
        logger.critical(str(e))
        return create_error_result(str(e), source_dir, kind=FAILURE_OUTPUT_PATH)

    overrides: Dict[str, Any] = {}
    if isinstance(config, dict):
        overrides = dict(config)
    elif config is not None:
        logger.warning(f"Configuration Warning: ignoring overrides of type {type(config).__name__}.")

    compilation: Optional[CompilationResult] = None
    try:
        # ---------------------------------------------------------------------
        # 2) Load project & layer configuration
        # ---------------------------------------------------------------------
        pre_cfg, _ = validate_config(merge_layers(overrides), strict=False)
        project = load_project(base_path, ignore=pre_cfg["ignore"])
        manifest = project.unit.manifest

        cfg, warnings = validate_config(
            merge_layers(project_overrides(project.config), overrides), strict=False
        )
        for warning in warnings:
            logger.warning(f"Configuration Warning: {warning}")

        # ---------------------------------------------------------------------
        # 3) Host API
        # ---------------------------------------------------------------------
        if host_api is None:
            host_api = HostApi.from_package(
                cfg["host_package"],
                cfg["base_class"],
                cfg["permissions_attr"],
                cfg["capabilities_attr"] or None,
            )

        if cfg["permissions_url"]:
            registry = fetch_permission_registry(cfg["permissions_url"])
            if registry is not None:
                host_api = host_api.with_permissions(registry)
            else:
                logger.warning("Remote permission registry unavailable; using the host package registry.")

        # ---------------------------------------------------------------------
        # 4) Compile
        # ---------------------------------------------------------------------
        target = parse_target_version(cfg["target_version"])
        options = CompilerOptions(
            target_version=target,
            strict_resolution=cfg["strict_resolution"],
        )
        compilation = compile_unit(project.unit, host_api, options)

        if compilation.diagnostics:
            for diag in compilation.diagnostics:
                logger.error(diag.formatted())
            if not cfg["continue_on_diagnostics"]:
                msg = f"Compilation failed with {len(compilation.diagnostics)} diagnostic(s)."
                return create_error_result(
                    msg, base_path, compilation=compilation,
                    summary_extra={"warnings": warnings},
                )
            logger.warning("Continuing despite compiler diagnostics.")

        # ---------------------------------------------------------------------
        # 5) Validate
        # ---------------------------------------------------------------------
        validate_permissions_schema(manifest.declared_permissions, host_api.permissions)

        implemented = filter_known_capabilities(compilation.implemented, host_api.capabilities)
        compilation = dataclasses.replace(compilation, implemented=implemented)

        check_inheritance(compilation, host_api)

        # ---------------------------------------------------------------------
        # 6) Bundle
        # ---------------------------------------------------------------------
        final: Union[CompilationResult, BundledResult] = compilation
        if cfg["bundle"]:
            bundler = Bundler(
                host_api,
                inline_external=cfg["inline_external"],
                minify=cfg["minify"],
                target_version=target,
            )
            final = bundler.bundle(compilation)

        # ---------------------------------------------------------------------
        # 7) Package
        # ---------------------------------------------------------------------
        archive = package(
            final,
            project.support_files,
            out_path,
            project_root=base_path,
            manifest=manifest,
            ignored_files=cfg["ignored_files"],
        )

    except PlugpackError as e:
        logger.error(f"Build failed ({e.kind}): {e.message}")
        return create_error_result(e.message, base_path, failure=e, compilation=compilation)

    bundled = isinstance(final, BundledResult)
    summary: Dict[str, Any] = {
        "modules": len(compilation.files),
        "support_files": len(project.support_files),
        "bundled": bundled,
        "inlined": list(final.inlined) if bundled else [],
        "external": list(final.external) if bundled else [],
        "target_version": cfg["target_version"],
        "warnings": warnings,
        "elapsed_ms": round((time.perf_counter() - start) * 1000.0, 1),
    }

    logger.info("Pipeline execution finalized successfully.")
    return create_success_result(base_path, archive, final, bundled, summary)
