from __future__ import annotations

"""
Pipeline Domain Data Models.

Defines the result structure and factory functions used to communicate
build outcomes between the pipeline engine and the interface layer (CLI).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from plugpack.domain.errors import PlugpackError
from plugpack.domain.models import CompilationResult, Diagnostic

# -----------------------------------------------------------------------------
# CORE DATA MODELS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineResult:
    """
    Unified result object of a complete build.

    Attributes:
        ok: Flag indicating success or failure.
        error: Descriptive message in case of failure.
        failure_kind: Stable identifier of the failure (see domain.errors).
        source_dir: Normalized project directory.
        output_file: Absolute archive path (empty when nothing was written).
        name: Plugin name from the manifest.
        version: Plugin version from the manifest.
        bundled: Whether the archive carries a single bundled module.
        diagnostics: Compiler findings, empty on a clean build.
        implemented: Capabilities surfaced in the packaged manifest.
        duration_ms: Compilation wall-clock time.
        details: Structured context of the failure.
        summary: Technical execution summary and statistics.
    """
    ok: bool
    error: str

    source_dir: str
    output_file: str = ""

    name: str = ""
    version: str = ""
    bundled: bool = False

    failure_kind: str = ""
    diagnostics: List[Diagnostic] = field(default_factory=list)
    implemented: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    details: Dict[str, Any] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)

# -----------------------------------------------------------------------------
# FACTORY FUNCTIONS
# -----------------------------------------------------------------------------

def create_error_result(
        error: str,
        source_dir: str,
        failure: Optional[PlugpackError] = None,
        compilation: Optional[CompilationResult] = None,
        summary_extra: Optional[Dict[str, Any]] = None,
        kind: str = "",
) -> PipelineResult:
    """
    Create a failed pipeline result instance.

    Args:
        error: Detailed error description.
        source_dir: The project directory that was built.
        failure: The aborting exception, if the failure was typed.
        compilation: Compiler output gathered before the failure.
        summary_extra: Additional metadata for the summary payload.
        kind: Failure kind for untyped failures (defaults to "diagnostics").

    Returns:
        PipelineResult: An immutable error result object.
    """
    return PipelineResult(
        ok=False,
        error=error,
        source_dir=source_dir,
        name=compilation.name if compilation else "",
        version=compilation.version if compilation else "",
        failure_kind=failure.kind if failure else (kind or "diagnostics"),
        diagnostics=list(compilation.diagnostics) if compilation else [],
        implemented=list(compilation.implemented) if compilation else [],
        duration_ms=compilation.duration_ms if compilation else 0.0,
        details=dict(failure.details) if failure else {},
        summary=summary_extra or {},
    )


def create_success_result(
        source_dir: str,
        output_file: str,
        compilation: CompilationResult,
        bundled: bool,
        summary_extra: Optional[Dict[str, Any]] = None
) -> PipelineResult:
    """
    Create a successful pipeline result instance.

    Args:
        source_dir: The project directory that was built.
        output_file: Absolute path of the written archive.
        compilation: Final compiler (or bundler) output.
        bundled: Whether the bundle replaced the individual files.
        summary_extra: Final execution metrics.

    Returns:
        PipelineResult: An immutable success result object.
    """
    return PipelineResult(
        ok=True,
        error="",
        source_dir=source_dir,
        output_file=output_file,
        name=compilation.name,
        version=compilation.version,
        bundled=bundled,
        diagnostics=list(compilation.diagnostics),
        implemented=list(compilation.implemented),
        duration_ms=compilation.duration_ms,
        summary=summary_extra or {},
    )
