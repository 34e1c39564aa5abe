from __future__ import annotations

"""
Build Failure Taxonomy.

Defines the exception hierarchy raised by the pipeline stages. Every
failure carries a structured ``details`` mapping naming the offending file,
specifier or permission so callers can act on it without re-running the
build at a higher verbosity.
"""

from typing import Any, Dict, Optional


class PlugpackError(Exception):
    """Base exception for every aborting pipeline failure."""

    kind = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


# ============================================================================
# Loader Errors
# ============================================================================


class ManifestNotFound(PlugpackError):
    """Raised when the project root holds no manifest file."""

    kind = "manifest-not-found"

    def __init__(self, manifest_path: str):
        super().__init__(
            f"There is no manifest file in the project: {manifest_path}",
            {"path": manifest_path},
        )
        self.manifest_path = manifest_path


class InvalidManifest(PlugpackError):
    """Raised when the manifest exists but does not match the expected schema."""

    kind = "invalid-manifest"


# ============================================================================
# Compiler Errors
# ============================================================================


class InvalidSourceFile(PlugpackError):
    """Raised by the pre-flight check, before any compiler work begins."""

    kind = "invalid-source-file"

    def __init__(self, message: str, filename: str):
        super().__init__(message, {"filename": filename})
        self.filename = filename


class CompilerOptionsFailure(PlugpackError):
    """Raised when the compiler host itself is misconfigured."""

    kind = "compiler-options"


class ModuleResolutionFailure(PlugpackError):
    """Raised for an unresolved import when strict resolution is enabled."""

    kind = "module-resolution"

    def __init__(self, specifier: str, importer: str):
        super().__init__(
            f"Failed to resolve module: {specifier}",
            {"specifier": specifier, "importer": importer},
        )
        self.specifier = specifier
        self.importer = importer


# ============================================================================
# Validator Errors
# ============================================================================


class PermissionSchemaInvalid(PlugpackError):
    """Raised when the declared permissions do not satisfy the host registry."""

    kind = "permission-schema"

    NOT_A_LIST = "not-a-list"
    UNKNOWN_PERMISSION = "unknown-permission"

    def __init__(self, message: str, reason: str, permission: Optional[str] = None):
        details: Dict[str, Any] = {"reason": reason}
        if permission is not None:
            details["permission"] = permission
        super().__init__(message, details)
        self.reason = reason
        self.permission = permission


class InheritanceValidationFailure(PlugpackError):
    """Raised when the entry class does not derive from the host base class."""

    kind = "inheritance"

    MISSING_EXPORT = "missing-export"
    WRONG_ANCESTOR = "wrong-ancestor"
    LOAD_ERROR = "load-error"

    def __init__(self, message: str, reason: str, entry_file: str):
        super().__init__(message, {"reason": reason, "entry_file": entry_file})
        self.reason = reason
        self.entry_file = entry_file


# ============================================================================
# Bundler / Packager Errors
# ============================================================================


class BundleResolutionFailure(PlugpackError):
    """Raised when an import met while bundling cannot be placed anywhere."""

    kind = "bundle-resolution"

    def __init__(self, specifier: str, importer: str, reason: str = ""):
        message = f'Cannot resolve "{specifier}" imported from "{importer}"'
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"specifier": specifier, "importer": importer})
        self.specifier = specifier
        self.importer = importer


class BundleError(PlugpackError):
    """Raised when the emitted bundle is rejected by the target version cap."""

    kind = "bundle"


class PackagingFailure(PlugpackError):
    """Raised when the archive cannot be assembled."""

    kind = "packaging"
