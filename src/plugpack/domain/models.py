from __future__ import annotations

"""
Build Domain Data Models.

Defines the immutable values passed between pipeline stages. Each stage
consumes the previous stage's value and returns a new one; nothing here is
mutated after construction.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from plugpack.domain.errors import InvalidManifest
from plugpack.infra.fs import normalize_source_path

# -----------------------------------------------------------------------------
# SOURCE MODELS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class SourceFile:
    """
    A plugin source file as read from disk.

    Attributes:
        path: Normalized project-relative path, forward-slash separated.
        content: Full text of the file.
        revision: Monotonic revision stamp, 0 for freshly loaded files.
    """
    path: str
    content: str
    revision: int = 0


@dataclass(frozen=True)
class Permission:
    name: str


@dataclass(frozen=True)
class Manifest:
    """
    Parsed plugin manifest.

    Attributes:
        entry_file: Normalized path of the file holding the plugin class.
        name: Plugin display name.
        version: Plugin version string.
        permissions: Declared permissions, in manifest order.
        raw: The full JSON object, kept so unknown keys survive packaging.
    """
    entry_file: str
    name: str
    version: str
    permissions: Tuple[Permission, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def declared_permissions(self) -> Any:
        """The ``permissions`` value exactly as written in the manifest."""
        return self.raw.get("permissions")

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        """
        Build a manifest from decoded JSON, enforcing the required schema.

        Raises:
            InvalidManifest: If a required field is missing or mistyped.
        """
        if not isinstance(data, dict):
            raise InvalidManifest(
                f"Manifest root must be a JSON object, received {type(data).__name__}."
            )

        for key in ("entryFile", "name", "version"):
            value = data.get(key)
            if not isinstance(value, str) or not value.strip():
                raise InvalidManifest(
                    f'Manifest field "{key}" must be a non-empty string.', {"field": key}
                )

        perms_raw = data.get("permissions")
        permissions: List[Permission] = []
        if isinstance(perms_raw, list):
            for item in perms_raw:
                if isinstance(item, dict) and "name" in item:
                    permissions.append(Permission(name=str(item["name"])))

        return cls(
            entry_file=normalize_source_path(data["entryFile"]) or data["entryFile"],
            name=data["name"],
            version=data["version"],
            permissions=tuple(permissions),
            raw=dict(data),
        )

    def with_implemented(self, implemented: List[str]) -> Dict[str, Any]:
        """Return the manifest JSON object with its capability list replaced."""
        out = dict(self.raw)
        out["implements"] = list(implemented)
        return out


@dataclass(frozen=True)
class CompilationUnit:
    manifest: Manifest
    files: Mapping[str, SourceFile]


@dataclass(frozen=True)
class SupportFile:
    """
    A non-source project file packaged verbatim.

    Attributes:
        rel_path: Project-relative path used as the archive entry name.
        abs_path: Absolute path on disk.
    """
    rel_path: str
    abs_path: str

# -----------------------------------------------------------------------------
# COMPILER MODELS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Diagnostic:
    """
    A compiler finding.

    A diagnostic without ``filename`` describes the whole compilation rather
    than one file.

    Attributes:
        message: Human readable description.
        filename: Project-relative file the finding belongs to.
        line: 1-based line number.
        character: 0-based column offset.
        line_text: Source text of the offending line.
    """
    message: str
    filename: Optional[str] = None
    line: Optional[int] = None
    character: Optional[int] = None
    line_text: Optional[str] = None

    def formatted(self) -> str:
        if self.filename is None:
            return self.message
        if self.line is None:
            return f"Error {self.filename}: {self.message}"
        return f"Error {self.filename} ({self.line},{(self.character or 0) + 1}): {self.message}"


@dataclass(frozen=True)
class CompiledFile:
    """
    Emitted output of one source file.

    Attributes:
        path: Output key, the source path with the output extension.
        source_path: Path of the source file it was emitted from.
        compiled: Translated module text.
        revision: Revision of the source it was emitted from.
    """
    path: str
    source_path: str
    compiled: str
    revision: int = 0


@dataclass(frozen=True)
class CompilationResult:
    files: Dict[str, CompiledFile]
    main_file: Optional[CompiledFile]
    implemented: List[str]
    diagnostics: List[Diagnostic]
    duration_ms: float
    permissions: Tuple[Permission, ...]
    name: str = ""
    version: str = ""
    entry_file: str = ""

    @property
    def ok(self) -> bool:
        return not self.diagnostics and self.main_file is not None


@dataclass(frozen=True)
class BundledResult(CompilationResult):
    """
    Compilation result extended with a single self-contained module.

    Attributes:
        bundle: Bundle module text.
        inlined: Compiled paths folded into the bundle.
        external: Import specifiers left for the host runtime to supply.
    """
    bundle: str = ""
    inlined: Tuple[str, ...] = ()
    external: Tuple[str, ...] = ()


def is_bundled(result: Union[CompilationResult, BundledResult]) -> bool:
    return isinstance(result, BundledResult)

# -----------------------------------------------------------------------------
# RESOLUTION MODELS
# -----------------------------------------------------------------------------

class ResolutionKind(enum.Enum):
    IN_PROJECT = "in-project"
    EXTERNAL = "external"
    BUILTIN = "builtin"
    ABSENT = "absent"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of resolving one import specifier for one importer.

    Attributes:
        kind: Which resolution rule matched.
        specifier: The specifier after legacy alias rewriting.
        path: Project path, synthetic built-in path or absolute path.
    """
    kind: ResolutionKind
    specifier: str
    path: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.kind is not ResolutionKind.UNRESOLVED


@dataclass(frozen=True)
class LoadedProject:
    """
    Loader output.

    Attributes:
        root: Absolute project directory.
        unit: Manifest and source files ready for compilation.
        support_files: Every other non-ignored file.
        config: The project's ``.plugpackrc`` content, if any.
    """
    root: str
    unit: CompilationUnit
    support_files: List[SupportFile]
    config: Optional[Dict[str, Any]] = None
