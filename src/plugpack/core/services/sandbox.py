from __future__ import annotations

"""
Plugin Execution Sandbox.

Executes compiled plugin modules from memory so their class hierarchy can
be inspected. Each Sandbox owns its module cache and never registers
plugin modules in ``sys.modules``, so nothing loaded for one build is
visible to another.

Imports are served by a closure installed as ``__import__``:

- host API modules come from the real host package;
- allow-listed standard modules come from the real standard library;
- project modules are executed from the virtual module table;
- anything else raises ``ModuleNotFoundError``.

This isolates plugin code from the filesystem and from undeclared
dependencies. It is not a security boundary against hostile code.
"""

import builtins
import importlib
import logging
import types
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Set, Union

from plugpack.core.analysis.paths import (
    find_child,
    is_package_key,
    join_specifier,
    module_name_for,
    package_dir,
    resolve_chain,
)
from plugpack.core.host import HostApi
from plugpack.domain.constants import ALLOWED_BUILTIN_MODULES
from plugpack.domain.models import CompilationResult, CompiledFile

logger = logging.getLogger(__name__)

# Builtins a plugin constructor has no business calling
BLOCKED_BUILTINS: FrozenSet[str] = frozenset({"open", "input", "breakpoint", "exit", "quit"})


# ==============================================================================
# PLACEHOLDER CONSTRUCTOR ARGUMENTS
# ==============================================================================

def placeholder_info() -> Dict[str, Any]:
    """Deterministic plugin metadata passed to the entry class constructor."""
    return {"name": "", "requiredApiVersion": "", "author": {"name": ""}}


class NoopLogger:
    """Logger stand-in accepting every call and recording nothing."""

    def _noop(self, *args: Any, **kwargs: Any) -> None:
        return None

    debug = info = warning = warn = error = exception = critical = success = log = _noop


# ==============================================================================
# MODULE TABLE
# ==============================================================================

class VirtualModuleTable:
    """Read-only mapping of compiled module keys to their source text."""

    def __init__(self, sources: Mapping[str, Union[str, CompiledFile]]):
        self._sources: Dict[str, str] = {
            key: value.compiled if isinstance(value, CompiledFile) else value
            for key, value in sources.items()
        }
        self._keys: Set[str] = set(self._sources)

    @classmethod
    def from_result(cls, result: CompilationResult) -> "VirtualModuleTable":
        return cls(result.files)

    def keys(self) -> Set[str]:
        return self._keys

    def source(self, key: str) -> Optional[str]:
        return self._sources.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._sources


# ==============================================================================
# SANDBOX
# ==============================================================================

class Sandbox:
    """
    One isolated execution of a plugin's compiled modules.

    Args:
        table: Compiled modules of the plugin.
        host_api: Source of host API modules.
        allowed_modules: Standard modules plugin code may import.
    """

    def __init__(
            self,
            table: VirtualModuleTable,
            host_api: HostApi,
            allowed_modules: Iterable[str] = ALLOWED_BUILTIN_MODULES,
    ):
        self._table = table
        self._host_api = host_api
        self._allowed = frozenset(allowed_modules)
        self._modules: Dict[str, types.ModuleType] = {}
        self._builtins = self._make_builtins()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def load(self, key: str) -> types.ModuleType:
        """
        Execute a table module (once) and return it.

        Raises:
            ModuleNotFoundError: If the key is not in the table.
            Exception: Whatever the module raises while executing.
        """
        cached = self._modules.get(key)
        if cached is not None:
            return cached

        is_namespace = key.endswith("/")
        source = None if is_namespace else self._table.source(key)
        if not is_namespace and source is None:
            raise ModuleNotFoundError(f"No module named '{module_name_for(key)}'", name=key)

        module = types.ModuleType(module_name_for(key))
        module.__file__ = key
        module.__dict__["__builtins__"] = self._builtins
        if is_package_key(key):
            module.__path__ = [package_dir(key) or ""]
            module.__package__ = module.__name__
        else:
            module.__package__ = module.__name__.rpartition(".")[0]

        # Registered before execution so import cycles see the partial module
        self._modules[key] = module
        if source is not None:
            try:
                code = compile(source, key, "exec", dont_inherit=True)
                exec(code, module.__dict__)
            except BaseException:
                del self._modules[key]
                raise
        logger.debug(f"Sandbox loaded module: {key}")
        return module

    @property
    def loaded(self) -> Set[str]:
        return set(self._modules)

    # -------------------------------------------------------------------------
    # Import closure
    # -------------------------------------------------------------------------

    def _make_builtins(self) -> Dict[str, Any]:
        namespace = {k: v for k, v in vars(builtins).items() if k not in BLOCKED_BUILTINS}
        namespace["__import__"] = self._import
        return namespace

    def _import(
            self,
            name: str,
            globals: Optional[Mapping[str, Any]] = None,
            locals: Optional[Mapping[str, Any]] = None,
            fromlist: Optional[Iterable[str]] = (),
            level: int = 0,
    ) -> types.ModuleType:
        fromlist = tuple(fromlist or ())

        if level == 0:
            target = self._host_api.rewrite_legacy(name)
            if self._host_api.is_host_specifier(target):
                return self._import_real(target, fromlist, self._host_api.load_module)
            if target in self._allowed:
                return self._import_real(target, fromlist, importlib.import_module)

        importer = str((globals or {}).get("__file__") or "")
        keys = self._table.keys()
        chain = resolve_chain(name, level, importer, keys)
        if not chain:
            spec = join_specifier(level, name)
            raise ModuleNotFoundError(f"No module named '{spec}'", name=spec)

        modules = [self.load(key) for key in chain]
        for parent, child, attr in zip(modules, modules[1:], name.split(".")[1:]):
            setattr(parent, attr, child)

        leaf = modules[-1]
        if fromlist:
            for item in fromlist:
                if item == "*" or hasattr(leaf, item):
                    continue
                child_key = find_child(chain[-1], item, keys)
                if child_key is not None:
                    setattr(leaf, item, self.load(child_key))
            return leaf
        return leaf if level > 0 else modules[0]

    @staticmethod
    def _import_real(
            name: str,
            fromlist: tuple,
            loader: Callable[[str], types.ModuleType],
    ) -> types.ModuleType:
        module = loader(name)
        if fromlist or "." not in name:
            return module
        return loader(name.split(".")[0])
