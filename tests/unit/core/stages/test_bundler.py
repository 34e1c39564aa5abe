from __future__ import annotations

"""
Unit tests for the Bundling stage.

Verifies that the emitted bundle runs on its own, that imports are
classified as inlined or external, and that unplaceable imports and
grammar violations abort the stage.
"""

from typing import Any, Dict

import pytest

from plugpack.core.analysis.compiler import compile_unit
from plugpack.core.host import HostApi
from plugpack.core.pipeline.stages.bundler import Bundler
from plugpack.domain.errors import BundleError, BundleResolutionFailure
from plugpack.domain.models import CompilationResult, CompiledFile, is_bundled


def _result(sources: Dict[str, str], entry: str = "main.py") -> CompilationResult:
    files = {path: CompiledFile(path=path, source_path=path, compiled=text) for path, text in sources.items()}
    return CompilationResult(
        files=files,
        main_file=files.get(entry),
        implemented=[],
        diagnostics=[],
        duration_ms=0.0,
        permissions=(),
        entry_file=entry,
    )


def _run(bundle_text: str) -> Dict[str, Any]:
    namespace: Dict[str, Any] = {"__name__": "plugin_bundle"}
    exec(compile(bundle_text, "bundle.py", "exec", dont_inherit=True), namespace)
    return namespace


def test_demo_bundle_runs_standalone(host_api, make_unit, demo_sources):
    """The bundled entry class works without the project files."""
    compiled = compile_unit(make_unit(demo_sources), host_api)
    bundled = Bundler(host_api).bundle(compiled)

    namespace = _run(bundled.bundle)
    app = namespace["default"]({"name": "demo"}, None)

    assert app.execute() == '"HELLO WORLD"'
    assert isinstance(app, host_api.base_class)


def test_demo_bundle_metadata(host_api, make_unit, demo_sources):
    compiled = compile_unit(make_unit(demo_sources), host_api)
    bundled = Bundler(host_api).bundle(compiled)

    assert is_bundled(bundled)
    assert bundled.ok
    assert bundled.implemented == compiled.implemented
    assert bundled.files == compiled.files
    assert bundled.inlined == ("main.py", "helpers.py", "lib/util.py")
    assert bundled.external == ("apps_engine.definition", "apps_engine.interfaces", "json")
    assert "__bundle_modules__" in bundled.bundle
    assert "Build a greeting" not in bundled.bundle


def test_minify_can_be_disabled(host_api, make_unit, demo_sources):
    compiled = compile_unit(make_unit(demo_sources), host_api)
    bundled = Bundler(host_api, minify=False).bundle(compiled)

    assert "Build a greeting" in bundled.bundle
    assert _run(bundled.bundle)["default"](None, None).execute() == '"HELLO WORLD"'


def test_import_forms(host_api):
    """Plain, aliased, submodule and star imports all resolve in the bundle."""
    result = _result({
        "main.py": (
            "import pkg.sub\n"
            "import pkg.sub as alias\n"
            "from pkg import sub, VALUE\n"
            "from .helpers import *\n"
            "out = (pkg.sub.x, alias.x, sub.x, VALUE, shout('a'))\n"
        ),
        "pkg/__init__.py": "VALUE = 'v'\n",
        "pkg/sub.py": "x = 3\n",
        "helpers.py": "def shout(s):\n    return s.upper()\n\n_hidden = 1\n",
    })

    namespace = _run(Bundler(host_api).bundle(result).bundle)

    assert namespace["out"] == (3, 3, 3, "v", "A")
    assert "_hidden" not in namespace


def test_future_imports_are_hoisted(host_api):
    result = _result({"main.py": '"""Doc."""\nfrom __future__ import annotations\n\nx: int = 1\n'})
    bundled = Bundler(host_api).bundle(result)

    assert bundled.bundle.startswith("from __future__ import annotations\n")
    assert _run(bundled.bundle)["x"] == 1


def test_installed_dependency_stays_external(host_api):
    result = _result({"main.py": "import pytest\nmarker = pytest.mark\n"})
    bundled = Bundler(host_api).bundle(result)

    assert bundled.external == ("pytest",)
    assert "import pytest" in bundled.bundle
    assert bundled.inlined == ("main.py",)


def test_inline_external_sources(tmp_path):
    """With ``inline_external``, plain source files found outside are folded in."""
    ext = tmp_path / "extlib.py"
    ext.write_text("VALUE = 7\n", encoding="utf-8")

    def resolver(specifier: str) -> str:
        if specifier == "extlib":
            return str(ext)
        raise ModuleNotFoundError(f"No module named '{specifier}'")

    host = HostApi(namespace="apps_engine", resolver=resolver)
    result = _result({"main.py": "import extlib\nresult = extlib.VALUE\n"})

    kept = Bundler(host).bundle(result)
    assert kept.external == ("extlib",)

    inlined = Bundler(host, inline_external=True).bundle(result)
    assert inlined.external == ()
    assert inlined.inlined == ("main.py", str(ext))
    assert _run(inlined.bundle)["result"] == 7


def test_unresolvable_relative_import(host_api):
    with pytest.raises(BundleResolutionFailure) as exc:
        Bundler(host_api).bundle(_result({"main.py": "from .missing import thing\n"}))

    assert exc.value.specifier == ".missing"
    assert exc.value.importer == "main.py"


def test_unresolvable_absolute_import(host_api):
    result = _result({"main.py": "import definitely_not_installed_mod\n"})
    with pytest.raises(BundleResolutionFailure) as exc:
        Bundler(host_api).bundle(result)

    assert exc.value.specifier == "definitely_not_installed_mod"
    assert exc.value.kind == "bundle-resolution"


def test_bundle_checked_against_target_version(host_api):
    result = _result({"main.py": "if (n := 1):\n    pass\n"})

    with pytest.raises(BundleError) as exc:
        Bundler(host_api, target_version=(3, 7)).bundle(result)
    assert exc.value.details["target_version"] == "3.7"

    assert Bundler(host_api, target_version=(3, 8)).bundle(result).bundle


def test_result_without_entry_module(host_api):
    with pytest.raises(BundleError):
        Bundler(host_api).bundle(_result({"other.py": "x = 1\n"}))
