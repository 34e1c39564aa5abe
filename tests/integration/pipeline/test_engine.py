from __future__ import annotations

"""
Integration tests for the build pipeline engine.

Runs complete builds of on-disk plugin projects against the fake host
package and checks the resulting archives and failure reporting.
"""

import json
import os
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from plugpack.core.pipeline.engine import run_pipeline


def manifest_with(**fields):
    manifest = {"entryFile": "main.py", "name": "demo", "version": "1.0.0"}
    manifest.update(fields)
    return manifest


def _names(archive_path: str):
    with zipfile.ZipFile(archive_path) as archive:
        return archive.namelist()


def test_full_build_bundled(demo_project: Path, host_api, tmp_path: Path) -> None:
    """TC-01: A valid project becomes a bundled archive."""
    out = tmp_path / "dist" / "demo.zip"
    result = run_pipeline(str(demo_project), str(out), host_api=host_api)

    assert result.ok, result.error
    assert result.output_file == str(out)
    assert result.bundled is True
    assert result.name == "demo"
    assert result.implemented == ["IPostMessageSent"]
    assert result.summary["inlined"] == ["main.py", "helpers.py", "lib/util.py"]
    assert result.summary["target_version"] == "3.8"

    names = _names(result.output_file)
    assert [n for n in names if n.endswith(".py")] == ["main.py"]
    assert "requirements.txt" in names


def test_full_build_unbundled_with_default_output(demo_project: Path, host_api) -> None:
    """TC-02: ``bundle: False`` ships every module at the default location."""
    result = run_pipeline(str(demo_project), "", host_api=host_api, config={"bundle": False})

    assert result.ok, result.error
    assert result.output_file == str(demo_project / "dist" / "plugin.zip")
    assert result.bundled is False
    assert {"main.py", "helpers.py", "lib/util.py"} <= set(_names(result.output_file))


def test_host_api_built_from_config(demo_project: Path, host_package, tmp_path: Path) -> None:
    """TC-03: Without an explicit handle the host package named in config is used."""
    result = run_pipeline(str(demo_project), str(tmp_path / "out.zip"), config={"host_package": "apps_engine"})
    assert result.ok, result.error

    missing = run_pipeline(
        str(demo_project), str(tmp_path / "out2.zip"), config={"host_package": "definitely_not_a_host_package"}
    )
    assert missing.failure_kind == "compiler-options"


def test_invalid_project_path(tmp_path: Path, host_api) -> None:
    """TC-04: A missing project directory is reported as a path failure."""
    result = run_pipeline(str(tmp_path / "void"), "", host_api=host_api)

    assert result.ok is False
    assert result.failure_kind == "invalid-path"
    assert "Invalid or non-existent" in result.error


def test_missing_manifest(tmp_path: Path, host_api, project_writer) -> None:
    root = project_writer(tmp_path / "p", {"main.py": "x = 1\n"}, manifest=False)
    out = tmp_path / "p.zip"

    result = run_pipeline(str(root), str(out), host_api=host_api)

    assert result.failure_kind == "manifest-not-found"
    assert not out.exists()


def test_diagnostics_stop_the_build(demo_project: Path, host_api, tmp_path: Path) -> None:
    """TC-05: Compiler diagnostics abort packaging unless told to continue."""
    (demo_project / "broken.py").write_text("def (:\n", encoding="utf-8")
    out = tmp_path / "demo.zip"

    result = run_pipeline(str(demo_project), str(out), host_api=host_api)

    assert result.ok is False
    assert result.failure_kind == "diagnostics"
    assert result.diagnostics[0].filename == "broken.py"
    assert not out.exists()

    forced = run_pipeline(
        str(demo_project), str(out), host_api=host_api,
        config={"continue_on_diagnostics": True, "bundle": False},
    )
    assert forced.ok, forced.error
    assert {d.filename for d in forced.diagnostics} == {"broken.py"}
    assert "broken.py" not in _names(forced.output_file)


def test_unknown_permission(tmp_path: Path, host_api, project_writer, demo_sources) -> None:
    """TC-06: Undeclared host permissions fail validation."""
    manifest = manifest_with(permissions=[{"name": "camera.capture"}])
    root = project_writer(tmp_path / "p", demo_sources, manifest=manifest, extra_files={"a.txt": "a"})

    result = run_pipeline(str(root), str(tmp_path / "p.zip"), host_api=host_api)

    assert result.failure_kind == "permission-schema"
    assert result.details["permission"] == "camera.capture"


def test_remote_permission_registry(tmp_path: Path, host_api, project_writer, demo_sources) -> None:
    """TC-07: A remote registry replaces the host's, with fallback on failure."""
    manifest = manifest_with(permissions=[{"name": "camera.capture"}])
    root = project_writer(tmp_path / "p", demo_sources, manifest=manifest, extra_files={"a.txt": "a"})
    cfg = {"permissions_url": "https://registry.example/permissions.json"}
    remote = {"camera": {"capture": {"name": "camera.capture"}}}

    with patch("plugpack.core.pipeline.engine.fetch_permission_registry", return_value=remote) as fetch:
        result = run_pipeline(str(root), str(tmp_path / "p.zip"), host_api=host_api, config=cfg)
    assert result.ok, result.error
    fetch.assert_called_once_with("https://registry.example/permissions.json")

    with patch("plugpack.core.pipeline.engine.fetch_permission_registry", return_value=None):
        fallback = run_pipeline(str(root), str(tmp_path / "p2.zip"), host_api=host_api, config=cfg)
    assert fallback.failure_kind == "permission-schema"


def test_wrong_base_class(tmp_path: Path, host_api, project_writer) -> None:
    source = "class Plain:\n    def __init__(self, info, logger):\n        pass\n\ndefault = Plain\n"
    root = project_writer(tmp_path / "p", {"main.py": source}, extra_files={"a.txt": "a"})

    result = run_pipeline(str(root), str(tmp_path / "p.zip"), host_api=host_api)

    assert result.failure_kind == "inheritance"
    assert result.details["reason"] == "wrong-ancestor"


def test_project_config_layering(demo_project: Path, host_api, tmp_path: Path) -> None:
    """TC-08: ``.plugpackrc`` settings apply and caller overrides win."""
    rc = {"bundle": False, "ignoredFiles": ["icon.png"], "ignore": ["helpers_unused"]}
    (demo_project / ".plugpackrc").write_text(json.dumps(rc), encoding="utf-8")

    result = run_pipeline(str(demo_project), str(tmp_path / "a.zip"), host_api=host_api)
    names = _names(result.output_file)
    assert result.bundled is False
    assert "assets/icon.png" not in names
    assert ".plugpackrc" not in names

    overridden = run_pipeline(str(demo_project), str(tmp_path / "b.zip"), host_api=host_api, config={"bundle": True})
    assert overridden.bundled is True


def test_strict_resolution_failure(tmp_path: Path, host_api, project_writer) -> None:
    """TC-09: Strict mode turns unresolved imports into a typed failure."""
    source = "from apps_engine.definition import App\nimport definitely_not_installed_mod\n\nclass default(App):\n    pass\n"
    root = project_writer(tmp_path / "p", {"main.py": source}, extra_files={"a.txt": "a"})

    result = run_pipeline(str(root), str(tmp_path / "p.zip"), host_api=host_api, config={"strict_resolution": True})

    assert result.failure_kind == "module-resolution"
    assert result.details["specifier"] == "definitely_not_installed_mod"


def test_minimal_project_packages(tmp_path: Path, host_api, project_writer) -> None:
    """TC-10: A manifest plus a single entry module is a complete plugin."""
    source = "from apps_engine.definition import App\n\nclass Demo(App):\n    pass\n\ndefault = Demo\n"
    root = project_writer(tmp_path / "p", {"main.py": source})

    result = run_pipeline(str(root), str(tmp_path / "p.zip"), host_api=host_api)

    assert result.ok, result.error
    assert _names(result.output_file) == [".packagedby", "plugin.json", "main.py"]


def test_unreadable_source_fails_the_build(tmp_path: Path, host_api, project_writer, demo_sources) -> None:
    """TC-11: Read errors while loading become a typed failure result."""
    root = project_writer(tmp_path / "p", demo_sources)
    try:
        os.symlink(str(root / "gone.py"), str(root / "broken.py"))
    except (OSError, NotImplementedError):
        pytest.skip("symlinks are not available on this platform")

    result = run_pipeline(str(root), str(tmp_path / "p.zip"), host_api=host_api)

    assert result.ok is False
    assert result.failure_kind == "invalid-source-file"
    assert result.details["filename"] == "broken.py"
