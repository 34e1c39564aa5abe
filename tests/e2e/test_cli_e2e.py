from __future__ import annotations

"""
End-to-End (E2E) CLI Tests.

Verifies the application's external behavior by invoking the entry point
script via subprocess. These tests validate argument parsing, exit codes,
stream output (stdout/stderr), and file system side effects (the archive).
"""

import json
import os
import subprocess
import sys
import zipfile
from pathlib import Path
from typing import List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
SRC_DIR = PROJECT_ROOT / "src"
ENTRY_POINT = SRC_DIR / "plugpack" / "main.py"


@pytest.fixture
def run_cli(host_package: Path):
    """
    Execute the CLI in a separate process.

    Injects the 'src' directory and the fake host package into PYTHONPATH
    so both are resolvable without being installed in site-packages.
    """

    def _run(args: List[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        env = os.environ.copy()
        env["PYTHONPATH"] = os.pathsep.join(
            [str(SRC_DIR), str(host_package), env.get("PYTHONPATH", "")]
        )
        cmd = [sys.executable, str(ENTRY_POINT)] + args
        return subprocess.run(
            cmd,
            cwd=cwd,
            env=env,
            capture_output=True,
            text=True,
            encoding="utf-8",
        )

    return _run


def test_cli_happy_path_execution(run_cli, demo_project: Path, tmp_path: Path) -> None:
    """TC-01: A standard build writes the archive and exits with 0."""
    out = tmp_path / "output" / "demo.zip"

    result = run_cli(["-s", str(demo_project), "-o", str(out)])

    assert result.returncode == 0, f"CLI failed with stderr: {result.stderr}"
    assert "Packaged demo 1.0.0" in result.stdout
    assert f"Archive: {out}" in result.stdout
    assert "Implements: IPostMessageSent" in result.stdout

    with zipfile.ZipFile(out) as archive:
        assert "main.py" in archive.namelist()
        assert "helpers.py" not in archive.namelist()


def test_cli_handles_missing_input(run_cli, tmp_path: Path) -> None:
    """TC-02: An invalid project path exits with 2."""
    result = run_cli(["-s", str(tmp_path / "non_existent_folder")])

    assert result.returncode == 2
    assert "does not exist" in result.stderr


def test_cli_build_failure_exit_code(run_cli, tmp_path: Path, project_writer) -> None:
    """TC-03: A failed build exits with 1 and explains why on stderr."""
    root = project_writer(tmp_path / "p", {"main.py": "x = 1\n"}, manifest=False)

    result = run_cli(["-s", str(root)])

    assert result.returncode == 1
    assert "ERROR: There is no manifest file in the project" in result.stderr
    assert not (root / "dist" / "plugin.zip").exists()


def test_cli_reports_diagnostics(run_cli, demo_project: Path) -> None:
    """TC-04: Compiler diagnostics are printed with their location."""
    (demo_project / "broken.py").write_text("x = 1\ndef (:\n", encoding="utf-8")

    result = run_cli(["-s", str(demo_project)])

    assert result.returncode == 1
    assert "Error broken.py (2," in result.stderr
    assert "Compilation failed" in result.stderr


def test_cli_json_output(run_cli, demo_project: Path, tmp_path: Path) -> None:
    """TC-05: ``--json`` prints the pipeline result alone on stdout."""
    out = tmp_path / "demo.zip"

    result = run_cli(["-s", str(demo_project), "-o", str(out), "--json", "--no-bundle"])

    assert result.returncode == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    assert payload["bundled"] is False
    assert payload["output_file"] == str(out)
    assert payload["summary"]["modules"] == 3


def test_cli_dump_config(run_cli, demo_project: Path) -> None:
    """TC-06: ``--dump-config`` layers ``.plugpackrc`` and flags, then exits."""
    rc = {"bundle": False, "ignore": ["scratch"]}
    (demo_project / ".plugpackrc").write_text(json.dumps(rc), encoding="utf-8")

    result = run_cli(["-s", str(demo_project), "--dump-config", "--no-minify", "--target", "3.10"])

    assert result.returncode == 0, result.stderr
    cfg = json.loads(result.stdout)
    assert cfg["bundle"] is False
    assert cfg["minify"] is False
    assert cfg["ignore"] == ["scratch"]
    assert cfg["target_version"] == "3.10"
    assert not (demo_project / "dist").exists()
