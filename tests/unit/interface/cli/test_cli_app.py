from __future__ import annotations

"""
Unit tests for the CLI Application Controller.

Verifies exit code mapping and result rendering with the pipeline mocked.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from plugpack.domain.models import Diagnostic
from plugpack.domain.pipeline_models import PipelineResult
from plugpack.infra.logging import shutdown_logging
from plugpack.interface.cli.app import main

RUN_PIPELINE = "plugpack.interface.cli.app.run_pipeline"


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    shutdown_logging()


def _ok(tmp_path: Path) -> PipelineResult:
    return PipelineResult(
        ok=True,
        error="",
        source_dir=str(tmp_path),
        output_file=str(tmp_path / "dist" / "plugin.zip"),
        name="demo",
        version="1.0.0",
        bundled=True,
        implemented=["IPostMessageSent"],
        summary={"modules": 3, "support_files": 2, "inlined": ["main.py", "helpers.py"], "external": ["json"]},
    )


def test_success_summary(tmp_path: Path, capsys) -> None:
    with patch(RUN_PIPELINE, return_value=_ok(tmp_path)) as run:
        code = main(["-s", str(tmp_path), "--no-bundle"])

    assert code == 0
    run.assert_called_once_with(str(tmp_path), "", config={"bundle": False})

    out = capsys.readouterr().out
    assert "Packaged demo 1.0.0" in out
    assert "Bundled modules: 2" in out
    assert "  - json" in out
    assert "Implements: IPostMessageSent" in out


def test_failure_prints_diagnostics(tmp_path: Path, capsys) -> None:
    failed = PipelineResult(
        ok=False,
        error="Compilation failed with 1 diagnostic(s).",
        source_dir=str(tmp_path),
        failure_kind="diagnostics",
        diagnostics=[Diagnostic("Bad", filename="a.py", line=1, character=0)],
    )
    with patch(RUN_PIPELINE, return_value=failed):
        code = main(["-s", str(tmp_path)])

    assert code == 1
    err = capsys.readouterr().err
    assert "Error a.py (1,1): Bad" in err
    assert "ERROR: Compilation failed" in err


def test_invalid_path_result_maps_to_exit_2(tmp_path: Path) -> None:
    failed = PipelineResult(ok=False, error="gone", source_dir=str(tmp_path), failure_kind="invalid-path")
    with patch(RUN_PIPELINE, return_value=failed):
        assert main(["-s", str(tmp_path)]) == 2


def test_missing_source_dir(tmp_path: Path) -> None:
    with patch(RUN_PIPELINE) as run:
        assert main(["-s", str(tmp_path / "void")]) == 2
    run.assert_not_called()


def test_interrupt_and_crash(tmp_path: Path, capsys) -> None:
    with patch(RUN_PIPELINE, side_effect=KeyboardInterrupt):
        assert main(["-s", str(tmp_path)]) == 130

    with patch(RUN_PIPELINE, side_effect=RuntimeError("boom")):
        assert main(["-s", str(tmp_path)]) == 1
    assert "Build pipeline crashed: boom" in capsys.readouterr().err
