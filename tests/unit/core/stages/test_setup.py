from __future__ import annotations

"""
Unit tests for the Pipeline Setup stage.

Validates configuration coercion, target version parsing and path
normalization of the project directory and the archive.
"""

from pathlib import Path

import pytest

from plugpack.core.pipeline.stages.setup import (
    parse_target_version,
    prepare_paths,
    validate_config,
)
from plugpack.domain.config import get_default_config


def test_validate_config_defaults_on_non_dict() -> None:
    """TC-01: Non-dict input falls back to defaults with a warning."""
    cfg, warnings = validate_config(["bundle"])

    assert cfg == get_default_config()
    assert "Invalid config type" in warnings[0]

    with pytest.raises(TypeError):
        validate_config("bundle", strict=True)


def test_validate_config_coercion() -> None:
    """TC-02: Human-friendly values are coerced and reported."""
    cfg, warnings = validate_config({
        "bundle": "no",
        "minify": 1,
        "ignore": "a, b ,",
        "ignored_files": ["x", 3, " y "],
        "host_package": "   ",
        "permissions_url": None,
    })

    assert cfg["bundle"] is False
    assert cfg["minify"] is True
    assert cfg["ignore"] == ["a", "b"]
    assert cfg["ignored_files"] == ["x", "y"]
    assert cfg["host_package"] == "apps_engine"
    assert cfg["permissions_url"] == ""
    assert len(warnings) == 4


def test_validate_config_strict_rejects_mistyped() -> None:
    """TC-03: Strict mode raises instead of coercing."""
    with pytest.raises(TypeError):
        validate_config({"bundle": "yes"}, strict=True)
    with pytest.raises(TypeError):
        validate_config({"ignore": [1]}, strict=True)


def test_validate_config_bad_target_version() -> None:
    """TC-04: An unsupported target falls back to the default."""
    cfg, warnings = validate_config({"target_version": "2.7"})
    assert cfg["target_version"] == "3.8"
    assert any("Unsupported target version" in w for w in warnings)

    with pytest.raises(ValueError):
        validate_config({"target_version": "latest"}, strict=True)


def test_parse_target_version() -> None:
    """TC-05: Only ``3.x`` targets from 3.7 on are accepted."""
    assert parse_target_version("3.10") == (3, 10)
    assert parse_target_version((3, 7)) == (3, 7)

    for bad in ("3.6", "4.0", "3", "3.x", "", None):
        with pytest.raises(ValueError):
            parse_target_version(bad)


def test_prepare_paths_invalid_input(tmp_path: Path) -> None:
    """TC-06: A non-existent project directory is rejected."""
    with pytest.raises(NotADirectoryError) as exc:
        prepare_paths(str(tmp_path / "void"), "")
    assert "Invalid or non-existent" in str(exc.value)


def test_prepare_paths_defaults_and_suffix(tmp_path: Path) -> None:
    """TC-07: The archive defaults to ``dist/plugin.zip`` and gets a suffix."""
    base, out = prepare_paths(str(tmp_path), "")
    assert base == str(tmp_path)
    assert out == str(tmp_path / "dist" / "plugin.zip")
    assert (tmp_path / "dist").is_dir()

    _, named = prepare_paths(str(tmp_path), str(tmp_path / "out" / "my-plugin"))
    assert named == str(tmp_path / "out" / "my-plugin.zip")
    assert (tmp_path / "out").is_dir()
