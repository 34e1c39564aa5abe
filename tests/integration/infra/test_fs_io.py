from __future__ import annotations

"""
Integration tests for FileSystem Infrastructure.

Validates path normalization, canonical project-relative paths and
directory creation against the real filesystem.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from plugpack.infra.fs import (
    normalize_path,
    normalize_source_path,
    safe_mkdir,
    to_relative_posix,
)

# -----------------------------------------------------------------------------
# PATH RESOLUTION TESTS
# -----------------------------------------------------------------------------

def test_normalize_path_expansion() -> None:
    """TC-01: Verify expansion of environment variables and user shortcuts."""
    with patch.dict(os.environ, {"TEST_VAR": "my_folder"}):
        path = normalize_path("$TEST_VAR/sub", fallback=".")
        assert path.lower().endswith(os.path.join("my_folder", "sub").lower())

        with patch("os.path.expanduser", side_effect=lambda p: p.replace("~", "/home/user")):
            path = normalize_path("~/code", fallback=".")
            assert "code" in Path(path).parts


def test_normalize_path_fallback(tmp_path: Path) -> None:
    """TC-02: Blank input falls back to the provided default."""
    assert normalize_path("   ", fallback=str(tmp_path)) == os.path.abspath(str(tmp_path))
    assert normalize_path(None, fallback=str(tmp_path)) == os.path.abspath(str(tmp_path))


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("main.py", "main.py"),
        ("./lib/util.py", "lib/util.py"),
        ("lib\\util.py", "lib/util.py"),
        ("/assets/icon.png", "assets/icon.png"),
        ("lib/../main.py", "main.py"),
        ("../outside.py", ""),
        ("..", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_source_path(raw, expected) -> None:
    """TC-03: Project-relative paths collapse to one canonical POSIX form."""
    assert normalize_source_path(raw) == expected


def test_to_relative_posix(tmp_path: Path) -> None:
    nested = tmp_path / "lib" / "sub" / "mod.py"
    assert to_relative_posix(str(nested), str(tmp_path)) == "lib/sub/mod.py"

# -----------------------------------------------------------------------------
# DIRECTORY CREATION TESTS
# -----------------------------------------------------------------------------

def test_safe_mkdir_creates_nested(tmp_path: Path) -> None:
    """TC-04: Nested directories are created and existing ones accepted."""
    target = tmp_path / "a" / "b" / "c"

    assert safe_mkdir(str(target)) == (True, None)
    assert target.is_dir()
    assert safe_mkdir(str(target)) == (True, None)


def test_safe_mkdir_reports_errors(tmp_path: Path) -> None:
    """TC-05: A file in the way is reported instead of raised."""
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")

    ok, err = safe_mkdir(str(blocker / "child"))

    assert ok is False
    assert err
