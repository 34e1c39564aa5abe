from __future__ import annotations

"""
Global Pytest Configuration and Fixtures.

This module sets up the testing environment, including:
1. Path manipulation to ensure the 'src' directory is importable.
2. A fake ``apps_engine`` host package written to a temp directory and
   placed on ``sys.path`` for the whole session.
3. Builders for plugin projects on disk and in memory.
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from plugpack.core.host import HostApi  # noqa: E402
from plugpack.domain.models import CompilationUnit, Manifest, SourceFile  # noqa: E402

# -----------------------------------------------------------------------------
# Fake Host Package
# -----------------------------------------------------------------------------
HOST_PACKAGE_FILES: Dict[str, str] = {
    "apps_engine/__init__.py": '"""Fake host API used by the test-suite."""\n',
    "apps_engine/definition.py": (
        "class App:\n"
        "    def __init__(self, info, logger):\n"
        "        self.info = info\n"
        "        self.logger = logger\n"
    ),
    "apps_engine/permissions.py": (
        "PERMISSIONS = {\n"
        "    'network': {'http': {'name': 'network.http'}},\n"
        "    'storage': {'read': {'name': 'storage.read'}, 'write': {'name': 'storage.write'}},\n"
        "}\n"
    ),
    "apps_engine/interfaces.py": (
        "def implements(*interfaces):\n"
        "    def decorate(cls):\n"
        "        cls.__implemented__ = interfaces\n"
        "        return cls\n"
        "    return decorate\n"
        "\n"
        "class IPostMessageSent:\n"
        "    pass\n"
        "\n"
        "class IPreMessageSent:\n"
        "    pass\n"
        "\n"
        "CAPABILITIES = ['IPostMessageSent', 'IPreMessageSent']\n"
    ),
}

DEFAULT_MANIFEST: Dict[str, Any] = {
    "entryFile": "main.py",
    "name": "demo",
    "version": "1.0.0",
    "permissions": [{"name": "network.http"}],
}

DEMO_SOURCES: Dict[str, str] = {
    "main.py": (
        '"""Demo plugin."""\n'
        "from apps_engine.definition import App\n"
        "from apps_engine.interfaces import implements, IPostMessageSent\n"
        "\n"
        "from .helpers import greet\n"
        "from lib.util import shout\n"
        "\n"
        "\n"
        "@implements(IPostMessageSent)\n"
        "class DemoApp(App):\n"
        "    def execute(self):\n"
        "        # say hello\n"
        "        return shout(greet('world'))\n"
        "\n"
        "\n"
        "default = DemoApp\n"
    ),
    "helpers.py": (
        "def greet(name):\n"
        '    """Build a greeting."""\n'
        "    return f'hello {name}'\n"
    ),
    "lib/util.py": (
        "import json\n"
        "\n"
        "\n"
        "def shout(text):\n"
        "    return json.dumps(text.upper())\n"
    ),
}


@pytest.fixture(scope="session")
def host_package(tmp_path_factory: pytest.TempPathFactory) -> Iterator[Path]:
    """Install the fake ``apps_engine`` package on ``sys.path`` for the session."""
    root = tmp_path_factory.mktemp("host_site")
    for rel, content in HOST_PACKAGE_FILES.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    sys.path.insert(0, str(root))
    yield root

    sys.path.remove(str(root))
    for name in [m for m in sys.modules if m == "apps_engine" or m.startswith("apps_engine.")]:
        del sys.modules[name]


@pytest.fixture
def host_api(host_package: Path) -> HostApi:
    """HostApi built from the fake host package."""
    return HostApi.from_package("apps_engine")

# -----------------------------------------------------------------------------
# Project Builders
# -----------------------------------------------------------------------------
def write_project(
        root: Path,
        sources: Dict[str, str],
        manifest: Any = None,
        extra_files: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Write a plugin project to disk.

    ``extra_files`` values may be str (text) or bytes (binary). Pass
    ``manifest=False`` to omit ``plugin.json``.
    """
    root.mkdir(parents=True, exist_ok=True)
    files: Dict[str, Any] = dict(sources)
    files.update(extra_files or {})
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")

    if manifest is not False:
        (root / "plugin.json").write_text(
            json.dumps(manifest if manifest is not None else DEFAULT_MANIFEST, indent=2),
            encoding="utf-8",
        )
    return root


@pytest.fixture
def demo_project(tmp_path: Path) -> Path:
    """A complete, valid plugin project with assets and a lock file."""
    return write_project(
        tmp_path / "demo",
        DEMO_SOURCES,
        extra_files={
            "requirements.txt": "requests==2.31.0\n",
            "assets/icon.png": b"\x89PNG\r\n\x1a\n",
            "README.md": "# Demo\n",
        },
    )


@pytest.fixture
def make_unit() -> Callable[..., CompilationUnit]:
    """Build an in-memory CompilationUnit from a ``{path: source}`` map."""

    def _make(sources: Dict[str, str], entry: str = "main.py", **manifest_fields: Any) -> CompilationUnit:
        raw = dict(DEFAULT_MANIFEST)
        raw["entryFile"] = entry
        raw.update(manifest_fields)
        manifest = Manifest.from_dict(raw)
        files = {path: SourceFile(path=path, content=text) for path, text in sources.items()}
        return CompilationUnit(manifest=manifest, files=files)

    return _make


@pytest.fixture
def demo_sources() -> Dict[str, str]:
    """Sources of the demo plugin, safe to modify per test."""
    return dict(DEMO_SOURCES)


@pytest.fixture
def project_writer() -> Callable[..., Path]:
    """Expose ``write_project`` to test modules."""
    return write_project
