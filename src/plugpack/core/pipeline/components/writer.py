from __future__ import annotations

"""
Archive Output Helpers.

Thin layer over ``zipfile`` used by the Packager. Entry metadata for files
copied from disk is gathered up front (it involves a ``stat`` per file);
writing into the archive itself is always sequential.
"""

import json
import zipfile
from typing import Any, Dict

# Fixed timestamp for in-memory entries so identical builds produce identical archives
_IN_MEMORY_DATE = (1980, 1, 1, 0, 0, 0)


# -----------------------------------------------------------------------------
# ENTRY WRITERS
# -----------------------------------------------------------------------------

def write_text_entry(archive: zipfile.ZipFile, arcname: str, text: str) -> None:
    """Write a UTF-8 text entry generated in memory."""
    info = zipfile.ZipInfo(arcname, date_time=_IN_MEMORY_DATE)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    archive.writestr(info, text.encode("utf-8"))


def write_json_entry(archive: zipfile.ZipFile, arcname: str, payload: Dict[str, Any]) -> None:
    write_text_entry(archive, arcname, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def write_file_entry(archive: zipfile.ZipFile, info: zipfile.ZipInfo, abs_path: str) -> None:
    """
    Copy a file from disk under prepared entry metadata.

    Raises:
        OSError: If the file cannot be read.
    """
    info.compress_type = zipfile.ZIP_DEFLATED
    with open(abs_path, "rb") as src, archive.open(info, "w") as dst:
        while True:
            chunk = src.read(64 * 1024)
            if not chunk:
                break
            dst.write(chunk)


def file_entry_info(abs_path: str, arcname: str) -> zipfile.ZipInfo:
    """
    Build entry metadata for a file on disk.

    Files dated before 1980 (the earliest zip timestamp) are clamped.
    """
    info = zipfile.ZipInfo.from_file(abs_path, arcname)
    if info.date_time < _IN_MEMORY_DATE:
        info.date_time = _IN_MEMORY_DATE
    return info


def packaged_by_marker(tool: str, version: str) -> Dict[str, str]:
    return {"tool": tool, "version": version}
