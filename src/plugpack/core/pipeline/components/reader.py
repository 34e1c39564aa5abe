from __future__ import annotations

"""
Resilient File Reading Component.

Reads plugin sources with encoding resilience so a stray binary or
mis-encoded file surfaces as a compiler diagnostic instead of aborting the
load with ``UnicodeDecodeError``.
"""

import json
from typing import Any, Iterator

# -----------------------------------------------------------------------------
# READ OPERATIONS
# -----------------------------------------------------------------------------

def stream_file_content(file_path: str) -> Iterator[str]:
    """
    Generate a line-by-line stream of file content.

    Undecodable byte sequences are replaced with U+FFFD.

    Args:
        file_path: Absolute path to the target file.

    Yields:
        str: Lines from the file, line endings preserved.
    """
    with open(file_path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            yield line


def read_text(file_path: str) -> str:
    """Read a whole source file through the resilient stream."""
    return "".join(stream_file_content(file_path))


def read_json(file_path: str) -> Any:
    """
    Decode a strict UTF-8 JSON file.

    Raises:
        OSError: If the file cannot be opened.
        ValueError: If the content is not valid JSON.
    """
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)
