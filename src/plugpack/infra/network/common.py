from __future__ import annotations

from plugpack.domain.constants import TOOL_NAME, TOOL_VERSION

USER_AGENT = f"{TOOL_NAME}/{TOOL_VERSION}"
DEFAULT_TIMEOUT = 10
