from __future__ import annotations

"""
Remote Permission Registry Client.

Downloads the permission registry published by a host deployment. The
payload is either the nested registry itself
(``{"scope": {"key": {"name": "scope.key"}}}``) or an object wrapping it
under a ``permissions`` key.
"""

import logging
from typing import Any, Dict, Optional

import requests

from plugpack.infra.network.common import DEFAULT_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

REGISTRY_TIMEOUT = 5


def fetch_permission_registry(url: str, timeout: int = REGISTRY_TIMEOUT) -> Optional[Dict[str, Any]]:
    """
    Fetch a permission registry from a remote authority.

    Args:
        url: Registry endpoint returning JSON.
        timeout: Request timeout in seconds.

    Returns:
        Optional[Dict[str, Any]]: The nested registry, or None when the
        request fails or the payload is not a JSON object.
    """
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    logger.debug(f"Fetching permission registry from: {url}")

    try:
        response = requests.get(url, headers=headers, timeout=timeout or DEFAULT_TIMEOUT)
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.Timeout:
        logger.warning(f"Network: Permission registry request timed out after {timeout}s.")
        return None
    except requests.exceptions.RequestException as e:
        logger.error(f"Network: Permission registry unavailable: {e}")
        return None
    except ValueError as e:
        logger.error(f"Network: Permission registry is not valid JSON: {e}")
        return None

    if isinstance(data, dict) and isinstance(data.get("permissions"), dict):
        data = data["permissions"]

    if not isinstance(data, dict):
        logger.warning("Network: Received malformed permission registry (root is not an object).")
        return None

    logger.info(f"Network: Permission registry synchronized ({len(data)} scopes).")
    return data
