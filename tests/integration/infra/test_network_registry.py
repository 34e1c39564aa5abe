from __future__ import annotations

"""
Integration tests for the remote permission registry client.

Utilizes mocking to verify payload handling and failure reporting without
making real network calls.
"""

from unittest.mock import MagicMock, patch

import requests

from plugpack.infra.network import fetch_permission_registry
from plugpack.infra.network.common import USER_AGENT

REGISTRY = {"network": {"http": {"name": "network.http"}}}


def _response(payload) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = payload
    return mock_response


def test_fetch_registry_plain_payload() -> None:
    """TC-01: A nested registry is returned as-is."""
    with patch("requests.get", return_value=_response(REGISTRY)) as mock_get:
        assert fetch_permission_registry("https://host/registry") == REGISTRY

    _, kwargs = mock_get.call_args
    assert kwargs["headers"]["User-Agent"] == USER_AGENT
    assert kwargs["timeout"] == 5


def test_fetch_registry_unwraps_permissions_key() -> None:
    """TC-02: ``{"permissions": {...}}`` envelopes are unwrapped."""
    with patch("requests.get", return_value=_response({"permissions": REGISTRY, "version": 3})):
        assert fetch_permission_registry("https://host/registry") == REGISTRY


def test_fetch_registry_rejects_non_object() -> None:
    """TC-03: A JSON array is not a registry."""
    with patch("requests.get", return_value=_response(["network.http"])):
        assert fetch_permission_registry("https://host/registry") is None


def test_fetch_registry_network_failures() -> None:
    """TC-04: Timeouts, HTTP errors and bad JSON all yield None."""
    with patch("requests.get", side_effect=requests.exceptions.Timeout()):
        assert fetch_permission_registry("https://host/registry") is None

    with patch("requests.get", side_effect=requests.exceptions.ConnectionError("down")):
        assert fetch_permission_registry("https://host/registry") is None

    failing = _response(None)
    failing.raise_for_status.side_effect = requests.exceptions.HTTPError("503")
    with patch("requests.get", return_value=failing):
        assert fetch_permission_registry("https://host/registry") is None

    broken = _response(None)
    broken.json.side_effect = ValueError("Expecting value")
    with patch("requests.get", return_value=broken):
        assert fetch_permission_registry("https://host/registry") is None
