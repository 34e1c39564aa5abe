from __future__ import annotations

"""
Network Communication Infrastructure.

External HTTP interactions of the build tool. Every client here is
optional: a failed request is logged and reported as ``None`` so that an
offline build falls back to locally installed data.
"""

from plugpack.infra.network.registry_client import fetch_permission_registry

__all__ = [
    "fetch_permission_registry",
]
