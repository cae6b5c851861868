# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Protocol version helpers.

The bridge speaks whatever protocol revisions the installed MCP SDK supports.
During ``initialize`` the client's requested version is echoed back when it is
one of those; otherwise the server answers with the SDK's latest revision and
leaves it to the client to disconnect.
"""

from __future__ import annotations

from typing import Final

from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS as _SDK_VERSIONS
from mcp.types import LATEST_PROTOCOL_VERSION


SUPPORTED_PROTOCOL_VERSIONS: Final[tuple[str, ...]] = tuple(str(version) for version in _SDK_VERSIONS)


def negotiate_version(requested: str | None) -> str:
    if requested is not None and str(requested) in SUPPORTED_PROTOCOL_VERSIONS:
        return str(requested)
    return LATEST_PROTOCOL_VERSION


__all__ = ["LATEST_PROTOCOL_VERSION", "SUPPORTED_PROTOCOL_VERSIONS", "negotiate_version"]
