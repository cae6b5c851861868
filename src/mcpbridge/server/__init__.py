# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Protocol server hosted inside the spawned bridge process."""

from __future__ import annotations

from .core import SERVER_VERSION, ProtocolServer, ServerState
from .transports import StdioTransport


__all__ = ["ProtocolServer", "SERVER_VERSION", "ServerState", "StdioTransport"]
