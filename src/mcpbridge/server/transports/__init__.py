# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Transport adapters for the protocol server."""

from __future__ import annotations

from .stdio import StdioTransport, get_stdio_server


__all__ = ["StdioTransport", "get_stdio_server"]
