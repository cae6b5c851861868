# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Serve a :class:`~mcpbridge.server.ProtocolServer` on the process's stdin/stdout.

Line framing comes from the MCP SDK's ``stdio_server``: one JSON-RPC object per
line in each direction.  Input lines that fail validation are delivered to the
server as exceptions and answered with a parse error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.stdio import stdio_server


if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..core import ProtocolServer


def get_stdio_server():
    """Factory for the stdio stream pair; tests swap in memory streams here."""
    return stdio_server


class StdioTransport:
    def __init__(self, server: ProtocolServer) -> None:
        self._server = server

    @property
    def server(self) -> ProtocolServer:
        return self._server

    async def run(self) -> None:
        """Serve until stdin reaches end of file."""
        open_streams = get_stdio_server()
        async with open_streams() as (read_stream, write_stream):
            await self._server.run(read_stream, write_stream)


__all__ = ["StdioTransport", "get_stdio_server"]
