# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Exception hierarchy for the bridge.

Protocol-level failures reported by the remote server are surfaced as the MCP
SDK's :class:`mcp.shared.exceptions.McpError`; everything raised locally derives
from :class:`BridgeError`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class BridgeError(Exception):
    """Base class for all bridge errors."""


class DispatchError(BridgeError):
    """An HTTP call built from a call template did not succeed.

    ``status_code`` is ``None`` when the request never produced a response
    (connection refused, DNS failure, timeout, missing path argument).
    """

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.status_code is not None:
            payload["status"] = self.status_code
        if self.url is not None:
            payload["url"] = self.url
        return payload


class CorrelationError(BridgeError):
    """A request could not be paired with a response."""

    def __init__(self, message: str, *, method: str | None = None, request_id: str | int | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.request_id = request_id


class RequestTimeoutError(CorrelationError, TimeoutError):
    """No response arrived within the request timeout."""


class StreamClosedError(CorrelationError):
    """The duplex channel ended or failed while requests were outstanding."""


class MalformedFrameError(CorrelationError):
    """A response frame addressed to a pending request could not be decoded."""


class ClientError(BridgeError):
    """Misuse of :class:`~mcpbridge.client.BridgeClient`."""


class ClientClosedError(ClientError):
    """The client has been closed."""


class ToolNotFoundError(ClientError, LookupError):
    def __init__(self, name: str, available: Iterable[str]) -> None:
        self.name = name
        self.available = sorted(available)
        listing = ", ".join(self.available) or "none"
        super().__init__(f"Tool '{name}' not found. Available tools: {listing}")


class ResourceNotFoundError(ClientError, LookupError):
    def __init__(self, uri: str, available: Iterable[str]) -> None:
        self.uri = uri
        self.available = sorted(available)
        listing = ", ".join(self.available) or "none"
        super().__init__(f"Resource '{uri}' not found. Available resources: {listing}")


class EnvironmentNotRunningError(BridgeError, RuntimeError):
    """An operation needed the server process but it is not running."""


__all__ = [
    "BridgeError",
    "ClientClosedError",
    "ClientError",
    "CorrelationError",
    "DispatchError",
    "EnvironmentNotRunningError",
    "MalformedFrameError",
    "RequestTimeoutError",
    "ResourceNotFoundError",
    "StreamClosedError",
    "ToolNotFoundError",
]
