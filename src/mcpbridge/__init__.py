# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Execution bridge for generated MCP servers."""

from __future__ import annotations

from .client import BridgeClient, Environment, StreamMultiplexer
from .config import BridgeSettings
from .dispatch import CallDispatcher, DispatchResult
from .errors import (
    BridgeError,
    ClientClosedError,
    DispatchError,
    MalformedFrameError,
    RequestTimeoutError,
    ResourceNotFoundError,
    StreamClosedError,
    ToolNotFoundError,
)
from .introspection import detect_language, parse
from .registry import CallTemplate, PathParam, Registry, ResourceDefinition, ToolDefinition
from .server import ProtocolServer


__version__ = "0.1.0"

__all__ = [
    "BridgeClient",
    "BridgeError",
    "BridgeSettings",
    "CallDispatcher",
    "CallTemplate",
    "ClientClosedError",
    "DispatchError",
    "DispatchResult",
    "Environment",
    "MalformedFrameError",
    "PathParam",
    "ProtocolServer",
    "Registry",
    "RequestTimeoutError",
    "ResourceDefinition",
    "ResourceNotFoundError",
    "StreamClosedError",
    "StreamMultiplexer",
    "ToolDefinition",
    "ToolNotFoundError",
    "detect_language",
    "parse",
]
