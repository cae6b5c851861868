# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""High-level client for a running bridge server.

:class:`BridgeClient` performs the ``initialize`` handshake, caches the
advertised tools and resources, and checks names and URIs locally before any
request is sent, so a typo fails fast with the list of what is available.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, TypeVar

from mcp import types
from mcp.shared.exceptions import McpError
from pydantic import BaseModel, ValidationError

from ..errors import ClientClosedError, ClientError, CorrelationError, ResourceNotFoundError, ToolNotFoundError
from ..registry import ResourceDefinition, ToolDefinition
from ..utils import get_logger


CLIENT_NAME = "mcpbridge-client"
CLIENT_VERSION = "1.0.0"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: type[ModelT], payload: Any, method: str) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ClientError(f"Server returned a malformed {method} result: {exc}") from exc


class RequestChannel(Protocol):
    """Anything that can send a request and await its result."""

    async def send(self, method: str, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Any: ...


class BridgeClient:
    """Typed convenience layer over a :class:`RequestChannel`.

    Usage::

        async with Environment(source) as env:
            async with env.client as client:
                await client.call_tool("get_post_by_id", {"id": 1})
    """

    def __init__(
        self,
        channel: RequestChannel,
        *,
        client_info: types.Implementation | None = None,
        timeout: float | None = None,
    ) -> None:
        self._channel = channel
        self._client_info = client_info or types.Implementation(name=CLIENT_NAME, version=CLIENT_VERSION)
        self._timeout = timeout
        self._tools: dict[str, ToolDefinition] = {}
        self._resources: dict[str, ResourceDefinition] = {}
        self._loaded = False
        self._closed = False
        self._logger = get_logger("mcpbridge.client")
        self.initialize_result: types.InitializeResult | None = None

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> BridgeClient:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    async def initialize(self) -> types.InitializeResult:
        """Handshake, then cache tools and resources.

        A failed cache refresh is logged and leaves the caches empty; the
        handshake result is still returned.
        """
        self._ensure_open()
        payload = await self._request(
            "initialize",
            {
                "protocolVersion": types.LATEST_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": self._client_info.model_dump(mode="json", exclude_none=True),
            },
        )
        self.initialize_result = _validate(types.InitializeResult, payload, "initialize")
        notify = getattr(self._channel, "notify", None)
        if notify is not None:
            await notify("notifications/initialized")

        try:
            await self.refresh()
        except (McpError, CorrelationError) as exc:
            self._logger.warning("Could not load tools/resources after initialize: %s", exc)
        return self.initialize_result

    async def refresh(self) -> None:
        """Reload the tool and resource caches from the server."""
        self._ensure_open()
        tools_payload = await self._request("tools/list", {})
        resources_payload = await self._request("resources/list", {})

        tools = [ToolDefinition.from_payload(item) for item in (tools_payload or {}).get("tools", [])]
        resources = [
            ResourceDefinition.from_payload(item) for item in (resources_payload or {}).get("resources", [])
        ]
        self._tools = {tool.name: tool for tool in tools if tool is not None}
        self._resources = {resource.uri: resource for resource in resources if resource is not None}
        self._loaded = True
        self._logger.debug("Cached %d tools and %d resources", len(self._tools), len(self._resources))

    async def list_tools(self) -> list[ToolDefinition]:
        await self._ensure_loaded()
        return list(self._tools.values())

    async def list_resources(self) -> list[ResourceDefinition]:
        await self._ensure_loaded()
        return list(self._resources.values())

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> types.CallToolResult:
        """Invoke a cached tool.

        Raises:
            ToolNotFoundError: ``name`` is not among the cached tools.
            ClientClosedError: the client has been closed.
        """
        await self._ensure_loaded()
        if name not in self._tools:
            raise ToolNotFoundError(name, self._tools)
        payload = await self._request("tools/call", {"name": name, "arguments": dict(arguments or {})})
        return _validate(types.CallToolResult, payload, "tools/call")

    async def read_resource(self, uri: str) -> dict[str, Any]:
        """Read a cached resource; returns the raw ``{contents: [...]}`` result."""
        await self._ensure_loaded()
        if uri not in self._resources:
            raise ResourceNotFoundError(uri, self._resources)
        return await self._request("resources/read", {"uri": uri})

    async def ping(self) -> None:
        self._ensure_open()
        await self._request("ping", {})

    async def close(self) -> None:
        self._closed = True
        self._tools.clear()
        self._resources.clear()
        self._loaded = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError("Client has been closed")

    async def _ensure_loaded(self) -> None:
        self._ensure_open()
        if not self._loaded:
            await self.refresh()

    async def _request(self, method: str, params: Mapping[str, Any]) -> Any:
        return await self._channel.send(method, params, timeout=self._timeout)


__all__ = ["BridgeClient", "CLIENT_NAME", "CLIENT_VERSION", "RequestChannel"]
