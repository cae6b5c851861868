# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""JSON-RPC protocol server emulating a generated MCP server.

:class:`ProtocolServer` answers the MCP method set from a recovered
:class:`~mcpbridge.registry.Registry`, executing tool calls and resource reads
against the target API with a :class:`~mcpbridge.dispatch.CallDispatcher`.
It consumes the SDK's ``SessionMessage`` streams, so it runs unchanged over
``mcp.server.stdio.stdio_server`` or in-memory streams in tests.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

import anyio
from mcp import types
from mcp.shared.exceptions import McpError
from mcp.shared.message import SessionMessage

from .services import ResourcesService, ToolsService
from .transports import StdioTransport
from ..config import BridgeSettings
from ..dispatch import CallDispatcher
from ..registry import Registry
from ..utils import get_logger
from ..versioning import negotiate_version


if TYPE_CHECKING:  # pragma: no cover - typing only
    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

SERVER_VERSION = "1.0.0"

Handler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class ServerState(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _error(request_id: types.RequestId, code: int, message: str) -> types.JSONRPCError:
    return types.JSONRPCError(jsonrpc="2.0", id=request_id, error=types.ErrorData(code=code, message=message))


class ProtocolServer:
    """Serve ``initialize``, ``ping``, ``tools/*`` and ``resources/*`` for one registry."""

    def __init__(
        self,
        registry: Registry,
        *,
        dispatcher: CallDispatcher | None = None,
        settings: BridgeSettings | None = None,
    ) -> None:
        self._settings = settings or BridgeSettings()
        self.registry = registry
        self.dispatcher = dispatcher or CallDispatcher(
            timeout=self._settings.http_timeout, user_agent=self._settings.user_agent
        )
        self.state = ServerState.INITIALIZING
        self._logger = get_logger(f"mcpbridge.server.{registry.server_name}")
        self.tools = ToolsService(registry=registry, dispatcher=self.dispatcher, logger=self._logger)
        self.resources = ResourcesService(registry=registry, dispatcher=self.dispatcher, logger=self._logger)
        self._handlers: dict[str, Handler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
            "resources/list": self._list_resources,
            "resources/read": self._read_resource,
        }

    @property
    def name(self) -> str:
        return self.registry.server_name

    @property
    def methods(self) -> list[str]:
        return sorted(self._handlers)

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def handle_request(self, request: types.JSONRPCRequest) -> types.JSONRPCResponse | types.JSONRPCError:
        """Answer one request; the reply always carries the request's id."""
        handler = self._handlers.get(request.method)
        if handler is None:
            self._logger.info("Method not found: %s", request.method)
            return _error(request.id, types.METHOD_NOT_FOUND, f"Method not found: {request.method}")

        if self.state is ServerState.INITIALIZING and request.method not in {"initialize", "ping"}:
            self._logger.debug("Answering %s before initialize", request.method)

        try:
            result = await handler(dict(request.params or {}))
        except McpError as exc:
            return types.JSONRPCError(jsonrpc="2.0", id=request.id, error=exc.error)
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("Unhandled error while serving %s", request.method)
            return _error(request.id, types.INTERNAL_ERROR, f"Internal error: {exc}")
        return types.JSONRPCResponse(jsonrpc="2.0", id=request.id, result=result)

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        version = negotiate_version(params.get("protocolVersion"))
        client_info = params.get("clientInfo") or {}
        self._logger.info(
            "Initialize from %s (protocol %s)", client_info.get("name", "unknown client"), version
        )
        result = types.InitializeResult(
            protocolVersion=version,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=False),
                resources=types.ResourcesCapability(subscribe=False, listChanged=False),
            ),
            serverInfo=types.Implementation(name=self.registry.server_name, version=SERVER_VERSION),
        )
        self.state = ServerState.READY
        return _dump(result)

    async def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _list_tools(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self.tools.list_tools()

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments")
        if not isinstance(name, str):
            raise McpError(types.ErrorData(code=types.INVALID_PARAMS, message="tools/call requires a string 'name'"))
        if arguments is not None and not isinstance(arguments, dict):
            raise McpError(types.ErrorData(code=types.INVALID_PARAMS, message="tools/call 'arguments' must be an object"))
        return _dump(await self.tools.call_tool(name, arguments))

    async def _list_resources(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self.resources.list_resources()

    async def _read_resource(self, params: dict[str, Any]) -> dict[str, Any]:
        uri = params.get("uri")
        if not isinstance(uri, str):
            raise McpError(types.ErrorData(code=types.INVALID_PARAMS, message="resources/read requires a string 'uri'"))
        return await self.resources.read_resource(uri)

    # ------------------------------------------------------------------
    # Stream loop
    # ------------------------------------------------------------------

    async def run(
        self,
        read_stream: MemoryObjectReceiveStream[SessionMessage | Exception],
        write_stream: MemoryObjectSendStream[SessionMessage],
    ) -> None:
        """Serve until ``read_stream`` ends; requests are answered concurrently."""
        async with write_stream, anyio.create_task_group() as tg:
            async for item in read_stream:
                if isinstance(item, Exception):
                    self._logger.warning("Unparseable message: %s", item)
                    await self._send(write_stream, _error(0, types.PARSE_ERROR, "Parse error"))
                    continue

                message = item.message.root
                if isinstance(message, types.JSONRPCRequest):
                    tg.start_soon(self._respond, message, write_stream)
                elif isinstance(message, types.JSONRPCNotification):
                    self._logger.debug("Notification %s ignored", message.method)
                else:
                    self._logger.debug("Ignoring unexpected %s", type(message).__name__)

    async def _respond(self, request: types.JSONRPCRequest, write_stream: MemoryObjectSendStream[SessionMessage]) -> None:
        self._logger.debug("Request %s (id=%s)", request.method, request.id)
        reply = await self.handle_request(request)
        await self._send(write_stream, reply)

    async def _send(
        self,
        write_stream: MemoryObjectSendStream[SessionMessage],
        reply: types.JSONRPCResponse | types.JSONRPCError,
    ) -> None:
        try:
            await write_stream.send(SessionMessage(types.JSONRPCMessage(reply)))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            self._logger.debug("Output closed; dropping reply %s", reply.id)

    async def serve_stdio(self) -> None:
        self._logger.info("Serving %s via STDIO (%d tools)", self.name, len(self.registry.tools))
        await StdioTransport(self).run()


__all__ = ["ProtocolServer", "SERVER_VERSION", "ServerState"]
