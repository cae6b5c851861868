# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Tool capability service.

Tool failures never become protocol errors: an unknown tool or a failed HTTP
call is reported as a successful ``tools/call`` result flagged ``isError`` whose
text is a JSON error report.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
import json
import logging
from typing import Any

from mcp import types

from ...dispatch import CallDispatcher
from ...errors import DispatchError
from ...registry import Registry


def render_text(body: Any) -> str:
    """JSON-encode a response body; text bodies become JSON strings."""
    return json.dumps(body, indent=2, ensure_ascii=False, default=str)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ToolsService:
    """Lists registry tools and executes them through a :class:`CallDispatcher`."""

    def __init__(self, *, registry: Registry, dispatcher: CallDispatcher, logger: logging.Logger) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._logger = logger

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._registry.tools)

    async def list_tools(self) -> dict[str, Any]:
        return {"tools": [tool.to_payload() for tool in self._registry.tools.values()]}

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None) -> types.CallToolResult:
        args = dict(arguments or {})
        template = self._registry.template_for(name)
        if template is None:
            self._logger.warning("tools/call for unknown tool %r", name)
            return self._error_result(f"Tool '{name}' not found in parsed definitions", name, args)

        self._logger.info(
            "Executing %s via %s %s (%s template)", name, template.method, template.path, template.origin
        )
        try:
            result = await self._dispatcher.execute(template, self._registry.api_base_url, args)
        except DispatchError as exc:
            self._logger.warning("Tool %s failed: %s", name, exc.message)
            return self._error_result(exc.message, name, args, status=exc.status_code)

        return types.CallToolResult(
            content=[types.TextContent(type="text", text=render_text(result.body))],
            isError=False,
        )

    def _error_result(
        self, message: str, name: str, args: dict[str, Any], *, status: int | None = None
    ) -> types.CallToolResult:
        report: dict[str, Any] = {"error": message, "tool": name, "args": args, "timestamp": _timestamp()}
        if status is not None:
            report["status"] = status
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=render_text(report))],
            isError=True,
        )


__all__ = ["ToolsService", "render_text"]
