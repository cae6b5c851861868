# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Resource capability service."""

from __future__ import annotations

import logging
from typing import Any

from mcp import types
from mcp.shared.exceptions import McpError

from .tools import render_text
from ...dispatch import CallDispatcher
from ...errors import DispatchError
from ...registry import Registry


class ResourcesService:
    def __init__(self, *, registry: Registry, dispatcher: CallDispatcher, logger: logging.Logger) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._logger = logger

    async def list_resources(self) -> dict[str, Any]:
        return {"resources": [resource.to_payload() for resource in self._registry.resources.values()]}

    async def read_resource(self, uri: str) -> dict[str, Any]:
        """Fetch the resource's read path and wrap the body as text contents.

        Raises:
            McpError: ``INVALID_REQUEST`` for an unknown URI, ``INTERNAL_ERROR``
                when the read fails.
        """
        resource = self._registry.resources.get(uri)
        if resource is None:
            raise McpError(types.ErrorData(code=types.INVALID_REQUEST, message=f"Unknown resource: {uri}"))

        path = self._registry.read_path_for(uri)
        self._logger.info("Reading resource %s via GET %s", uri, path)
        try:
            result = await self._dispatcher.read(self._registry.api_base_url, path)
        except DispatchError as exc:
            self._logger.warning("Resource read failed for %s: %s", uri, exc.message)
            raise McpError(
                types.ErrorData(code=types.INTERNAL_ERROR, message=f"Resource read failed: {exc.message}")
            ) from exc

        return {"contents": [{"uri": uri, "mimeType": resource.mime_type, "text": render_text(result.body)}]}


__all__ = ["ResourcesService"]
