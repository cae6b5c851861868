# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Capability service implementations for ProtocolServer."""

from __future__ import annotations

from .resources import ResourcesService
from .tools import ToolsService, render_text


__all__ = ["ResourcesService", "ToolsService", "render_text"]
