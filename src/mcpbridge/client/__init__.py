# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Client-side helpers for talking to a spawned bridge server.

:class:`Environment` owns the process, :class:`StreamMultiplexer` correlates
requests over its merged output, and :class:`BridgeClient` is the typed layer
most callers use.
"""

from __future__ import annotations

from .environment import Environment
from .multiplexer import PendingRequest, StreamMultiplexer
from .session import BridgeClient


__all__ = [
    "BridgeClient",
    "Environment",
    "PendingRequest",
    "StreamMultiplexer",
]
