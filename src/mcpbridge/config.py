# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Runtime settings, overridable through ``MCPBRIDGE_*`` environment variables."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
import sys
from typing import Final

from .utils import get_logger


ENV_PREFIX: Final[str] = "MCPBRIDGE_"

DEFAULT_REQUEST_TIMEOUT: Final[float] = 10.0
DEFAULT_HTTP_TIMEOUT: Final[float] = 30.0
DEFAULT_USER_AGENT: Final[str] = "MCP-Server/1.0.0"
DEFAULT_LOG_HISTORY: Final[int] = 200
DEFAULT_SHUTDOWN_GRACE: Final[float] = 5.0


@dataclass(slots=True)
class BridgeSettings:
    """Tunables shared by the client and the spawned server.

    Attributes:
        request_timeout: Seconds a multiplexed request waits for its response.
        http_timeout: Seconds an outbound API call may take.
        user_agent: ``User-Agent`` header sent to the target API.
        log_history: Diagnostic lines retained per environment.
        shutdown_grace: Seconds to wait for the server to exit before killing it.
        python_executable: Interpreter used to spawn the server process.
    """

    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    log_history: int = DEFAULT_LOG_HISTORY
    shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE
    python_executable: str = field(default_factory=lambda: sys.executable)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeSettings:
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            request_timeout=_read_number(env, "REQUEST_TIMEOUT", defaults.request_timeout, float),
            http_timeout=_read_number(env, "HTTP_TIMEOUT", defaults.http_timeout, float),
            user_agent=env.get(f"{ENV_PREFIX}USER_AGENT") or defaults.user_agent,
            log_history=_read_number(env, "LOG_HISTORY", defaults.log_history, int),
            shutdown_grace=_read_number(env, "SHUTDOWN_GRACE", defaults.shutdown_grace, float),
            python_executable=env.get(f"{ENV_PREFIX}PYTHON") or defaults.python_executable,
        )


def _read_number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(f"{ENV_PREFIX}{key}")
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        get_logger("mcpbridge.config").warning(
            "Ignoring %s%s=%r: not a valid %s", ENV_PREFIX, key, raw, cast.__name__
        )
        return default
    if value <= 0:
        get_logger("mcpbridge.config").warning("Ignoring %s%s=%r: must be positive", ENV_PREFIX, key, raw)
        return default
    return value


__all__ = [
    "BridgeSettings",
    "DEFAULT_HTTP_TIMEOUT",
    "DEFAULT_LOG_HISTORY",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_SHUTDOWN_GRACE",
    "DEFAULT_USER_AGENT",
]
