# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Logging setup shared by the bridge server process and its clients.

Everything logs through the standard library.  Handlers always write to
``stderr``: inside the spawned server process ``stdout`` carries protocol frames
and nothing else, while the merged output seen by the client treats every
non-frame line as a diagnostic.

Structured JSON output can be enabled with ``MCPBRIDGE_LOG_JSON=1`` and a faster
serializer such as ``orjson`` plugged in through ``json_serializer``.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
import os
import sys
from typing import IO, Any, ClassVar, Final


RESET: Final[str] = "\033[0m"

DEBUG_COLOR: Final[str] = "\033[36m"
INFO_COLOR: Final[str] = "\033[32m"
WARNING_COLOR: Final[str] = "\033[33m"
ERROR_COLOR: Final[str] = "\033[1;31m"
CRITICAL_COLOR: Final[str] = "\033[1;35m"
LOGGER_COLOR: Final[str] = "\033[94m"

DEFAULT_LOGGER_NAME: Final[str] = "mcpbridge"
ENV_LOG_LEVEL: Final[str] = "MCPBRIDGE_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "MCPBRIDGE_LOG_JSON"
ENV_NO_COLOR: Final[str] = "NO_COLOR"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], "str | bytes"]
PayloadTransformer = Callable[[dict[str, Any]], dict[str, Any]]

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "context", "taskName"}


class ColoredFormatter(logging.Formatter):
    """Plain-text formatter that colors the level and logger name."""

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": DEBUG_COLOR,
        "INFO": INFO_COLOR,
        "WARNING": WARNING_COLOR,
        "ERROR": ERROR_COLOR,
        "CRITICAL": CRITICAL_COLOR,
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        record.levelname = f"{self.LEVEL_COLORS.get(levelname, '')}{levelname}{RESET}"
        record.name = f"{LOGGER_COLOR}{name}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname, record.name = levelname, name


class BridgeHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker handler so repeated setup calls do not stack handlers."""


class StructuredJSONFormatter(logging.Formatter):
    """Render each record as one JSON object.

    The object never carries a ``jsonrpc`` key, so a client reading the merged
    server output classifies these lines as diagnostics rather than frames.
    """

    def __init__(
        self,
        serializer: JsonSerializer,
        *,
        datefmt: str | None = None,
        payload_transformer: PayloadTransformer | None = None,
    ) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer
        self._transformer = payload_transformer or (lambda payload: payload)

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        context: dict[str, Any] = {}
        explicit = getattr(record, "context", None)
        if isinstance(explicit, dict):
            context.update(explicit)
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and key not in context:
                context[key] = value
        if context:
            payload["context"] = context

        rendered = self._serializer(self._transformer(payload))
        if isinstance(rendered, bytes):
            return rendered.decode("utf-8")
        return rendered


def _json_serializer(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _installed_handler(root: logging.Logger) -> BridgeHandler | None:
    for handler in root.handlers:
        if isinstance(handler, BridgeHandler):
            return handler
    return None


def _env_flag(key: str) -> bool:
    value = os.getenv(key)
    return value is not None and value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    use_color: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    payload_transformer: PayloadTransformer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    stream: IO[str] | None = None,
    force: bool = False,
) -> None:
    """Attach the bridge handler to the root logger.

    Args:
        level: Log level; falls back to ``MCPBRIDGE_LOG_LEVEL`` then ``INFO``.
        use_json: JSON output; defaults to ``MCPBRIDGE_LOG_JSON``.
        use_color: ANSI colors; off when ``NO_COLOR`` is set, when JSON is on,
            or when the stream is not a terminal.
        json_serializer: Callable turning the payload into ``str`` or ``bytes``.
        payload_transformer: Hook applied to the payload before serializing.
        fmt: Text format string.
        datefmt: Timestamp format.
        stream: Destination, ``sys.stderr`` by default. Never pass ``sys.stdout``
            inside the server process.
        force: Replace a handler installed by an earlier call.
    """
    root = logging.getLogger()
    existing = _installed_handler(root)
    if existing is not None:
        if not force:
            return
        root.removeHandler(existing)
        existing.close()

    resolved_level = _resolve_level(level)
    target = stream if stream is not None else sys.stderr
    resolved_json = use_json if use_json is not None else _env_flag(ENV_LOG_JSON)
    if use_color is not None:
        resolved_color = use_color
    elif os.getenv(ENV_NO_COLOR) or resolved_json:
        resolved_color = False
    else:
        resolved_color = bool(getattr(target, "isatty", lambda: False)())

    formatter: logging.Formatter
    if resolved_json:
        formatter = StructuredJSONFormatter(
            json_serializer or _json_serializer, datefmt=datefmt, payload_transformer=payload_transformer
        )
    elif resolved_color:
        formatter = ColoredFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    else:
        formatter = logging.Formatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)

    handler = BridgeHandler(target)
    handler.setLevel(resolved_level)
    handler.setFormatter(formatter)
    root.setLevel(resolved_level)
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the ``mcpbridge`` namespace, configuring on first use."""
    if _installed_handler(logging.getLogger()) is None:
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "BridgeHandler",
    "ColoredFormatter",
    "StructuredJSONFormatter",
    "get_logger",
    "setup_logger",
]
