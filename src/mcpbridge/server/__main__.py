# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Entry point for the spawned bridge process.

Usage::

    python -m mcpbridge.server SOURCE [--api-base-url URL] [--language python|typescript]

``stdout`` carries protocol frames only; diagnostics go to ``stderr``.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path
import sys

import anyio

from .core import ProtocolServer
from ..config import BridgeSettings
from ..introspection import parse
from ..utils import get_logger, setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m mcpbridge.server",
        description="Serve a generated MCP server's tools over STDIO by dispatching them to its HTTP API",
    )
    parser.add_argument("source", type=Path, help="Path to the generated server source")
    parser.add_argument("--api-base-url", default=None, help="Override the API base URL found in the source")
    parser.add_argument(
        "--language",
        choices=["python", "typescript"],
        default=None,
        help="Source language (default: detected)",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: $MCPBRIDGE_LOG_LEVEL or INFO)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(level=args.log_level, force=True)
    logger = get_logger("mcpbridge.server")

    try:
        source_text = args.source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Cannot read server source %s: %s", args.source, exc)
        return 1

    registry = parse(source_text, language=args.language)
    if args.api_base_url:
        registry = registry.with_api_base_url(args.api_base_url)
    logger.info("Loaded %s", registry.summary())

    server = ProtocolServer(registry, settings=BridgeSettings.from_env())
    try:
        anyio.run(server.serve_stdio)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
