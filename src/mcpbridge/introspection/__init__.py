# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Static recovery of a generated server's registry from its source text.

The code generator emits no manifest, so :func:`parse` recovers the server
name, API base URL, tools, resources and per-tool HTTP call shapes by pattern
analysis.  Parsing is best effort and never raises: every stage that fails is
logged and replaced by its default, and tools without a recovered call shape
receive one synthesized from their name.
"""

from __future__ import annotations

from collections.abc import Callable
import re
from typing import Any, Final, TypeVar

from ..registry import DEFAULT_API_BASE_URL, DEFAULT_SERVER_NAME, Registry, SourceLanguage
from ..utils import get_logger
from . import python as python_source
from . import typescript as typescript_source


T = TypeVar("T")

_API_BASE_URL = re.compile(r"\bAPI_BASE_URL\s*(?::\s*\w+\s*)?=\s*([\"'`])(.+?)\1")
_TYPESCRIPT_MARKERS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"setRequestHandler\s*\("),
    re.compile(r"@modelcontextprotocol/sdk"),
    re.compile(r"\bnew\s+(?:Mcp)?Server\s*\("),
    re.compile(r"^\s*(?:const|let)\s+\w+", re.MULTILINE),
    re.compile(r"\binterface\s+\w+\s*\{"),
)
_PYTHON_MARKERS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"@server\.\w+\("),
    re.compile(r"^\s*(?:from\s+mcp\b|import\s+mcp\b)", re.MULTILINE),
    re.compile(r"^\s*(?:async\s+)?def\s+\w+\s*\(", re.MULTILINE),
    re.compile(r"^\s*if\s+__name__\s*==", re.MULTILINE),
)


def detect_language(source_text: str) -> SourceLanguage:
    """Guess the source language; ties go to Python."""
    typescript_score = sum(1 for marker in _TYPESCRIPT_MARKERS if marker.search(source_text))
    python_score = sum(1 for marker in _PYTHON_MARKERS if marker.search(source_text))
    return "typescript" if typescript_score > python_score else "python"


def extract_api_base_url(source_text: str) -> str | None:
    match = _API_BASE_URL.search(source_text)
    return match.group(2).strip() if match else None


def _attempt(stage: str, extractor: Callable[[str], T], source_text: str, default: T) -> T:
    try:
        return extractor(source_text)
    except Exception:  # noqa: BLE001
        get_logger("mcpbridge.introspection").warning(
            "Could not recover %s from source; using default", stage, exc_info=True
        )
        return default


def parse(source_text: str, *, language: SourceLanguage | None = None) -> Registry:
    """Recover a :class:`~mcpbridge.registry.Registry` from generated source.

    Args:
        source_text: Full text of the generated server.
        language: ``"python"`` or ``"typescript"``; detected when omitted.

    Never raises.  Unknown constructs are skipped; an empty or unrelated text
    yields a registry with default name and base URL and no tools.
    """
    text = source_text if isinstance(source_text, str) else ""
    lang: SourceLanguage = language or detect_language(text)
    extractors: Any = typescript_source if lang == "typescript" else python_source

    server_name = _attempt("server name", extractors.extract_server_name, text, None)
    api_base_url = _attempt("API base URL", extract_api_base_url, text, None)
    tools = _attempt("tool definitions", extractors.extract_tools, text, [])
    resources = _attempt("resource definitions", extractors.extract_resources, text, [])
    templates = _attempt("call templates", extractors.extract_call_templates, text, {})
    resource_paths = _attempt("resource read paths", extractors.extract_resource_paths, text, {})

    registry = Registry.build(
        server_name=server_name or DEFAULT_SERVER_NAME,
        api_base_url=api_base_url or DEFAULT_API_BASE_URL,
        language=lang,
        tools=tools,
        resources=resources,
        templates=templates,
        resource_paths=resource_paths,
    )
    get_logger("mcpbridge.introspection").debug("Recovered registry: %s", registry.summary())
    return registry


__all__ = ["detect_language", "extract_api_base_url", "parse"]
