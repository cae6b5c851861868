# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Extractors for generated servers written against the TypeScript MCP SDK.

Handlers are registered with ``server.setRequestHandler(<Schema>, ...)`` and
dispatch on ``case '<name>':`` branches that call ``makeApiRequest`` (a thin
``fetch`` wrapper prefixing ``API_BASE_URL``).
"""

from __future__ import annotations

import re
from typing import Final

from ..registry import CallTemplate, PathParam, ResourceDefinition, ToolDefinition, empty_object_schema
from ._entries import collect
from .scanning import (
    SCRIPT_COMMENTS,
    decode_string,
    find_bracketed,
    find_section,
    iter_call_arguments,
    parse_literal,
    parse_object_members,
    positional_arguments,
    split_top_level,
)


_SERVER_NAME = re.compile(r"new\s+(?:Mcp)?Server\s*\(\s*\{[^}]*?\bname\s*:\s*([\"'`])(.+?)\1", re.DOTALL)
_HANDLER_STOP: Final[str] = r"server\s*\.\s*setRequestHandler\s*\(|async\s+function\s+main\b"
_CASE = re.compile(r"\bcase\s+([\"'`])(.+?)\1\s*:")
_BRANCH_END = re.compile(r"\bdefault\s*:")
_HTTP_CALL: Final[str] = r"makeApiRequest|fetch"
_BASE_PREFIX = re.compile(r"\A\$\{\s*API_BASE_URL\s*\}")
_QUERY_SUFFIX = re.compile(r"\?\$\{[^{}]*\}\Z")
_INTERPOLATION = re.compile(r"\$\{([^{}]+)\}")
_ARGS_EXPRESSION = re.compile(
    r"\A\s*(?:[A-Za-z_$][\w$.]*\s*\(\s*)?args\s*(?:\??\.\s*([A-Za-z_$][\w$]*)|\[\s*([\"'])([\w$]+)\2\s*\])"
)
_ARGUMENT_BINDING = re.compile(
    r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*args\s*(?:\??\.\s*([A-Za-z_$][\w$]*)|\[\s*([\"'])([\w$]+)\3\s*\])"
)


def _handler_section(source: str, schema: str) -> str | None:
    return find_section(source, rf"setRequestHandler\s*\(\s*{schema}\b", _HANDLER_STOP)


def _object_elements(section: str, key: str) -> list[str]:
    inner = find_bracketed(section, rf"\b{key}\s*:\s*\[", comments=SCRIPT_COMMENTS)
    if inner is None:
        return []
    elements: list[str] = []
    for element in split_top_level(inner, comments=SCRIPT_COMMENTS):
        if element.startswith("{") and element.endswith("}"):
            elements.append(element[1:-1])
    return elements


def extract_server_name(source: str) -> str | None:
    match = _SERVER_NAME.search(source)
    return match.group(2) if match else None


def extract_tools(source: str) -> list[ToolDefinition]:
    section = _handler_section(source, "ListToolsRequestSchema")
    if section is None:
        return []
    return collect(_object_elements(section, "tools"), _tool_definition, kind="tool definition")


def _tool_definition(element: str) -> ToolDefinition | None:
    members = parse_object_members(element)
    name = decode_string(members.get("name", ""))
    if not name:
        return None
    schema = parse_literal(members["inputSchema"]) if "inputSchema" in members else None
    return ToolDefinition(
        name=name,
        description=decode_string(members.get("description", "")) or "",
        input_schema=schema if isinstance(schema, dict) else empty_object_schema(),
    )


def extract_resources(source: str) -> list[ResourceDefinition]:
    section = _handler_section(source, "ListResourcesRequestSchema")
    if section is None:
        return []
    return collect(_object_elements(section, "resources"), _resource_definition, kind="resource definition")


def _resource_definition(element: str) -> ResourceDefinition | None:
    members = parse_object_members(element)
    uri = decode_string(members.get("uri", ""))
    if not uri:
        return None
    return ResourceDefinition(
        uri=uri,
        name=decode_string(members.get("name", "")) or "",
        description=decode_string(members.get("description", "")) or "",
        mime_type=decode_string(members.get("mimeType", "")) or "application/json",
    )


def extract_resource_paths(source: str) -> dict[str, str]:
    section = _handler_section(source, "ReadResourceRequestSchema")
    if section is None:
        return {}
    return dict(collect(_branches(section), _resource_path, kind="resource read branch"))


def _resource_path(branch: tuple[str, str]) -> tuple[str, str] | None:
    uri, body = branch
    call = _first_http_call(body)
    if call is None:
        return None
    path, _ = _split_query_suffix(call[0])
    return uri, path


def extract_call_templates(source: str) -> dict[str, CallTemplate]:
    section = _handler_section(source, "CallToolRequestSchema")
    if section is None:
        return {}
    return dict(collect(_branches(section), _tool_template, kind="tool branch"))


def _tool_template(branch: tuple[str, str]) -> tuple[str, CallTemplate] | None:
    name, body = branch
    template = parse_case_branch(body)
    return None if template is None else (name, template)


def parse_case_branch(body: str) -> CallTemplate | None:
    call = _first_http_call(body)
    if call is None:
        return None
    raw_path, options = call
    path, has_query_suffix = _split_query_suffix(raw_path)

    method = (decode_string(options.get("method", "")) or "GET").upper()
    if method not in {"GET", "POST", "PUT", "PATCH", "DELETE"}:
        return None

    bindings: dict[str, str] = {}
    for match in _ARGUMENT_BINDING.finditer(body):
        bindings[match.group(1)] = match.group(2) or match.group(4)
    path, path_params = _resolve_placeholders(path, bindings)

    return CallTemplate(
        method=method,  # type: ignore[arg-type]
        path=path,
        path_params=path_params,
        has_query_params=has_query_suffix or "URLSearchParams" in body,
        has_body="body" in options,
    )


def _branches(section: str) -> list[tuple[str, str]]:
    matches = list(_CASE.finditer(section))
    branches: list[tuple[str, str]] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(section)
        body = section[match.end() : end]
        stop = _BRANCH_END.search(body)
        branches.append((match.group(2), body[: stop.start()] if stop else body))
    return branches


def _first_http_call(body: str) -> tuple[str, dict[str, str]] | None:
    for _, inner in iter_call_arguments(body, _HTTP_CALL, comments=SCRIPT_COMMENTS):
        positional = positional_arguments(inner, comments=SCRIPT_COMMENTS)
        if not positional:
            continue
        path = decode_string(positional[0])
        if path is None:
            continue
        options: dict[str, str] = {}
        if len(positional) > 1 and positional[1].startswith("{") and positional[1].endswith("}"):
            options = parse_object_members(positional[1][1:-1])
        return _BASE_PREFIX.sub("", path) or "/", options
    return None


def _split_query_suffix(path: str) -> tuple[str, bool]:
    stripped = _QUERY_SUFFIX.sub("", path)
    return stripped or "/", stripped != path


def _resolve_placeholders(raw_path: str, bindings: dict[str, str]) -> tuple[str, tuple[PathParam, ...]]:
    params: list[PathParam] = []

    def substitute(match: re.Match[str]) -> str:
        expression = match.group(1).strip()
        argument_match = _ARGS_EXPRESSION.match(expression)
        if argument_match is not None:
            placeholder = argument = argument_match.group(1) or argument_match.group(3)
        else:
            placeholder = re.sub(r"[^\w]+", "_", expression).strip("_") or "param"
            argument = bindings.get(placeholder, placeholder)
        if all(existing.placeholder != placeholder for existing in params):
            params.append(PathParam(placeholder, argument))
        return "{" + placeholder + "}"

    return _INTERPOLATION.sub(substitute, raw_path), tuple(params)


__all__ = [
    "extract_call_templates",
    "extract_resource_paths",
    "extract_resources",
    "extract_server_name",
    "extract_tools",
    "parse_case_branch",
]
