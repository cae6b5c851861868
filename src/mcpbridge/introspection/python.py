# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Extractors for generated servers written against the Python MCP SDK.

Recognised shape (as emitted by the code generator)::

    server = Server("jsonplaceholder-server")
    API_BASE_URL = "https://jsonplaceholder.typicode.com"

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        return [Tool(name="get_posts", description="...", inputSchema={...}), ...]

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        async with get_http_client() as client:
            if name == "get_post_by_id":
                id = arguments['id']
                response = await client.get(f"/posts/{id}")
"""

from __future__ import annotations

import re
from typing import Final

from ..registry import CallTemplate, PathParam, ResourceDefinition, ToolDefinition, empty_object_schema
from ._entries import collect
from .scanning import (
    PYTHON_COMMENTS,
    decode_string,
    find_section,
    iter_call_arguments,
    parse_keyword_arguments,
    parse_literal,
    positional_arguments,
)


_SERVER_NAME = re.compile(r"\b(?:Server|FastMCP)\s*\(\s*(?:name\s*=\s*)?([\"'])(.+?)\1")
_SECTION_STOP: Final[str] = r"@server\.|async\s+def\s+main\b|if\s+__name__\s*=="
_TOOL_BRANCH = re.compile(r"\b(?:if|elif)\s+name\s*==\s*([\"'])(.+?)\1\s*:")
_RESOURCE_BRANCH = re.compile(r"\b(?:if|elif)\s+uri\s*==\s*([\"'])(.+?)\1\s*:")
_BRANCH_END = re.compile(r"\n[ \t]*(?:else\s*:|except\b|finally\s*:)")
_HTTP_CALL: Final[str] = r"client\s*\.\s*(?:get|post|put|patch|delete|request)"
_VERB = re.compile(r"client\s*\.\s*(\w+)\s*\($")
_ARGUMENT_BINDING = re.compile(
    r"\b([A-Za-z_]\w*)\s*=\s*(?:str\s*\(\s*)?arguments\s*(?:\[\s*([\"'])(\w+)\2\s*\]|\.get\s*\(\s*([\"'])(\w+)\4)"
)
_ARGUMENT_EXPRESSION = re.compile(r"\A\s*(?:str\s*\(\s*)?arguments\s*(?:\[\s*([\"'])(\w+)\1\s*\]|\.get\s*\(\s*([\"'])(\w+)\3[^)]*\))\s*\)?\s*\Z")
_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")
_QUERY_IDIOM = re.compile(r"\bparams\s*=")
_BODY_IDIOM = re.compile(r"\bpayload\s*=|\bjson\s*=|\bdata\s*=")
_BODY_KEYWORDS: Final[frozenset[str]] = frozenset({"json", "data", "content"})


def extract_server_name(source: str) -> str | None:
    match = _SERVER_NAME.search(source)
    return match.group(2) if match else None


def extract_tools(source: str) -> list[ToolDefinition]:
    section = find_section(source, r"@server\.list_tools\(\s*\)", _SECTION_STOP)
    if section is None:
        return []
    calls = iter_call_arguments(section, "Tool", comments=PYTHON_COMMENTS)
    return collect((inner for _, inner in calls), _tool_definition, kind="tool definition")


def _tool_definition(inner: str) -> ToolDefinition | None:
    arguments = parse_keyword_arguments(inner)
    name = decode_string(arguments.get("name", ""))
    if not name:
        return None
    schema = parse_literal(arguments["inputSchema"]) if "inputSchema" in arguments else None
    return ToolDefinition(
        name=name,
        description=decode_string(arguments.get("description", "")) or "",
        input_schema=schema if isinstance(schema, dict) else empty_object_schema(),
    )


def extract_resources(source: str) -> list[ResourceDefinition]:
    section = find_section(source, r"@server\.list_resources\(\s*\)", _SECTION_STOP)
    if section is None:
        return []
    calls = iter_call_arguments(section, "Resource", comments=PYTHON_COMMENTS)
    return collect((inner for _, inner in calls), _resource_definition, kind="resource definition")


def _resource_definition(inner: str) -> ResourceDefinition | None:
    arguments = parse_keyword_arguments(inner)
    uri = decode_string(arguments.get("uri", ""))
    if not uri:
        return None
    mime_type = decode_string(arguments.get("mimeType", arguments.get("mime_type", "")))
    return ResourceDefinition(
        uri=uri,
        name=decode_string(arguments.get("name", "")) or "",
        description=decode_string(arguments.get("description", "")) or "",
        mime_type=mime_type or "application/json",
    )


def extract_resource_paths(source: str) -> dict[str, str]:
    section = find_section(source, r"@server\.read_resource\(\s*\)", _SECTION_STOP)
    if section is None:
        return {}
    return dict(collect(_branches(section, _RESOURCE_BRANCH), _resource_path, kind="resource read branch"))


def _resource_path(branch: tuple[str, str]) -> tuple[str, str] | None:
    uri, body = branch
    call = _first_http_call(body)
    if call is None or call[1] is None:
        return None
    return uri, call[1]


def extract_call_templates(source: str) -> dict[str, CallTemplate]:
    section = find_section(source, r"@server\.call_tool\(\s*\)", r"async\s+def\s+main\b|if\s+__name__\s*==")
    if section is None:
        return {}
    return dict(collect(_branches(section, _TOOL_BRANCH), _tool_template, kind="tool branch"))


def _tool_template(branch: tuple[str, str]) -> tuple[str, CallTemplate] | None:
    name, body = branch
    template = parse_tool_branch(body)
    return None if template is None else (name, template)


def parse_tool_branch(body: str) -> CallTemplate | None:
    """Recover a call template from one ``if name == ...`` branch body.

    Returns ``None`` when the branch makes no recognisable HTTP call or the
    path is not a literal.
    """
    call = _first_http_call(body)
    if call is None:
        return None
    method, raw_path, call_arguments = call
    if method is None or raw_path is None:
        return None

    bindings = {match.group(1): match.group(3) or match.group(5) for match in _ARGUMENT_BINDING.finditer(body)}
    path, path_params = _resolve_placeholders(raw_path, bindings)
    keywords = set(parse_keyword_arguments(call_arguments))

    has_query = "params" in keywords or bool(_QUERY_IDIOM.search(body))
    has_body = bool(keywords & _BODY_KEYWORDS) or bool(_BODY_IDIOM.search(body))
    return CallTemplate(
        method=method,  # type: ignore[arg-type]
        path=path,
        path_params=path_params,
        has_query_params=has_query,
        has_body=has_body,
    )


def _branches(section: str, header: re.Pattern[str]) -> list[tuple[str, str]]:
    matches = list(header.finditer(section))
    branches: list[tuple[str, str]] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(section)
        body = section[match.end() : end]
        stop = _BRANCH_END.search(body)
        branches.append((match.group(2), body[: stop.start()] if stop else body))
    return branches


def _first_http_call(body: str) -> tuple[str | None, str | None, str] | None:
    for match, inner in iter_call_arguments(body, _HTTP_CALL, comments=PYTHON_COMMENTS):
        verb_match = _VERB.search(match.group(0))
        verb = verb_match.group(1).upper() if verb_match else "GET"
        positional = positional_arguments(inner, comments=PYTHON_COMMENTS)
        if verb == "REQUEST":
            verb = (decode_string(positional[0]) or "").upper() if positional else ""
            positional = positional[1:]
        method = verb if verb in {"GET", "POST", "PUT", "PATCH", "DELETE"} else None
        path = decode_string(positional[0]) if positional else None
        if path is None:
            url_keyword = parse_keyword_arguments(inner).get("url")
            path = decode_string(url_keyword) if url_keyword else None
        return method, path, inner
    return None


def _resolve_placeholders(raw_path: str, bindings: dict[str, str]) -> tuple[str, tuple[PathParam, ...]]:
    params: list[PathParam] = []

    def substitute(match: re.Match[str]) -> str:
        expression = match.group(1).strip()
        argument_match = _ARGUMENT_EXPRESSION.match(expression)
        if argument_match is not None:
            placeholder = argument = argument_match.group(2) or argument_match.group(4)
        else:
            placeholder = re.sub(r"\W+", "_", expression.split("!")[0].split(":")[0]).strip("_") or "param"
            argument = bindings.get(placeholder, placeholder)
        if all(existing.placeholder != placeholder for existing in params):
            params.append(PathParam(placeholder, argument))
        return "{" + placeholder + "}"

    path = _PLACEHOLDER.sub(substitute, raw_path)
    return path or "/", tuple(params)


__all__ = [
    "extract_call_templates",
    "extract_resource_paths",
    "extract_resources",
    "extract_server_name",
    "extract_tools",
    "parse_tool_branch",
]
