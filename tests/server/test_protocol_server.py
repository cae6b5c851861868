# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import json
from typing import Any

import httpx
from mcp import types
import pytest

from mcpbridge.introspection import parse
from mcpbridge.server import ProtocolServer, ServerState
from mcpbridge.versioning import LATEST_PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS

from tests.helpers import PYTHON_SOURCE


POSTS = [{"id": 1, "title": "first"}, {"id": 2, "title": "second"}]


def _jsonplaceholder(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/posts" and request.method == "GET":
        limit = int(request.url.params.get("_limit", len(POSTS)))
        return httpx.Response(200, json=POSTS[:limit])
    if path == "/posts" and request.method == "POST":
        return httpx.Response(201, json={"id": 101, **json.loads(request.content)})
    if path.startswith("/posts/"):
        post_id = int(path.rsplit("/", 1)[1])
        for post in POSTS:
            if post["id"] == post_id:
                return httpx.Response(200, json=post)
        return httpx.Response(404, text="Not Found")
    return httpx.Response(500, text="unexpected")


@pytest.fixture
def server(mock_dispatcher) -> ProtocolServer:
    return ProtocolServer(parse(PYTHON_SOURCE), dispatcher=mock_dispatcher(_jsonplaceholder))


async def _call(server: ProtocolServer, method: str, params: dict[str, Any] | None = None, request_id: int = 1):
    request = types.JSONRPCRequest(jsonrpc="2.0", id=request_id, method=method, params=params)
    return await server.handle_request(request)


def _tool_payload(reply: types.JSONRPCResponse) -> tuple[bool, Any]:
    result = reply.result
    text = result["content"][0]["text"]
    try:
        body = json.loads(text)
    except ValueError:
        body = text
    return result["isError"], body


@pytest.mark.anyio
async def test_initialize_negotiates_version_and_reports_identity(server: ProtocolServer) -> None:
    assert server.state is ServerState.INITIALIZING
    requested = SUPPORTED_PROTOCOL_VERSIONS[0]

    reply = await _call(server, "initialize", {"protocolVersion": requested, "capabilities": {}})

    assert isinstance(reply, types.JSONRPCResponse)
    assert reply.id == 1
    assert reply.result["protocolVersion"] == requested
    assert reply.result["serverInfo"] == {"name": "jsonplaceholder-server", "version": "1.0.0"}
    assert set(reply.result["capabilities"]) >= {"tools", "resources"}
    assert server.state is ServerState.READY


@pytest.mark.anyio
async def test_initialize_with_unknown_version_answers_latest(server: ProtocolServer) -> None:
    reply = await _call(server, "initialize", {"protocolVersion": "1999-01-01"})
    assert reply.result["protocolVersion"] == LATEST_PROTOCOL_VERSION


@pytest.mark.anyio
async def test_ping_returns_empty_result(server: ProtocolServer) -> None:
    reply = await _call(server, "ping", request_id=9)
    assert isinstance(reply, types.JSONRPCResponse)
    assert (reply.id, reply.result) == (9, {})


@pytest.mark.anyio
async def test_unknown_method_is_method_not_found(server: ProtocolServer) -> None:
    reply = await _call(server, "prompts/list", request_id="abc")  # type: ignore[arg-type]

    assert isinstance(reply, types.JSONRPCError)
    assert reply.id == "abc"
    assert reply.error.code == types.METHOD_NOT_FOUND
    assert reply.error.message == "Method not found: prompts/list"


@pytest.mark.anyio
async def test_requests_before_initialize_are_answered(server: ProtocolServer) -> None:
    reply = await _call(server, "tools/list")
    assert isinstance(reply, types.JSONRPCResponse)
    assert server.state is ServerState.INITIALIZING


@pytest.mark.anyio
async def test_tools_list_advertises_parsed_tools(server: ProtocolServer) -> None:
    reply = await _call(server, "tools/list")

    tools = {tool["name"]: tool for tool in reply.result["tools"]}
    assert list(tools)[:2] == ["get_posts", "get_post_by_id"]
    assert tools["get_post_by_id"]["inputSchema"]["required"] == ["id"]
    assert tools["get_post_by_id"]["description"] == "Get a post (by its id)"


@pytest.mark.anyio
async def test_tool_calls_reach_the_api(server: ProtocolServer) -> None:
    is_error, body = _tool_payload(await _call(server, "tools/call", {"name": "get_posts", "arguments": {"_limit": 1}}))
    assert not is_error
    assert body == POSTS[:1]

    is_error, body = _tool_payload(
        await _call(server, "tools/call", {"name": "get_post_by_id", "arguments": {"id": 2}})
    )
    assert not is_error
    assert body == {"id": 2, "title": "second"}

    is_error, body = _tool_payload(
        await _call(server, "tools/call", {"name": "create_post", "arguments": {"title": "new"}})
    )
    assert not is_error
    assert body == {"id": 101, "title": "new"}


@pytest.mark.anyio
async def test_tool_text_is_pretty_printed_json(server: ProtocolServer) -> None:
    reply = await _call(server, "tools/call", {"name": "get_post_by_id", "arguments": {"id": 1}})
    assert reply.result["content"][0]["text"] == json.dumps({"id": 1, "title": "first"}, indent=2)


@pytest.mark.anyio
async def test_text_bodies_are_json_encoded(mock_dispatcher) -> None:
    def plain(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="plain body", headers={"Content-Type": "text/plain"})

    server = ProtocolServer(parse(PYTHON_SOURCE), dispatcher=mock_dispatcher(plain))

    reply = await _call(server, "tools/call", {"name": "get_post_by_id", "arguments": {"id": "7"}})
    assert reply.result["isError"] is False
    assert reply.result["content"][0]["text"] == '"plain body"'

    read = await _call(server, "resources/read", {"uri": "posts://all"})
    assert read.result["contents"][0]["text"] == '"plain body"'


@pytest.mark.anyio
async def test_http_error_becomes_error_result_not_protocol_error(server: ProtocolServer) -> None:
    reply = await _call(server, "tools/call", {"name": "get_post_by_id", "arguments": {"id": 999}})

    assert isinstance(reply, types.JSONRPCResponse)
    is_error, report = _tool_payload(reply)
    assert is_error
    assert report["error"] == "HTTP 404: Not Found"
    assert report["status"] == 404
    assert report["tool"] == "get_post_by_id"
    assert report["args"] == {"id": 999}
    assert report["timestamp"].endswith("Z")


@pytest.mark.anyio
async def test_missing_path_argument_is_an_error_result(server: ProtocolServer) -> None:
    is_error, report = _tool_payload(await _call(server, "tools/call", {"name": "get_post_by_id"}))

    assert is_error
    assert "Missing required path argument 'id'" in report["error"]
    assert report["args"] == {}


@pytest.mark.anyio
async def test_unknown_tool_is_an_error_result(server: ProtocolServer) -> None:
    is_error, report = _tool_payload(await _call(server, "tools/call", {"name": "nope", "arguments": {}}))

    assert is_error
    assert report["error"] == "Tool 'nope' not found in parsed definitions"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "params",
    [{}, {"name": 5}, {"name": "get_posts", "arguments": ["not", "an", "object"]}],
)
async def test_malformed_tool_call_params_are_invalid_params(server: ProtocolServer, params: dict) -> None:
    reply = await _call(server, "tools/call", params)

    assert isinstance(reply, types.JSONRPCError)
    assert reply.error.code == types.INVALID_PARAMS


@pytest.mark.anyio
async def test_resources_list_and_read(server: ProtocolServer) -> None:
    listed = await _call(server, "resources/list")
    assert [resource["uri"] for resource in listed.result["resources"]] == ["posts://all", "users://all"]

    reply = await _call(server, "resources/read", {"uri": "posts://all"})
    (content,) = reply.result["contents"]
    assert content["uri"] == "posts://all"
    assert content["mimeType"] == "application/json"
    assert json.loads(content["text"]) == POSTS


@pytest.mark.anyio
async def test_read_unknown_resource_is_invalid_request(server: ProtocolServer) -> None:
    reply = await _call(server, "resources/read", {"uri": "comments://all"})

    assert isinstance(reply, types.JSONRPCError)
    assert reply.error.code == types.INVALID_REQUEST
    assert reply.error.message == "Unknown resource: comments://all"


@pytest.mark.anyio
async def test_failed_resource_read_is_internal_error(server: ProtocolServer) -> None:
    # users://all maps to GET /users, which the fake API answers with 500.
    reply = await _call(server, "resources/read", {"uri": "users://all"})

    assert isinstance(reply, types.JSONRPCError)
    assert reply.error.code == types.INTERNAL_ERROR
    assert reply.error.message.startswith("Resource read failed: HTTP 500")


@pytest.mark.anyio
async def test_unexpected_handler_failure_is_internal_error(server: ProtocolServer, monkeypatch) -> None:
    async def broken() -> dict:
        raise RuntimeError("kaput")

    monkeypatch.setattr(server.tools, "list_tools", broken)
    reply = await _call(server, "tools/list")

    assert isinstance(reply, types.JSONRPCError)
    assert reply.error.code == types.INTERNAL_ERROR
    assert "kaput" in reply.error.message


def test_methods_and_name(server: ProtocolServer) -> None:
    assert server.name == "jsonplaceholder-server"
    assert server.methods == sorted(
        ["initialize", "ping", "tools/list", "tools/call", "resources/list", "resources/read"]
    )


@pytest.mark.anyio
async def test_server_with_no_recovered_definitions_lists_nothing(mock_dispatcher) -> None:
    server = ProtocolServer(parse(""), dispatcher=mock_dispatcher(_jsonplaceholder))

    tools = await _call(server, "tools/list")
    resources = await _call(server, "resources/list")

    assert isinstance(tools, types.JSONRPCResponse)
    assert tools.result == {"tools": []}
    assert resources.result == {"resources": []}
