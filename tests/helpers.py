# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Shared sources, fake channels and fake processes for bridge tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import json
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream


PYTHON_SOURCE = '''#!/usr/bin/env python3
"""
Generated MCP Server for JSONPlaceholder
Automatically created by MCP Studio
"""

import asyncio
import logging
import json
from typing import Any, Dict, List, Optional
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    Resource,
    Tool,
    TextContent,
    InitializationOptions,
    ServerCapabilities,
)
import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

server = Server("jsonplaceholder-server")

API_BASE_URL = "https://jsonplaceholder.typicode.com"

async def get_http_client():
    """Get configured HTTP client"""
    return httpx.AsyncClient(base_url=API_BASE_URL)

@server.list_resources()
async def list_resources() -> List[Resource]:
    """List available resources"""
    return [
        Resource(
            uri="posts://all",
            name="All Posts",
            description="Every post (it's a lot)",
            mimeType="application/json"
        ),
        Resource(
            uri="users://all",
            name="All Users",
            description="Every user"
        )
    ]

@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read resource content"""
    async with get_http_client() as client:
        try:
            if uri == "posts://all":
                response = await client.get("/posts")
                response.raise_for_status()
                return response.text
            else:
                raise ValueError(f"Unknown resource: {uri}")
        except httpx.HTTPError as e:
            logger.error(f"HTTP error reading resource {uri}: {e}")
            raise

@server.list_tools()
async def list_tools() -> List[Tool]:
    """List available tools"""
    tools = [
        Tool(
            name="get_posts",
            description="Get all posts",
            inputSchema={
                "type": "object",
                "properties": {
                    "_limit": {"type": "integer", "description": "Max posts"}
                }
            }
        ),
        Tool(
            name="get_post_by_id",
            description="Get a post (by its id)",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "integer", "description": "Post ID"}
                },
                "required": ["id"]
            }
        ),
        Tool(
            name="create_post",
            description="Create a post",
            inputSchema={
                'type': 'object',
                'properties': {
                    'title': {'type': 'string'},
                    'draft': {'type': 'boolean', 'default': False},  # python literal
                },
            }
        ),
        Tool(
            name="update_post",
            description="Update a post",
            inputSchema={"type": "object", "properties": {"id": {"type": "integer"}, "title": {"type": "string"}}}
        ),
        Tool(
            name="get_user_posts",
            description="Posts written by one user",
            inputSchema={"type": "object", "properties": {"id": {"type": "integer"}}}
        ),
        Tool(
            name="delete_comment",
            description="Delete a comment",
            inputSchema=COMMENT_SCHEMA
        )
    ]

    print("Registered tools:", [tool.name for tool in tools])
    return tools

@server.call_tool()
async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Handle tool calls"""
    async with get_http_client() as client:
        try:
            if name == "get_posts":
                # Get all posts
                params = {}
                if '_limit' in arguments:
                    params['_limit'] = arguments['_limit']
                response = await client.get("/posts", params=params)
                response.raise_for_status()

                return [TextContent(
                    type="text",
                    text=json.dumps(response.json(), indent=2)
                )]
            elif name == "get_post_by_id":
                # Get a post (by its id)
                id = arguments['id']
                response = await client.get(f"/posts/{id}")
                response.raise_for_status()

                return [TextContent(
                    type="text",
                    text=json.dumps(response.json(), indent=2)
                )]
            elif name == "create_post":
                payload = {}
                if 'title' in arguments: payload['title'] = arguments['title']
                response = await client.post("/posts", json=payload)
                response.raise_for_status()

                return [TextContent(type="text", text=json.dumps(response.json(), indent=2))]
            elif name == "update_post":
                post_id = arguments['id']
                payload = {}
                if 'title' in arguments: payload['title'] = arguments['title']
                response = await client.put(f"/posts/{post_id}", json=payload)
                response.raise_for_status()

                return [TextContent(type="text", text=json.dumps(response.json(), indent=2))]
            elif name == "get_user_posts":
                # Custom implementation for get_user_posts
                result = {"message": "Custom method executed", "arguments": arguments}

                return [TextContent(
                    type="text",
                    text=json.dumps(result, indent=2)
                )]
            else:
                raise ValueError(f"Unknown tool: {name}")

        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP {e.response.status_code} error calling {name}: {e}")
            return [TextContent(type="text", text=f"API Error: {e.response.status_code}")]

async def main():
    """Run the MCP server"""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name="jsonplaceholder-server",
                server_version="1.0.0",
                capabilities=ServerCapabilities(resources={}, tools={}),
            ),
        )

if __name__ == "__main__":
    asyncio.run(main())
'''


TYPESCRIPT_SOURCE = """#!/usr/bin/env node
/**
 * Generated MCP Server for JSONPlaceholder
 * Automatically created by MCP Studio
 */

import { Server } from '@modelcontextprotocol/sdk/server/index.js';
import { StdioServerTransport } from '@modelcontextprotocol/sdk/server/stdio.js';
import {
  CallToolRequestSchema,
  ErrorCode,
  ListResourcesRequestSchema,
  ListToolsRequestSchema,
  McpError,
  ReadResourceRequestSchema,
} from '@modelcontextprotocol/sdk/types.js';

// API Configuration
const API_BASE_URL = 'https://jsonplaceholder.typicode.com';
const API_KEY = process.env.API_KEY || 'your-api-key-here';

async function makeApiRequest(endpoint: string, options: RequestInit = {}) {
  const url = `${API_BASE_URL}${endpoint}`;
  const response = await fetch(url, { ...options });
  if (!response.ok) {
    throw new Error(`API request failed: ${response.status} ${response.statusText}`);
  }
  return response;
}

const server = new Server(
  {
    name: 'jsonplaceholder-server',
    version: '1.0.0',
  },
  {
    capabilities: {
      resources: {},
      tools: {},
    },
  }
);

server.setRequestHandler(ListResourcesRequestSchema, async () => {
  return {
    resources: [
      {
        uri: 'posts://all',
        name: 'All Posts',
        description: 'Every post',
        mimeType: 'application/json',
      },
      {
        uri: 'comments://recent',
        name: 'Recent Comments',
        description: 'Latest comments',
        mimeType: 'application/json',
      }
    ],
  };
});

server.setRequestHandler(ReadResourceRequestSchema, async (request) => {
  const { uri } = request.params;

  switch (uri) {
    case 'posts://all': {
      const response = await makeApiRequest('/posts');
      const data = await response.json();
      return { contents: [{ uri, mimeType: 'application/json', text: JSON.stringify(data, null, 2) }] };
    }

    case 'comments://recent': {
      const response = await makeApiRequest('/comments?_sort=id&_order=desc');
      const data = await response.json();
      return { contents: [{ uri, mimeType: 'application/json', text: JSON.stringify(data, null, 2) }] };
    }

    default:
      throw new McpError(ErrorCode.InvalidRequest, `Unknown resource: ${uri}`);
  }
});

server.setRequestHandler(ListToolsRequestSchema, async () => {
  return {
    tools: [
      {
        name: 'get_posts',
        description: 'Get all posts',
        inputSchema: {
        "type": "object",
        "properties": {
                "_limit": {
                        "type": "integer"
                }
        }
},
      },
      {
        name: 'get_post_by_id',
        description: 'Get a post',
        inputSchema: {
        "type": "object",
        "properties": {
                "id": {
                        "type": "integer"
                }
        },
        "required": ["id"]
},
      },
      {
        name: 'create_post',
        description: 'Create a post',
        // body fields
        inputSchema: { type: 'object', properties: { title: { type: 'string' }, userId: { type: 'integer' }, }, },
      },
      {
        name: 'listAlbums',
        description: 'List albums',
        inputSchema: { type: 'object', properties: {} },
      }
    ],
  };
});

server.setRequestHandler(CallToolRequestSchema, async (request) => {
  const { name, arguments: args } = request.params;

  try {
    switch (name) {
      case 'get_posts': {
        // Handle Get all posts
        const params = new URLSearchParams();
        if (args._limit) params.append('_limit', args._limit.toString());
        const response = await makeApiRequest(`/posts?${params}`, { method: 'GET' });
        const result = await response.json();

        return {
          content: [{ type: 'text', text: `Tool ${name} executed successfully` }],
        };
      }

      case 'get_post_by_id': {
        const response = await makeApiRequest(`/posts/${encodeURIComponent(args.id)}`, { method: 'GET' });
        const result = await response.json();

        return {
          content: [{ type: 'text', text: `Tool ${name} executed successfully` }],
        };
      }

      case 'create_post': {
        const body = {};
        if (args.title) body.title = args.title;
        const response = await makeApiRequest(`/posts`, { method: 'POST', body: JSON.stringify(body) });
        const result = await response.json();

        return {
          content: [{ type: 'text', text: `Tool ${name} executed successfully` }],
        };
      }

      default:
        throw new McpError(ErrorCode.MethodNotFound, `Unknown tool: ${name}`);
    }
  } catch (error) {
    const errorMessage = error instanceof Error ? error.message : String(error);
    return {
      content: [{ type: 'text', text: `Error calling ${name}: ${errorMessage}` }],
      isError: true,
    };
  }
});

async function main() {
  const transport = new StdioServerTransport();
  await server.connect(transport);
}

main().catch((error) => {
  console.error('Server failed to start:', error);
  process.exit(1);
});
"""


def frame(request: dict[str, Any], result: Any = None, *, error: dict[str, Any] | None = None) -> bytes:
    """Render a response line for ``request``."""
    payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request["id"]}
    if error is not None:
        payload["error"] = error
    else:
        payload["result"] = result if result is not None else {}
    return (json.dumps(payload, ensure_ascii=False) + "\n").encode("utf-8")


class FakeChannel:
    """In-memory duplex channel: the multiplexer side and the remote side.

    ``outbound`` is what the multiplexer writes to; ``remote_inbox`` lets the
    test read those lines.  ``inbound`` feeds the multiplexer; the test writes
    chunks with :meth:`push` and ends the stream with :meth:`close_remote`.
    """

    def __init__(self) -> None:
        self.outbound: MemoryObjectSendStream[bytes]
        self.remote_inbox: MemoryObjectReceiveStream[bytes]
        self.outbound, self.remote_inbox = anyio.create_memory_object_stream(100)
        self._remote_send: MemoryObjectSendStream[bytes]
        self.inbound: MemoryObjectReceiveStream[bytes]
        self._remote_send, self.inbound = anyio.create_memory_object_stream(100)
        self._pending = b""

    async def push(self, chunk: bytes | str) -> None:
        await self._remote_send.send(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)

    async def next_request(self) -> dict[str, Any]:
        while b"\n" not in self._pending:
            self._pending += await self.remote_inbox.receive()
        line, self._pending = self._pending.split(b"\n", 1)
        return json.loads(line)

    async def close_remote(self) -> None:
        await self._remote_send.aclose()


Responder = Callable[[dict[str, Any]], Awaitable[bytes | None]]


class FakeProcess:
    """Stand-in for ``anyio.abc.Process`` backed by memory streams.

    A responder task reads request lines from ``stdin`` and writes whatever the
    responder returns to ``stdout``; closing ``stdin`` makes the process exit.
    """

    def __init__(self, responder: Responder, *, pid: int = 4242, exit_on_eof: bool = True) -> None:
        self.stdin, self._stdin_reader = anyio.create_memory_object_stream(100)
        self._stdout_writer, self.stdout = anyio.create_memory_object_stream(100)
        self.stderr = None
        self.pid = pid
        self.returncode: int | None = None
        self.terminated = False
        self.killed = False
        self._responder = responder
        self._exit_on_eof = exit_on_eof
        self._exited = anyio.Event()

    async def serve(self) -> None:
        buffer = b""
        async for chunk in self._stdin_reader:
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                reply = await self._responder(json.loads(line))
                if reply is not None and self.returncode is None:
                    await self._stdout_writer.send(reply)
        if self._exit_on_eof:
            self._exit(0)

    async def emit(self, data: bytes) -> None:
        await self._stdout_writer.send(data)

    def _exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self._stdout_writer.close()
            self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self._exit(-15)

    def kill(self) -> None:
        self.killed = True
        self._exit(-9)

    async def aclose(self) -> None:
        self._stdin_reader.close()
        self.stdout.close()
        if self.returncode is None:
            self.kill()


__all__ = [
    "FakeChannel",
    "FakeProcess",
    "PYTHON_SOURCE",
    "TYPESCRIPT_SOURCE",
    "frame",
]
