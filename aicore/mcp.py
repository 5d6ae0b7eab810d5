"""
MCP (Model Context Protocol) tool executor.

Connects to MCP servers, exposes their tools as :class:`aicore.types.MCPTool`
and runs tool calls by name. An executor can be passed as
``CompletionsParams.mcp_executor`` so the tool loop can call into it.

Supported transports:
- stdio: local MCP servers run as a subprocess
- sse: HTTP/SSE-based MCP servers
- streamable-http: streamable HTTP MCP servers

Example Usage:
-------------
```python
from aicore.mcp import mcp_executor

async with mcp_executor() as executor:
    await executor.connect_stdio(
        name="fs",
        command="npx",
        args=["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
    )
    params = CompletionsParams(
        assistant=assistant,
        messages=messages,
        mcp_tools=executor.get_tools(),
        mcp_executor=executor,
    )
```
"""
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Sequence, TypedDict

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import TextContent as MCPTextContent

from .logging import get_logger
from .types import MCPTool, Tool

logger = get_logger(__name__)

TransportType = Literal["stdio", "sse", "streamable-http"]


class MCPServerConfig(TypedDict, total=False):
    """
    Configuration for one MCP server, as accepted by ``MCPToolExecutor.connect``.

    Example:
        config = {
            "name": "filesystem",
            "transport": "stdio",
            "command": "npx",
            "args": ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
        }
    """
    name: str
    transport: TransportType
    # stdio
    command: str
    args: List[str]
    env: Dict[str, str]
    # sse / streamable-http
    url: str
    headers: Dict[str, str]


@dataclass
class MCPConnection:
    name: str
    session: ClientSession
    tools: List[MCPTool] = field(default_factory=list)


class MCPToolExecutor:
    """
    Manages MCP server connections and tool execution.

    Connections are tied to an AsyncExitStack, so the executor must be used
    as an async context manager:

        async with MCPToolExecutor() as executor:
            await executor.connect_stdio(...)
            ...
        # connections are closed here
    """

    def __init__(self):
        self._connections: Dict[str, MCPConnection] = {}
        # tool name -> server name
        self._tool_map: Dict[str, str] = {}
        self._exit_stack: Optional[AsyncExitStack] = None

    async def __aenter__(self) -> "MCPToolExecutor":
        self._exit_stack = AsyncExitStack()
        await self._exit_stack.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._exit_stack:
            await self._exit_stack.__aexit__(exc_type, exc_val, exc_tb)
            self._exit_stack = None
        self._connections.clear()
        self._tool_map.clear()

    @property
    def connections(self) -> Dict[str, MCPConnection]:
        return self._connections

    @property
    def tool_names(self) -> List[str]:
        return list(self._tool_map.keys())

    def get_tools(self) -> List[MCPTool]:
        """All tools from every connected server, ready for ``CompletionsParams.mcp_tools``."""
        all_tools = []
        for conn in self._connections.values():
            all_tools.extend(conn.tools)
        return all_tools

    def get_openai_tools(self) -> List[Tool]:
        return [tool.to_openai_tool() for tool in self.get_tools()]

    def get_tools_for_server(self, server_name: str) -> List[MCPTool]:
        if server_name in self._connections:
            return self._connections[server_name].tools
        return []

    def _ensure_context(self, name: str):
        if self._exit_stack is None:
            raise RuntimeError(
                "MCPToolExecutor must be used as an async context manager: "
                "async with MCPToolExecutor() as executor: ..."
            )
        if name in self._connections:
            raise ValueError(f"Connection '{name}' already exists")

    async def _open_session(self, name: str, read_stream, write_stream) -> MCPConnection:
        """Initialize the session, discover its tools and register the connection."""
        session = await self._exit_stack.enter_async_context(
            ClientSession(read_stream, write_stream)
        )
        await session.initialize()

        tools_response = await session.list_tools()
        tools = self._convert_mcp_tools(tools_response.tools, name)
        for tool in tools:
            if tool.name in self._tool_map:
                logger.warning(
                    "Tool %s from %s shadows the one from %s", tool.name, name, self._tool_map[tool.name]
                )
            self._tool_map[tool.name] = name

        connection = MCPConnection(name=name, session=session, tools=tools)
        self._connections[name] = connection
        logger.info("Connected to MCP server %s (%d tools)", name, len(tools))
        return connection

    async def connect_stdio(
        self,
        name: str,
        command: str,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> MCPConnection:
        """
        Connect to an MCP server run as a subprocess.

        Args:
            name: Unique name for this connection
            command: Command to run (e.g., "npx", "python", "uv")
            args: Command arguments
            env: Environment variables for the subprocess

        Raises:
            ValueError: If a connection with this name already exists
            RuntimeError: If not inside an async context
        """
        self._ensure_context(name)
        server_params = StdioServerParameters(command=command, args=args or [], env=env)
        read_stream, write_stream = await self._exit_stack.enter_async_context(
            stdio_client(server_params)
        )
        return await self._open_session(name, read_stream, write_stream)

    async def connect_sse(
        self,
        name: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> MCPConnection:
        self._ensure_context(name)
        read_stream, write_stream = await self._exit_stack.enter_async_context(
            sse_client(url, headers=headers)
        )
        return await self._open_session(name, read_stream, write_stream)

    async def connect_http(
        self,
        name: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> MCPConnection:
        self._ensure_context(name)
        read_stream, write_stream, _ = await self._exit_stack.enter_async_context(
            streamablehttp_client(url, headers=headers)
        )
        return await self._open_session(name, read_stream, write_stream)

    async def connect(self, config: MCPServerConfig) -> MCPConnection:
        """Connect using a configuration dictionary; ``transport`` defaults to stdio."""
        transport = config.get("transport", "stdio")
        name = config["name"]

        if transport == "stdio":
            return await self.connect_stdio(
                name=name,
                command=config["command"],
                args=config.get("args"),
                env=config.get("env"),
            )
        elif transport == "sse":
            return await self.connect_sse(name=name, url=config["url"], headers=config.get("headers"))
        elif transport == "streamable-http":
            return await self.connect_http(name=name, url=config["url"], headers=config.get("headers"))
        else:
            raise ValueError(f"Unsupported transport: {transport}")

    async def call_tool(
        self,
        tool_name: str,
        arguments: Dict[str, Any],
    ) -> str:
        """
        Execute a tool on whichever server provides it.

        Returns:
            The text content of the tool result, one part per line.

        Raises:
            ValueError: If the tool is not found in any connected server
        """
        if tool_name not in self._tool_map:
            raise ValueError(f"Tool '{tool_name}' not found in any connected server")

        conn = self._connections[self._tool_map[tool_name]]
        result = await conn.session.call_tool(tool_name, arguments)

        if result.content:
            texts = []
            for content in result.content:
                if isinstance(content, MCPTextContent):
                    texts.append(content.text)
                elif hasattr(content, "text"):
                    texts.append(content.text)
                else:
                    texts.append(str(content))
            return "\n".join(texts)
        return ""

    @staticmethod
    def _convert_mcp_tools(mcp_tools: Sequence[Any], server_name: str) -> List[MCPTool]:
        return [
            MCPTool(
                name=tool.name,
                server_name=server_name,
                description=tool.description or "",
                input_schema=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in mcp_tools
        ]


@asynccontextmanager
async def mcp_executor() -> AsyncIterator[MCPToolExecutor]:
    async with MCPToolExecutor() as executor:
        yield executor


async def connect_all(executor: MCPToolExecutor, configs: Sequence[MCPServerConfig]) -> List[MCPConnection]:
    """Connect ``executor`` to every server in ``configs``, in order."""
    return [await executor.connect(config) for config in configs]
