from contextlib import asynccontextmanager

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from mcp.types import TextContent

from aicore.mcp import MCPConnection, MCPToolExecutor, connect_all
from aicore.types import MCPTool


def executor_with(*servers):
    """Executor with fake sessions registered as if they had connected."""
    executor = MCPToolExecutor()
    for name, tools, session in servers:
        converted = MCPToolExecutor._convert_mcp_tools(tools, name)
        executor._connections[name] = MCPConnection(name=name, session=session, tools=converted)
        for tool in converted:
            executor._tool_map[tool.name] = name
    return executor


def sdk_tool(name, description="", schema=None):
    return SimpleNamespace(name=name, description=description, inputSchema=schema)


class TestMCPToolExecutor:

    def test_tools_are_exposed_as_mcp_tools(self):
        executor = executor_with(("fs", [sdk_tool("read_file", "Read a file")], AsyncMock()))
        tools = executor.get_tools()
        assert tools == [MCPTool(name="read_file", server_name="fs", description="Read a file")]
        assert tools[0].input_schema == {"type": "object", "properties": {}}
        assert executor.get_openai_tools()[0]["function"]["name"] == "read_file"
        assert executor.get_tools_for_server("missing") == []
        assert executor.tool_names == ["read_file"]

    @pytest.mark.asyncio
    async def test_call_tool_routes_to_server(self):
        fs, web = AsyncMock(), AsyncMock()
        web.call_tool.return_value = SimpleNamespace(content=[
            TextContent(type="text", text="line 1"),
            TextContent(type="text", text="line 2"),
        ])
        executor = executor_with(("fs", [sdk_tool("read_file")], fs), ("web", [sdk_tool("fetch")], web))

        assert await executor.call_tool("fetch", {"url": "https://example.com"}) == "line 1\nline 2"
        web.call_tool.assert_awaited_once_with("fetch", {"url": "https://example.com"})
        fs.call_tool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_result(self):
        session = AsyncMock()
        session.call_tool.return_value = SimpleNamespace(content=[])
        executor = executor_with(("fs", [sdk_tool("ls")], session))
        assert await executor.call_tool("ls", {}) == ""

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        with pytest.raises(ValueError, match="not found"):
            await MCPToolExecutor().call_tool("nope", {})

    @pytest.mark.asyncio
    async def test_connect_requires_context(self):
        with pytest.raises(RuntimeError, match="async context manager"):
            await MCPToolExecutor().connect_stdio("fs", "npx")

    @pytest.mark.asyncio
    async def test_unsupported_transport(self):
        async with MCPToolExecutor() as executor:
            with pytest.raises(ValueError, match="Unsupported transport"):
                await executor.connect({"name": "x", "transport": "carrier-pigeon"})

    @pytest.mark.asyncio
    async def test_connect_all_in_order(self):
        executor = MCPToolExecutor()
        executor.connect = AsyncMock(side_effect=lambda config: config["name"])
        assert await connect_all(executor, [{"name": "a"}, {"name": "b"}]) == ["a", "b"]

    @pytest.mark.asyncio
    @patch("aicore.mcp.streamablehttp_client")
    async def test_connect_http_transport(self, mock_http_client):
        @asynccontextmanager
        async def transport(url, headers=None):
            yield "read", "write", lambda: "session-id"

        mock_http_client.side_effect = transport
        async with MCPToolExecutor() as executor:
            executor._open_session = AsyncMock(return_value="conn")
            conn = await executor.connect({
                "name": "web", "transport": "streamable-http",
                "url": "https://mcp.example/mcp", "headers": {"Authorization": "Bearer t"},
            })

        assert conn == "conn"
        mock_http_client.assert_called_once_with("https://mcp.example/mcp", headers={"Authorization": "Bearer t"})
        executor._open_session.assert_awaited_once_with("web", "read", "write")
