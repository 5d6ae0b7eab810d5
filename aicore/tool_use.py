"""
Prompt-based tool use.

Models without native function calling are told about the available tools
in the system prompt and answer with ``<tool_use>`` blocks::

    <tool_use>
      <name>search</name>
      <arguments>{"query": "weather in Paris"}</arguments>
    </tool_use>

Results go back to the model as ``<tool_use_result>`` blocks in a user
message.
"""
import json
import re
import uuid
from typing import List, Sequence

from .logging import get_logger
from .types import MCPTool, ToolUseResponse

logger = get_logger(__name__)

TOOL_USE_OPENING_TAG = "<tool_use>"
TOOL_USE_CLOSING_TAG = "</tool_use>"

_NAME_RE = re.compile(r"<name>\s*(.*?)\s*</name>", re.DOTALL)
_ARGUMENTS_RE = re.compile(r"<arguments>\s*(.*?)\s*</arguments>", re.DOTALL)

TOOL_USE_SYSTEM_PROMPT = """In this environment you have access to a set of tools you can use to answer the user's question.
You can use one tool per message, and will receive the result of that tool use in the user's response.

To use a tool, write:

<tool_use>
  <name>{{tool name}}</name>
  <arguments>{{JSON object of arguments}}</arguments>
</tool_use>

The result will come back as:

<tool_use_result>
  <name>{{tool name}}</name>
  <result>{{result}}</result>
</tool_use_result>

Available tools:
{tools}

{user_prompt}"""


def _describe_tool(tool: MCPTool) -> str:
    schema = json.dumps(tool.input_schema or {"type": "object", "properties": {}})
    return (
        "<tool>\n"
        f"  <name>{tool.name}</name>\n"
        f"  <description>{tool.description}</description>\n"
        f"  <arguments>{schema}</arguments>\n"
        "</tool>"
    )


def build_tool_use_system_prompt(user_prompt: str, tools: Sequence[MCPTool]) -> str:
    if not tools:
        return user_prompt
    described = "\n".join(_describe_tool(tool) for tool in tools)
    return TOOL_USE_SYSTEM_PROMPT.format(tools=described, user_prompt=user_prompt).strip()


def parse_tool_use(content: str, tools: Sequence[MCPTool]) -> List[ToolUseResponse]:
    """
    Parse the body of one ``<tool_use>`` block.

    Unknown tool names and unparseable argument JSON are logged and dropped,
    so the model's text is never turned into a call to a tool it was not
    offered.
    """
    name_match = _NAME_RE.search(content)
    if not name_match:
        logger.warning("Ignoring <tool_use> block without a <name>")
        return []

    name = name_match.group(1)
    tool = next((t for t in tools if t.name == name or t.id == name), None)
    if tool is None:
        logger.warning("Model requested unknown tool %r", name)
        return []

    arguments = {}
    arguments_match = _ARGUMENTS_RE.search(content)
    if arguments_match and arguments_match.group(1):
        try:
            arguments = json.loads(arguments_match.group(1))
        except json.JSONDecodeError:
            logger.warning("Tool %r called with invalid JSON arguments", name)
            arguments = {"_raw": arguments_match.group(1)}

    return [ToolUseResponse(id=f"tool_use_{uuid.uuid4().hex[:12]}", tool=tool, arguments=arguments)]


def format_tool_use_result(response: ToolUseResponse) -> str:
    return (
        "<tool_use_result>\n"
        f"  <name>{response.tool.name}</name>\n"
        f"  <result>{response.response or ''}</result>\n"
        "</tool_use_result>"
    )
