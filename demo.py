"""
Demo: aicore completions from the command line.

Runs a streamed completion against every provider configured in the
environment (or `.env`), then optionally the same question with tools from
an MCP filesystem server (`--mcp`) or through a universal adapter
(`--sdk`).

Requirements:
- at least one of OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY,
  DEEPSEEK_API_KEY, XAI_API_KEY, AIHUBMIX_API_KEY
- npm/npx installed for the MCP demo
"""

import asyncio
import sys

from aicore import AiProvider, Assistant, CompletionsParams, Model, configure_logging, get_settings
from aicore.config import load_providers_from_env
from aicore.mcp import mcp_executor
from aicore.rich_chunk_printer import RichChunkPrinter, console, print_result

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
    "gemini": "gemini-2.5-flash",
    "deepseek": "deepseek-chat",
    "grok": "grok-3-mini",
    "aihubmix": "gpt-4o-mini",
}


# =============================================================================
# Demo 1: Streaming chat
# =============================================================================

async def demo_chat(provider: AiProvider, model_id: str):
    assistant = Assistant(id="demo", prompt="You are a concise assistant.",
                          model=Model(id=model_id, provider=provider.provider.id))
    with RichChunkPrinter(title=f"{provider.provider.id} / {model_id}") as printer:
        await provider.completions(CompletionsParams(
            assistant=assistant,
            messages=[{"role": "user", "content": "Introduce yourself in one sentence using markdown syntax."}],
            on_chunk=printer,
            enable_reasoning=True,
        ))


# =============================================================================
# Demo 2: Universal adapter, non-streamed display
# =============================================================================

async def demo_ai_sdk(provider: AiProvider, model_id: str):
    assistant = Assistant(id="demo-sdk", model=Model(id=model_id, provider=provider.provider.id))
    result = await provider.completions_ai_sdk(CompletionsParams(
        assistant=assistant,
        messages=[{"role": "user", "content": "Name three prime numbers."}],
    ))
    print_result(result, title=f"{provider.provider.id} / {model_id} (universal adapter)")


# =============================================================================
# Demo 3: MCP tools
# =============================================================================

async def demo_mcp(provider: AiProvider, model_id: str):
    assistant = Assistant(id="demo-mcp", prompt="Use the file system tools to help the user.",
                          model=Model(id=model_id, provider=provider.provider.id))
    async with mcp_executor() as executor:
        try:
            await executor.connect_stdio(
                name="filesystem",
                command="npx",
                args=["-y", "@modelcontextprotocol/server-filesystem", "/tmp"],
            )
        except FileNotFoundError:
            console.print("[yellow]npx not found. Install Node.js to run MCP servers.[/yellow]")
            return

        with RichChunkPrinter(title="MCP Demo") as printer:
            await provider.completions(CompletionsParams(
                assistant=assistant,
                messages=[{"role": "user", "content": "List the files in /tmp and tell me what you find."}],
                mcp_tools=executor.get_tools(),
                mcp_executor=executor,
                on_chunk=printer,
            ))


async def main():
    configure_logging(get_settings().log_level)
    providers = load_providers_from_env()
    if not providers:
        console.print("[red]No provider API keys found in the environment.[/red]")
        return

    for config in providers:
        provider = AiProvider(config)
        await demo_chat(provider, DEFAULT_MODELS[config.id])

    if "--sdk" in sys.argv:
        first = providers[0]
        await demo_ai_sdk(AiProvider(first), DEFAULT_MODELS[first.id])

    if "--mcp" in sys.argv:
        first = providers[0]
        await demo_mcp(AiProvider(first), DEFAULT_MODELS[first.id])


if __name__ == "__main__":
    asyncio.run(main())
