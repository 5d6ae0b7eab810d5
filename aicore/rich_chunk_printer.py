"""
Rich display of completion chunks in the terminal.
"""
import json
from typing import Any, Dict, List, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from .types import Chunk, ChunkType, CompletionsResult

console = Console()


class RichChunkPrinter:
    """
    ``on_chunk`` callback that renders a completion live with rich.

    Use it as a context manager around the completion call:

        with RichChunkPrinter(title="gpt-4o") as printer:
            await provider.completions(CompletionsParams(..., on_chunk=printer))

    Attributes:
        title: Title for the display panel
        show_thinking: Whether to render reasoning text above the answer
        show_metadata: Whether to show usage once the response completes
        code_theme: Theme for code blocks
        inline_code_theme: Theme for inline code
        refresh_rate: Refresh rate for Live display
        border_style: Border style while streaming
    """

    def __init__(
        self,
        title: str = "Streaming Response",
        show_thinking: bool = True,
        show_metadata: bool = True,
        code_theme: str = "coffee",
        inline_code_theme: str = "monokai",
        refresh_rate: int = 30,
        border_style: str = "blue",
    ):
        self.title = title
        self.show_thinking = show_thinking
        self.show_metadata = show_metadata
        self.code_theme = code_theme
        self.inline_code_theme = inline_code_theme
        self.refresh_rate = refresh_rate
        self.border_style = border_style
        self._live: Optional[Live] = None
        self._reset()

    def _reset(self) -> None:
        self._text = ""
        self._thinking = ""
        self._tool_lines: List[str] = []
        self._images: List[str] = []
        self._usage: Optional[Dict[str, Any]] = None
        self._error: Optional[Dict[str, Any]] = None
        self._done = False

    def __enter__(self) -> "RichChunkPrinter":
        self._reset()
        self._live = Live(Panel("", border_style=self.border_style), refresh_per_second=self.refresh_rate,
                          console=console)
        self._live.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._live is not None:
            self._live.__exit__(exc_type, exc_val, exc_tb)
            self._live = None

    def __call__(self, chunk: Chunk) -> None:
        chunk_type = chunk["type"]
        if chunk_type == ChunkType.TEXT_DELTA:
            self._text += chunk.get("text", "")
        elif chunk_type == ChunkType.TEXT_COMPLETE:
            # complete text may carry citation links the deltas did not
            self._text = chunk.get("text", self._text)
        elif chunk_type == ChunkType.THINKING_DELTA:
            self._thinking += chunk.get("text", "")
        elif chunk_type in (ChunkType.MCP_TOOL_IN_PROGRESS, ChunkType.MCP_TOOL_COMPLETE):
            for call in chunk.get("tool_calls") or []:
                self._tool_lines.append(f"{call.tool.name} [{call.status}]")
        elif chunk_type == ChunkType.IMAGE_COMPLETE:
            self._images.extend((chunk.get("image") or {}).get("images", []))
        elif chunk_type == ChunkType.ERROR:
            self._error = chunk.get("error")
        elif chunk_type == ChunkType.LLM_RESPONSE_COMPLETE:
            self._usage = chunk.get("usage")
            self._done = True
        else:
            return
        self._update_display()

    def _update_display(self) -> None:
        if self._live is None:
            return
        if self._error:
            border = "red"
        elif self._done:
            border = "green"
        else:
            border = self.border_style
        title = "[bold]Final Response[/bold]" if self._done else f"[bold]{self.title}[/bold]"
        self._live.update(Panel(self._build_content(), title=title, border_style=border, padding=(1, 2)))

    def _build_content(self) -> Any:
        parts: List[Any] = []
        if self.show_thinking and self._thinking.strip():
            parts.append(Panel(Text(self._thinking, style="dim italic"), title="[dim]Thinking[/dim]",
                               border_style="dim"))
        for line in self._tool_lines:
            parts.append(Text(f"tool: {line}", style="cyan"))
        if self._text.strip():
            parts.append(Markdown(self._text, code_theme=self.code_theme, inline_code_theme=self.inline_code_theme))
        for image in self._images:
            parts.append(Text(image if not image.startswith("data:") else "(inline image)", style="magenta"))
        if self._error:
            parts.append(Text(f"{self._error.get('name')}: {self._error.get('message')}", style="bold red"))
        if self._done and self.show_metadata and self._usage:
            parts.append(_metadata_panel(self._usage))
        if not parts:
            return Text("(waiting for response...)", style="dim italic")
        return Group(*parts)

    def get_full_text(self) -> str:
        return self._text

    def get_thinking(self) -> str:
        return self._thinking


def _metadata_panel(meta: Dict[str, Any]) -> Panel:
    metadata_display = Syntax(
        json.dumps(meta, indent=2, default=str),
        "json",
        theme="lightbulb",
        background_color="default",
    )
    return Panel(metadata_display, title="[bold]Metadata[/bold]", border_style="dim")


def print_result(result: CompletionsResult, title: str = "Response", show_metadata: bool = True) -> None:
    """Display a finished (non-streamed) result in a panel."""
    if not result.text.strip():
        content: Any = Text("(empty response)", style="dim italic")
    else:
        content = Markdown(result.text, code_theme="coffee", inline_code_theme="monokai")
    if show_metadata and result.usage:
        content = Group(content, _metadata_panel(result.usage))
    console.print(Panel(content, title=f"[bold]{title}[/bold]", border_style="green", padding=(1, 2)))
