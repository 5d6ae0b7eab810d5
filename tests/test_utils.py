import pytest
from unittest.mock import patch, mock_open

from aicore.rich_chunk_printer import RichChunkPrinter, print_result
from aicore.tag_extraction import TagConfig, TagExtractor
from aicore.tool_use import build_tool_use_system_prompt, format_tool_use_result, parse_tool_use
from aicore.types import ChunkType, CompletionsResult, MCPTool, ToolUseResponse
from aicore.utils import (
    create_message, create_text_content, create_tool_result, encode_image_file, filter_empty,
    get_last_user_message, get_message_text, resolve_image_to_base64,
)


class TestUtils:

    def test_create_text_content(self):
        assert create_text_content("Hello") == {"type": "text", "text": "Hello"}

    def test_create_message_text(self):
        assert create_message("user", "Hello world") == {"role": "user", "content": "Hello world"}

    def test_create_message_multimodal(self):
        image = {"type": "image_url", "image_url": {"url": "https://example.com/cat.jpg"}}
        msg = create_message("user", ["Look at this", image])
        assert msg["content"] == [{"type": "text", "text": "Look at this"}, image]
        assert get_message_text(msg) == "Look at this"

    @patch("pathlib.Path.exists")
    @patch("builtins.open", new_callable=mock_open, read_data=b"image data")
    def test_encode_image_file(self, mock_file, mock_exists):
        mock_exists.return_value = True

        b64_data, mime_type = encode_image_file("test.jpg")

        assert mime_type == "image/jpeg"
        # "image data" in base64 is "aW1hZ2UgZGF0YQ=="
        assert b64_data == "aW1hZ2UgZGF0YQ=="

    def test_encode_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            encode_image_file(tmp_path / "nope.png")

    @pytest.mark.asyncio
    async def test_resolve_data_uri(self):
        assert await resolve_image_to_base64("data:image/png;base64,SGVsbG8=") == ("SGVsbG8=", "image/png")

    @pytest.mark.asyncio
    async def test_resolve_local_file(self, tmp_path):
        image = tmp_path / "pixel.png"
        image.write_bytes(b"Hello")
        assert await resolve_image_to_base64(str(image)) == ("SGVsbG8=", "image/png")
        assert await resolve_image_to_base64(f"file://{image}") == ("SGVsbG8=", "image/png")

    def test_create_tool_result(self):
        result = create_tool_result("call_123", "result content")
        assert result == {"role": "tool", "tool_call_id": "call_123", "content": "result content"}

    def test_last_user_message(self):
        messages = [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "reply"},
            {"role": "user", "content": "second"},
            {"role": "assistant", "content": "again"},
        ]
        assert get_last_user_message(messages)["content"] == "second"
        assert get_last_user_message([]) is None

    def test_filter_empty_keeps_falsy_values(self):
        assert filter_empty({"a": None, "b": 0, "c": "", "d": 1}) == {"b": 0, "c": "", "d": 1}


class TestTagExtractor:

    def feed(self, extractor, pieces):
        results = []
        for piece in pieces:
            results.extend(extractor.process_text(piece))
        return results

    def test_split_tags(self):
        extractor = TagExtractor(TagConfig("<think>", "</think>"))
        results = self.feed(extractor, ["before <th", "ink>deep", " thought</thi", "nk> after"])

        outside = "".join(r.content for r in results if not r.is_tag_content and not r.complete)
        inside = "".join(r.content for r in results if r.is_tag_content)
        complete = [r for r in results if r.complete]

        assert outside == "before  after"
        assert inside == "deep thought"
        assert [r.tag_content_extracted for r in complete] == ["deep thought"]

    def test_separator_after_opening_tag_is_dropped(self):
        extractor = TagExtractor(TagConfig("<think>", "</think>", separator="\n"))
        results = self.feed(extractor, ["<think>\nidea</think>"])
        assert [r.tag_content_extracted for r in results if r.complete] == ["idea"]

    def test_separator_in_later_delta_is_dropped(self):
        extractor = TagExtractor(TagConfig("<think>", "</think>", separator="\n"))
        results = self.feed(extractor, ["<think>", "", "\nreason</think>"])
        assert [r.tag_content_extracted for r in results if r.complete] == ["reason"]
        assert "".join(r.content for r in results if r.is_tag_content) == "reason"

    def test_split_multichar_separator_is_dropped(self):
        extractor = TagExtractor(TagConfig("<think>", "</think>", separator="\r\n"))
        results = self.feed(extractor, ["<think>\r", "\nidea</think>"])
        assert [r.tag_content_extracted for r in results if r.complete] == ["idea"]

    def test_finalize_unterminated_tag(self):
        extractor = TagExtractor(TagConfig("<think>", "</think>"))
        self.feed(extractor, ["<think>never closed"])
        tail = extractor.finalize()
        assert tail.complete
        assert tail.tag_content_extracted == "never closed"

    def test_finalize_flushes_held_partial_tag(self):
        extractor = TagExtractor(TagConfig("<think>", "</think>"))
        assert self.feed(extractor, ["a <thi"])[0].content == "a "
        tail = extractor.finalize()
        assert tail.content == "<thi"
        assert not tail.is_tag_content
        assert extractor.finalize() is None


class TestToolUse:

    tools = [MCPTool(name="weather", server_name="wx", description="Weather by city",
                     input_schema={"type": "object", "properties": {"city": {"type": "string"}}})]

    def test_parse(self):
        calls = parse_tool_use('<name>weather</name>\n<arguments>{"city": "Oslo"}</arguments>', self.tools)
        assert len(calls) == 1
        assert calls[0].tool is self.tools[0]
        assert calls[0].arguments == {"city": "Oslo"}
        assert calls[0].tool_call_id is None

    def test_parse_unknown_tool(self):
        assert parse_tool_use("<name>shell</name><arguments>{}</arguments>", self.tools) == []

    def test_parse_invalid_json(self):
        calls = parse_tool_use("<name>weather</name><arguments>{city: Oslo}</arguments>", self.tools)
        assert calls[0].arguments == {"_raw": "{city: Oslo}"}

    def test_system_prompt_lists_tools(self):
        prompt = build_tool_use_system_prompt("You are helpful.", self.tools)
        assert "<name>weather</name>" in prompt
        assert '"city"' in prompt
        assert prompt.endswith("You are helpful.")
        assert build_tool_use_system_prompt("plain", []) == "plain"

    def test_format_result(self):
        response = ToolUseResponse(id="t", tool=self.tools[0], arguments={}, status="done", response="-3C")
        assert "<result>-3C</result>" in format_tool_use_result(response)


class TestRichChunkPrinter:

    def test_collects_text_and_thinking(self):
        printer = RichChunkPrinter()
        printer({"type": ChunkType.THINKING_DELTA, "text": "hmm"})
        printer({"type": ChunkType.TEXT_DELTA, "text": "see [1]"})
        printer({"type": ChunkType.TEXT_COMPLETE, "text": "see [1](https://a.example)"})
        printer({"type": ChunkType.LLM_RESPONSE_COMPLETE, "usage": {"total_tokens": 3}})

        assert printer.get_thinking() == "hmm"
        assert printer.get_full_text() == "see [1](https://a.example)"

    @patch("aicore.rich_chunk_printer.console")
    def test_print_result_panel(self, mock_console):
        print_result(CompletionsResult(text="2, 3, 5", usage={"total_tokens": 9}), title="Primes")
        panel = mock_console.print.call_args.args[0]
        assert panel.title == "[bold]Primes[/bold]"

    @patch("aicore.rich_chunk_printer.console")
    def test_print_result_empty(self, mock_console):
        print_result(CompletionsResult(text="  "), show_metadata=False)
        panel = mock_console.print.call_args.args[0]
        assert panel.renderable.plain == "(empty response)"
