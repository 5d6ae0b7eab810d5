import asyncio
import base64
from typing import Dict, Any, List, Optional, Tuple

from google import genai
from google.genai import types

from .base import BaseApiClient, ChunkTransformer
from ..logging import get_logger
from ..models import is_reasoning_model
from ..types import (
    Chunk, ChunkType, CompletionsParams, CompletionsResult, GenerateImageParams, Message,
    Model, RequestOptions, SdkModel, ToolUseResponse, make_chunk,
)
from ..utils import filter_empty, resolve_image_to_base64

logger = get_logger(__name__)


class GeminiChunkTransformer(ChunkTransformer):
    """``GenerateContentResponse`` objects (streamed or whole) -> chunks."""

    def __init__(self, params: CompletionsParams):
        super().__init__(params)
        self._call_count = 0
        self._search_results: List[Dict[str, str]] = []

    def transform(self, raw: Any) -> List[Chunk]:
        chunks: List[Chunk] = []
        responses = []
        candidates = getattr(raw, "candidates", None) or []

        if candidates and candidates[0].content and candidates[0].content.parts:
            for part in candidates[0].content.parts:
                if getattr(part, "function_call", None):
                    fc = part.function_call
                    tool = self.find_tool(fc.name)
                    if tool is not None:
                        # Gemini doesn't always provide call IDs
                        call_id = getattr(fc, "id", None) or f"gemini_{fc.name}_{self._call_count}"
                        self._call_count += 1
                        responses.append(ToolUseResponse(
                            id=call_id, tool=tool, arguments=dict(fc.args or {}), tool_call_id=call_id,
                        ))
                elif getattr(part, "text", None):
                    kind = ChunkType.THINKING_DELTA if getattr(part, "thought", False) else ChunkType.TEXT_DELTA
                    chunks.append(make_chunk(kind, text=part.text))

        if candidates:
            grounding = getattr(candidates[0], "grounding_metadata", None)
            for grounding_chunk in getattr(grounding, "grounding_chunks", None) or []:
                web = getattr(grounding_chunk, "web", None)
                if web is not None:
                    self._search_results.append({"title": web.title or "", "url": web.uri or ""})

        if responses:
            chunks.append(make_chunk(ChunkType.MCP_TOOL_CREATED, tool_calls=responses))

        um = getattr(raw, "usage_metadata", None)
        if um is not None:
            self.usage = BaseApiClient.normalize_usage(
                "gemini",
                input_tokens=um.prompt_token_count,
                output_tokens=um.candidates_token_count,
                total_tokens=um.total_token_count,
            )
        return chunks

    def flush(self) -> List[Chunk]:
        chunks: List[Chunk] = []
        if self._search_results:
            chunks.append(make_chunk(ChunkType.LLM_WEB_SEARCH_COMPLETE, results=self._search_results, source="gemini"))
        return chunks + super().flush()


class GeminiAPIClient(BaseApiClient):
    """
    Client for Google Gemini API (using google-genai SDK).
    """

    DEFAULT_API_HOST = "https://generativelanguage.googleapis.com"

    def _create_sdk(self, api_key: str) -> Any:
        http_options = None
        if self.provider.api_host and self.provider.api_host != self.DEFAULT_API_HOST:
            http_options = types.HttpOptions(base_url=self.provider.api_host, headers=self.get_headers() or None)
        return genai.Client(api_key=api_key, http_options=http_options)

    async def create_completions(
        self,
        params: CompletionsParams,
        options: Optional[RequestOptions] = None,
    ) -> CompletionsResult:
        """
        Send a generate-content request.

        Handles:
        - Role mapping (assistant -> model).
        - Function declarations and Google Search grounding.
        - Thought summaries when reasoning is enabled.
        """
        model = params.assistant.model
        settings = params.assistant.settings
        system_instruction, contents = await self._convert_messages(self.build_messages(params))

        tools: List[types.Tool] = []
        if self.use_native_tools(params):
            tools.append(types.Tool(function_declarations=[
                types.FunctionDeclaration(
                    name=tool.name,
                    description=tool.description,
                    parameters=tool.input_schema or None,
                )
                for tool in params.mcp_tools
            ]))
        if params.enable_web_search:
            tools.append(types.Tool(google_search=types.GoogleSearch()))

        config_kwargs = filter_empty({
            "temperature": settings.temperature,
            "max_output_tokens": settings.max_tokens,
            "top_p": settings.top_p,
            "system_instruction": system_instruction,
            "tools": tools or None,
            "thinking_config": (
                types.ThinkingConfig(include_thoughts=True)
                if params.enable_reasoning and is_reasoning_model(model)
                else None
            ),
        })
        config = types.GenerateContentConfig(**config_kwargs)

        sdk = self.get_sdk_instance()
        if params.stream_output:
            raw_output = await sdk.aio.models.generate_content_stream(
                model=model.id, contents=contents, config=config,
            )
        else:
            raw_output = await sdk.aio.models.generate_content(
                model=model.id, contents=contents, config=config,
            )
        return CompletionsResult(raw_output=raw_output)

    def get_response_chunk_transformer(self, params: CompletionsParams) -> ChunkTransformer:
        return GeminiChunkTransformer(params)

    async def _convert_messages(
        self,
        messages: List[Message],
    ) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """
        Convert messages to Gemini contents.

        Tool results only carry the call id, so the function name is looked
        up from the assistant message that made the call.
        """
        system_instruction = None
        contents = []
        call_names: Dict[str, str] = {}

        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content", "")

            if role == "system":
                if isinstance(content, str):
                    system_instruction = content
                else:
                    system_instruction = "\n".join(p.get("text", "") for p in content if p.get("type") == "text")
                continue

            if role == "tool":
                call_id = msg.get("tool_call_id", "")
                contents.append({
                    "role": "user",
                    "parts": [{
                        "function_response": {
                            "name": call_names.get(call_id, call_id),
                            "response": {"result": content if isinstance(content, str) else ""},
                        }
                    }],
                })
                continue

            gemini_role = "model" if role == "assistant" else "user"
            parts = []
            if isinstance(content, str):
                if content:
                    parts.append({"text": content})
            else:
                for part in content:
                    if part.get("type") == "text":
                        parts.append({"text": part.get("text", "")})
                    elif part.get("type") == "image_url":
                        url = part.get("image_url", {}).get("url", "")
                        b64_data, mime_type = await resolve_image_to_base64(url)
                        parts.append({"inline_data": {"mime_type": mime_type, "data": b64_data}})

            if role == "assistant":
                for tc in msg.get("tool_calls", []):
                    call_names[tc["id"]] = tc["name"]
                    parts.append({"function_call": {"name": tc["name"], "args": tc["arguments"]}})

            if parts:
                contents.append({"role": gemini_role, "parts": parts})

        return system_instruction, contents

    # ==========================================================================
    # Auxiliary operations
    # ==========================================================================

    async def list_models(self) -> List[SdkModel]:
        sdk = self.get_sdk_instance()

        def _list():
            models = []
            for m in sdk.models.list():
                actions = getattr(m, "supported_actions", None)
                if actions and "generateContent" not in actions and "embedContent" not in actions:
                    continue
                models.append(SdkModel(id=m.name.split("/")[-1], owned_by="google", name=m.display_name or ""))
            return models

        # models.list on the top-level client is synchronous and paginates lazily
        try:
            return await asyncio.to_thread(_list)
        except Exception as e:
            logger.error("Failed to list Gemini models: %s", e)
            return []

    async def get_embedding_dimensions(self, model: Model) -> int:
        response = await self.get_sdk_instance().aio.models.embed_content(model=model.id, contents="hi")
        return len(response.embeddings[0].values)

    async def generate_image(self, params: GenerateImageParams) -> List[str]:
        config = types.GenerateImagesConfig(**filter_empty({
            "number_of_images": params.n,
            "negative_prompt": params.negative_prompt,
            "seed": params.seed,
        }))
        response = await self.get_sdk_instance().aio.models.generate_images(
            model=params.model, prompt=params.prompt, config=config,
        )
        images = []
        for generated in response.generated_images or []:
            image = generated.image
            mime_type = image.mime_type or "image/png"
            images.append(f"data:{mime_type};base64,{base64.b64encode(image.image_bytes).decode('utf-8')}")
        return images
