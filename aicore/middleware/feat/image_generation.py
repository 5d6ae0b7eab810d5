from typing import AsyncIterator

from ...types import (
    Chunk, ChunkType, CompletionsParams, CompletionsResult, GenerateImageParams, make_chunk,
)
from ...utils import get_last_user_message, get_message_text
from ..types import CallNext, CompletionsContext

MIDDLEWARE_NAME = "ImageGenerationMiddleware"


async def image_generation_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Serve dedicated image models.

    The last user message is the prompt. The chain stops here: the rest
    of the middleware (and the chat completion call) never runs.
    """
    last_user = get_last_user_message(params.messages)
    prompt = get_message_text(last_user) if last_user else ""
    if not prompt.strip():
        raise ValueError("Image generation needs a prompt in the last user message")

    image_params = GenerateImageParams(model=params.model.id, prompt=prompt)

    async def chunks() -> AsyncIterator[Chunk]:
        yield make_chunk(ChunkType.LLM_RESPONSE_CREATED)
        yield make_chunk(ChunkType.IMAGE_CREATED)
        images = await ctx.api_client.generate_image(image_params)
        yield make_chunk(ChunkType.IMAGE_COMPLETE, image={"type": "base64" if _all_data_uris(images) else "url",
                                                        "images": images})
        yield make_chunk(ChunkType.LLM_RESPONSE_COMPLETE, usage=None)

    return CompletionsResult(stream=chunks())


def _all_data_uris(images) -> bool:
    return bool(images) and all(i.startswith("data:") for i in images)
