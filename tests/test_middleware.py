import pytest

from aicore.middleware import (
    CompletionsMiddlewareBuilder, DEFAULT_COMPLETIONS_MIDDLEWARES, MIDDLEWARE_REGISTRY, NamedMiddleware,
    apply_completions_middlewares,
)
from aicore.middleware.common.final_chunk_consumer import final_chunk_consumer_middleware, join_round_texts
from aicore.middleware.core.web_search import link_citations
from aicore.types import ChunkType, CompletionsResult, make_chunk

from conftest import FakeClient, make_params


def tracing(name, trace):
    async def middleware(ctx, params, call_next):
        trace.append(f"{name}:before")
        result = await call_next(ctx, params)
        trace.append(f"{name}:after")
        return result
    return NamedMiddleware(name, middleware)


class TestBuilder:

    def test_with_defaults_order(self):
        builder = CompletionsMiddlewareBuilder.with_defaults()
        assert builder.names() == [
            "ErrorHandlerMiddleware",
            "FinalChunkConsumerMiddleware",
            "AbortHandlerMiddleware",
            "McpToolChunkMiddleware",
            "TextChunkMiddleware",
            "WebSearchMiddleware",
            "ToolUseExtractionMiddleware",
            "ThinkingTagExtractionMiddleware",
            "ThinkChunkMiddleware",
            "ResponseTransformMiddleware",
            "StreamAdapterMiddleware",
            "RawStreamListenerMiddleware",
        ]
        assert len(builder) == 12

    def test_remove_is_idempotent(self):
        builder = CompletionsMiddlewareBuilder.with_defaults()
        builder.remove("WebSearchMiddleware")
        builder.remove("WebSearchMiddleware")
        builder.remove("NotAMiddleware")
        assert not builder.has("WebSearchMiddleware")
        assert len(builder) == 11

    def test_duplicate_add_rejected(self):
        trace = []
        builder = CompletionsMiddlewareBuilder().add(tracing("A", trace))
        with pytest.raises(ValueError):
            builder.add(tracing("A", trace))

    def test_built_chain_is_immutable_snapshot(self):
        trace = []
        builder = CompletionsMiddlewareBuilder().add(tracing("A", trace))
        chain = builder.build()
        builder.add(tracing("B", trace))
        builder.clear()

        assert isinstance(chain, tuple)
        assert [mw.name for mw in chain] == ["A"]

    def test_insert_and_replace(self):
        trace = []
        builder = CompletionsMiddlewareBuilder([tracing("A", trace), tracing("C", trace)])
        builder.insert_after("A", tracing("B", trace))
        builder.insert_before("A", tracing("Z", trace))
        assert builder.names() == ["Z", "A", "B", "C"]

        replacement = tracing("B2", trace)
        builder.replace("B", replacement)
        assert builder.names() == ["Z", "A", "B2", "C"]

        with pytest.raises(KeyError):
            builder.insert_after("missing", tracing("X", trace))

    def test_registry_covers_every_middleware(self):
        for mw in DEFAULT_COMPLETIONS_MIDDLEWARES:
            assert MIDDLEWARE_REGISTRY[mw.name] is mw
        assert "ImageGenerationMiddleware" in MIDDLEWARE_REGISTRY


class TestComposer:

    @pytest.mark.asyncio
    async def test_empty_chain_is_the_raw_method(self):
        client = FakeClient()
        wrapped = apply_completions_middlewares(client, client.create_completions, ())
        assert wrapped == client.create_completions

        params = make_params()
        sentinel = object()
        await wrapped(params, sentinel)
        assert client.calls == [params]
        assert client.options == [sentinel]

    @pytest.mark.asyncio
    async def test_onion_order(self):
        trace = []
        client = FakeClient()

        async def original(params, options=None):
            trace.append("original")
            return CompletionsResult(text="done")

        wrapped = apply_completions_middlewares(client, original, (tracing("A", trace), tracing("B", trace)))
        result = await wrapped(make_params())

        assert result.text == "done"
        assert trace == ["A:before", "B:before", "original", "B:after", "A:after"]

    @pytest.mark.asyncio
    async def test_context_carries_client_and_options(self):
        seen = {}
        client = FakeClient()

        async def inspect(ctx, params, call_next):
            seen["client"] = ctx.api_client
            seen["options"] = ctx.options
            seen["original"] = ctx.original_params
            return await call_next(ctx, params)

        params = make_params()
        wrapped = apply_completions_middlewares(client, client.create_completions, (NamedMiddleware("I", inspect),))
        await wrapped(params, "opts")

        assert seen == {"client": client, "options": "opts", "original": params}
        assert client.options == ["opts"]


class TestCitations:

    def test_link_citations(self):
        results = [{"url": "https://a.example", "title": "A"}, {"url": "https://b.example", "title": "B"}]
        text = "Paris is big [1] and old [2]; see also [3] and [1](https://kept.example)."
        linked = link_citations(text, results)
        assert "[1](https://a.example)" in linked
        assert "[2](https://b.example)" in linked
        assert "[3]" in linked and "[3](" not in linked
        assert "[1](https://kept.example)" in linked

    def test_no_results_leaves_text(self):
        assert link_citations("a [1]", []) == "a [1]"


class TestFinalChunkConsumer:

    def test_single_round_text_is_untouched(self):
        assert join_round_texts([" Hello "]) == " Hello "
        assert join_round_texts([]) == ""

    def test_tool_rounds_are_separated(self):
        assert join_round_texts(["Let me check.", "", "It is 20°C."]) == "Let me check.\n\nIt is 20°C."

    @pytest.mark.asyncio
    async def test_consumer_joins_text_complete_per_round(self):
        client = FakeClient()

        async def two_rounds(params, options=None):
            async def stream():
                yield make_chunk(ChunkType.TEXT_COMPLETE, text="Let me check.")
                yield make_chunk(ChunkType.BLOCK_COMPLETE, usage={"input_tokens": 1, "output_tokens": 2})
                yield make_chunk(ChunkType.TEXT_COMPLETE, text="It is 20°C.")
                yield make_chunk(ChunkType.LLM_RESPONSE_COMPLETE, usage={"input_tokens": 3, "output_tokens": 4})
            return CompletionsResult(stream=stream())

        consumer = NamedMiddleware("FinalChunkConsumerMiddleware", final_chunk_consumer_middleware)
        result = await apply_completions_middlewares(client, two_rounds, (consumer,))(make_params())

        assert result.text == "Let me check.\n\nIt is 20°C."
        assert result.usage["input_tokens"] == 4
        assert result.usage["output_tokens"] == 6
