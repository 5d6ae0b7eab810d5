"""Adapter plugin used by the universal loader tests."""
from aicore.clients.sdk.base import GenerateTextResult, LanguageModel, SdkProvider, StreamTextResult

created = []

not_a_function = "create_fake"


class FakeLanguageModel(LanguageModel):
    def __init__(self, model_id, parts):
        super().__init__(model_id)
        self.parts = parts
        self.requests = []

    async def stream_text(self, messages, tools=None):
        self.requests.append(messages)

        async def parts():
            for part in self.parts:
                yield part

        return StreamTextResult(parts())

    async def generate_text(self, messages, tools=None):
        self.requests.append(messages)
        text = "".join(p["text_delta"] for p in self.parts if p["type"] == "text-delta")
        return GenerateTextResult(text=text, finish_reason="stop")


class FakeSdkProvider(SdkProvider):
    def __init__(self, options):
        self.options = options
        self.models = {}

    def chat(self, model_id):
        model = FakeLanguageModel(model_id, [
            {"type": "text-delta", "text_delta": "Hel"},
            {"type": "text-delta", "text_delta": "lo"},
            {"type": "finish", "finish_reason": "stop", "usage": {"input_tokens": 1, "output_tokens": 2}},
        ])
        self.models[model_id] = model
        return model


class NoChatProvider:
    pass


def create_fake(options):
    provider = FakeSdkProvider(options)
    created.append(provider)
    return provider


def create_without_chat(options):
    return NoChatProvider()


def create_broken(options):
    raise RuntimeError("bad credentials")
