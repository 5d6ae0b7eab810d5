from dataclasses import replace
from typing import Any, Dict, List, Optional

from .anthropic import AnthropicAPIClient
from .base import BaseApiClient, ChunkTransformer
from .gemini import GeminiAPIClient
from .openai import OpenAIAPIClient
from .openai_response import OpenAIResponseAPIClient
from ..errors import ClientResolutionError
from ..logging import get_logger
from ..models import is_claude_model, is_embedding_model, is_gemini_model, is_openai_llm_model
from ..types import (
    CompletionsParams, CompletionsResult, GenerateImageParams, Model, Provider,
    RequestOptions, SdkModel,
)

logger = get_logger(__name__)

AIHUBMIX_HOST = "https://aihubmix.com"
AIHUBMIX_APP_CODE = "MLTG2087"


class AihubmixAPIClient(BaseApiClient):
    """
    Dispatcher for the Aihubmix broker.

    Aihubmix proxies several vendors behind one key; each model is served
    by the client that speaks its native wire format. The dispatcher never
    calls a vendor itself.
    """

    DEFAULT_API_HOST = AIHUBMIX_HOST

    def __init__(self, provider: Provider):
        super().__init__(provider)
        host = (provider.api_host or AIHUBMIX_HOST).rstrip("/")
        headers = tuple(provider.headers) + (("APP-Code", AIHUBMIX_APP_CODE),)

        self.clients: Dict[str, BaseApiClient] = {
            "claude": AnthropicAPIClient(replace(provider, type="anthropic", api_host=host, headers=headers)),
            "gemini": GeminiAPIClient(replace(provider, type="gemini", api_host=f"{host}/gemini", headers=headers)),
            "openai": OpenAIResponseAPIClient(replace(provider, type="openai-response", api_host=host, headers=headers)),
            "default": OpenAIAPIClient(replace(provider, type="openai", api_host=host, headers=headers)),
        }

    @staticmethod
    def client_key_for_model(model: Model) -> str:
        model_id = model.id.lower()
        if is_claude_model(model):
            return "claude"
        if (
            is_gemini_model(model)
            and not model_id.endswith("-nothink")
            and not model_id.endswith("-search")
            and not is_embedding_model(model)
        ):
            return "gemini"
        if is_openai_llm_model(model):
            return "openai"
        return "default"

    def get_client_for_model(self, model: Model) -> BaseApiClient:
        key = self.client_key_for_model(model)
        client = self.clients.get(key)
        if client is None:
            raise ClientResolutionError(
                f"Aihubmix has no '{key}' client for model '{model.id}'", model_id=model.id
            )
        logger.debug("Aihubmix routes model %s to %s", model.id, type(client).__name__)
        return client

    def _client_for_params(self, params: CompletionsParams) -> BaseApiClient:
        model = params.assistant.model
        if model is None:
            raise ClientResolutionError("Aihubmix needs a model to pick a client")
        # The sub-client may itself select a variant per model
        client = self.get_client_for_model(model)
        return client.get_client_for_model(model)

    async def create_completions(
        self,
        params: CompletionsParams,
        options: Optional[RequestOptions] = None,
    ) -> CompletionsResult:
        return await self._client_for_params(params).create_completions(params, options)

    def get_response_chunk_transformer(self, params: CompletionsParams) -> ChunkTransformer:
        return self._client_for_params(params).get_response_chunk_transformer(params)

    async def list_models(self) -> List[SdkModel]:
        return await self.clients["default"].list_models()

    async def get_embedding_dimensions(self, model: Model) -> int:
        return await self.get_client_for_model(model).get_embedding_dimensions(model)

    async def generate_image(self, params: GenerateImageParams) -> List[str]:
        model = Model(id=params.model, provider=self.provider.id)
        return await self.get_client_for_model(model).generate_image(params)

    def get_sdk_instance(self) -> Any:
        return self.clients["default"].get_sdk_instance()
