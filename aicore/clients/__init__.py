from .aihubmix import AihubmixAPIClient
from .anthropic import AnthropicAPIClient
from .base import BaseApiClient, ChunkTransformer, ClientCapabilities
from .factory import ApiClientFactory, SdkClientCache
from .gemini import GeminiAPIClient
from .openai import OpenAIAPIClient
from .openai_response import OpenAIResponseAPIClient
from .ovms import OVMSClient
from .registry import PROVIDER_REGISTRY, ProviderConfig, ProviderRegistry, register_provider
from .universal import AiCoreRequest, UniversalAiSdkClient

__all__ = [
    "AihubmixAPIClient",
    "AiCoreRequest",
    "AnthropicAPIClient",
    "ApiClientFactory",
    "BaseApiClient",
    "ChunkTransformer",
    "ClientCapabilities",
    "GeminiAPIClient",
    "OpenAIAPIClient",
    "OpenAIResponseAPIClient",
    "OVMSClient",
    "PROVIDER_REGISTRY",
    "ProviderConfig",
    "ProviderRegistry",
    "SdkClientCache",
    "UniversalAiSdkClient",
    "register_provider",
]
