from typing import Any, List

import httpx
from openai import AsyncOpenAI

from .base import format_api_host
from .openai import OpenAIAPIClient
from ..logging import get_logger
from ..types import SdkModel

logger = get_logger(__name__)


class OVMSClient(OpenAIAPIClient):
    """
    Client for a local OpenVINO Model Server.

    Completions use the OpenAI-compatible endpoint; the model list comes
    from the server's ``/v1/config`` document, which reports the load state
    of every configured model.
    """

    DEFAULT_API_HOST = "http://localhost:8000/v3"

    def _create_sdk(self, api_key: str) -> Any:
        # OVMS serves its OpenAI-compatible API under /v3; it accepts any key
        return AsyncOpenAI(api_key=api_key or "ovms", base_url=format_api_host(self.get_base_url(), "v3"))

    def _config_url(self) -> str:
        base = format_api_host(self.get_base_url(), "v3").rstrip("/")
        if base.endswith("/v3"):
            base = base[: -len("/v3")]
        return f"{base}/v1/config"

    async def list_models(self) -> List[SdkModel]:
        """
        Returns:
            List[SdkModel]: Models with at least one ``AVAILABLE`` version;
            empty if the server cannot be reached.
        """
        try:
            async with httpx.AsyncClient(timeout=10.0) as http_client:
                response = await http_client.get(self._config_url())
                response.raise_for_status()
                config = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error listing OVMS models: %s", e)
            return []

        models = []
        for model_name, model_info in config.items():
            statuses = (model_info or {}).get("model_version_status") or []
            if any((status or {}).get("state") == "AVAILABLE" for status in statuses):
                models.append(SdkModel(id=model_name, owned_by="ovms"))
        return models
