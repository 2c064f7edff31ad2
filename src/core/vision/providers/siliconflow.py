"""SiliconFlow Vision adapter.

OpenAI-compatible chat completions with user-selectable models and a
``GET /models`` catalog.

API Documentation: https://docs.siliconflow.cn/
"""

from __future__ import annotations

from typing import Any, Dict

from src.core.config import get_settings

from ..base import ProviderConfig, ProviderId, WireRequest
from .openai import OpenAIVisionAdapter


class SiliconFlowVisionAdapter(OpenAIVisionAdapter):
    provider_id = ProviderId.SILICONFLOW
    display_name = "SiliconFlow"
    supports_model_selection = True
    supports_catalog = True

    max_tokens = 4096
    temperature = 0.7
    top_p = 0.7

    def default_base_url(self) -> str:
        return get_settings().VISION_SILICONFLOW_BASE_URL

    def default_model(self) -> str:
        return get_settings().VISION_SILICONFLOW_DEFAULT_MODEL

    def sampling_params(self) -> Dict[str, Any]:
        return {
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "stream": False,
        }

    def catalog_request(self, config: ProviderConfig) -> WireRequest:
        return WireRequest(
            method="GET",
            url=f"{self.base_url(config)}/models",
            headers={"Authorization": f"Bearer {config.credential.get_secret_value()}"},
        )
