"""OpenAI Vision adapter.

Chat Completions API with an inline ``image_url`` data URI.

API Documentation: https://platform.openai.com/docs/guides/vision
"""

from __future__ import annotations

from typing import Any, Dict, List

from src.core.config import get_settings
from src.core.errors import ErrorKind

from ..base import (
    ProviderConfig,
    ProviderId,
    RecognitionFailure,
    RecognitionRequest,
    VisionAdapter,
    WireRequest,
    dig,
)


class OpenAIVisionAdapter(VisionAdapter):
    """
    OpenAI-style adapter.

    Also the base for OpenAI-compatible providers, which only change the
    sampling parameters and model selection.
    """

    provider_id = ProviderId.OPENAI
    display_name = "OpenAI"

    max_tokens = 4000
    temperature = 0.1

    def default_base_url(self) -> str:
        return get_settings().VISION_OPENAI_BASE_URL

    def default_model(self) -> str:
        return get_settings().VISION_OPENAI_MODEL

    def auth_headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.credential.get_secret_value()}",
            "Content-Type": "application/json",
        }

    def build_messages(self, req: RecognitionRequest) -> List[Dict[str, Any]]:
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": req.prompt_text},
                    {"type": "image_url", "image_url": {"url": req.data_uri}},
                ],
            }
        ]

    def sampling_params(self) -> Dict[str, Any]:
        return {"max_tokens": self.max_tokens, "temperature": self.temperature}

    def build_request(self, req: RecognitionRequest, config: ProviderConfig) -> WireRequest:
        payload: Dict[str, Any] = {
            "model": self.resolve_model(req),
            "messages": self.build_messages(req),
        }
        payload.update(self.sampling_params())
        return WireRequest(
            url=f"{self.base_url(config)}/chat/completions",
            headers=self.auth_headers(config),
            body=payload,
        )

    def parse_success(self, body: Any) -> str:
        content = dig(body, "choices", 0, "message", "content")
        if not isinstance(content, str):
            raise RecognitionFailure(
                ErrorKind.MALFORMED_RESPONSE,
                f"{self.display_name} returned non-text message content",
            )
        return content
