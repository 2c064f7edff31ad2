"""Anthropic Vision adapter.

Messages API with a base64 ``image`` content block.

API Documentation: https://docs.anthropic.com/en/docs/vision
"""

from __future__ import annotations

from typing import Any

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

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicVisionAdapter(VisionAdapter):
    """Claude adapter: distinct key header plus an API version header."""

    provider_id = ProviderId.ANTHROPIC
    display_name = "Anthropic"

    max_tokens = 4000

    def default_base_url(self) -> str:
        return get_settings().VISION_ANTHROPIC_BASE_URL

    def default_model(self) -> str:
        return get_settings().VISION_ANTHROPIC_MODEL

    def build_request(self, req: RecognitionRequest, config: ProviderConfig) -> WireRequest:
        # Claude's message format
        payload = {
            "model": self.resolve_model(req),
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": req.prompt_text},
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": req.mime_type,
                                "data": req.image_base64,
                            },
                        },
                    ],
                }
            ],
        }
        return WireRequest(
            url=f"{self.base_url(config)}/v1/messages",
            headers={
                "x-api-key": config.credential.get_secret_value(),
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            body=payload,
        )

    def parse_success(self, body: Any) -> str:
        text = dig(body, "content", 0, "text")
        if not isinstance(text, str):
            raise RecognitionFailure(
                ErrorKind.MALFORMED_RESPONSE, "Anthropic returned a non-text content block"
            )
        return text
