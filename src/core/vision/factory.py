"""Vision Adapter Factory.

Strategy table keyed by provider id. New providers are added by registering
an adapter here, not by extending a conditional chain.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from src.core.config import get_settings
from src.core.errors import ErrorKind

from .base import ProviderId, RecognitionFailure, VisionAdapter
from .providers import (
    AnthropicVisionAdapter,
    OpenAIVisionAdapter,
    SiliconFlowVisionAdapter,
)

logger = logging.getLogger(__name__)

# Adapters are stateless, so one shared instance per provider
ADAPTER_REGISTRY: Dict[ProviderId, VisionAdapter] = {
    ProviderId.OPENAI: OpenAIVisionAdapter(),
    ProviderId.ANTHROPIC: AnthropicVisionAdapter(),
    ProviderId.SILICONFLOW: SiliconFlowVisionAdapter(),
}

DEFAULT_PROVIDER = ProviderId.OPENAI


def lookup_adapter(provider_id: Optional[str]) -> Optional[VisionAdapter]:
    """Return the registered adapter for ``provider_id`` or None."""
    if not provider_id:
        return None
    try:
        return ADAPTER_REGISTRY[ProviderId(provider_id.strip().lower())]
    except ValueError:
        return None


def get_adapter(provider_id: Optional[str], strict: Optional[bool] = None) -> VisionAdapter:
    """
    Select the adapter for a provider id.

    Unknown ids dispatch to the OpenAI adapter so the host keeps working.
    With ``strict`` (default: VISION_STRICT_PROVIDER) they are rejected instead.

    Raises:
        RecognitionFailure: INVALID_INPUT for an unknown id in strict mode
    """
    adapter = lookup_adapter(provider_id)
    if adapter is not None:
        return adapter

    if strict is None:
        strict = get_settings().VISION_STRICT_PROVIDER
    if strict:
        raise RecognitionFailure(
            ErrorKind.INVALID_INPUT,
            f"Unknown provider '{provider_id}'. Available: {', '.join(p.value for p in ProviderId)}",
        )

    logger.warning(
        "Unknown provider id, falling back to default adapter",
        extra={"provider": provider_id, "error_code": "unknown_provider"},
    )
    return ADAPTER_REGISTRY[DEFAULT_PROVIDER]


def get_available_providers() -> List[Dict[str, Any]]:
    """
    Describe registered providers for the host's provider picker.

    Returns:
        One entry per provider with its capability flags and default model
    """
    return [
        {
            "id": adapter.provider_id.value,
            "display_name": adapter.display_name,
            "supports_model_selection": adapter.supports_model_selection,
            "supports_catalog": adapter.supports_catalog,
            "default_model": adapter.default_model(),
        }
        for adapter in ADAPTER_REGISTRY.values()
    ]
