"""Model discovery for catalog-bearing providers.

Queries the provider's model catalog, keeps vision-capable entries and
degrades to a fixed fallback catalog on any failure. Discovery never fails
observably: the caller always receives a non-empty list.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import httpx

from src.core.config import get_settings
from src.utils.metrics import safe_inc, vision_model_discovery_total

from .base import ProviderConfig, VisionAdapter, VisionModel
from .factory import get_adapter

logger = logging.getLogger(__name__)

# Case-sensitive name heuristics; best effort, not a capability flag
VISION_MODEL_MARKERS = ("VL", "vision", "Vision", "Qwen", "glm", "GLM")

FALLBACK_MODELS: List[VisionModel] = [
    VisionModel(id="Qwen/Qwen2-VL-72B-Instruct", display_name="Qwen2-VL-72B-Instruct"),
    VisionModel(id="Qwen/Qwen-VL-Chat", display_name="Qwen-VL-Chat"),
    VisionModel(id="THUDM/glm-4v-9b", display_name="GLM-4V-9B"),
    VisionModel(id="Qwen/QwQ-32B", display_name="QwQ-32B"),
    VisionModel(id="Qwen/Qwen3-72B-Instruct", display_name="Qwen3-72B-Instruct"),
]


def is_vision_model(model_id: str) -> bool:
    return any(marker in model_id for marker in VISION_MODEL_MARKERS)


def filter_vision_models(catalog: Any) -> List[VisionModel]:
    """
    Filter a raw ``{"data": [{"id": ...}, ...]}`` catalog to vision models.

    Raises:
        ValueError: If the catalog does not have the expected shape
    """
    if not isinstance(catalog, dict) or not isinstance(catalog.get("data"), list):
        raise ValueError("catalog body has no 'data' list")

    models: List[VisionModel] = []
    for entry in catalog["data"]:
        if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
            continue
        model_id = entry["id"]
        if is_vision_model(model_id):
            name = entry.get("name")
            display = name if isinstance(name, str) and name else model_id
            models.append(VisionModel(id=model_id, display_name=display))
    return models


def fallback_models() -> List[VisionModel]:
    return [model.model_copy() for model in FALLBACK_MODELS]


def resolve_selection(
    models: Sequence[VisionModel], previous_selection_id: Optional[str]
) -> Optional[str]:
    """Keep the previous selection only if it is still in the catalog."""
    if previous_selection_id and previous_selection_id in {m.id for m in models}:
        return previous_selection_id
    return None


def choose_model(
    models: Sequence[VisionModel],
    previous_selection_id: Optional[str] = None,
    default_id: Optional[str] = None,
) -> str:
    """Previous selection if still listed, else the first catalog entry, else ``default_id``."""
    selected = resolve_selection(models, previous_selection_id)
    if selected:
        return selected
    if models:
        return models[0].id
    return default_id or get_settings().VISION_SILICONFLOW_DEFAULT_MODEL


class ModelDiscoveryService:
    """
    Lists vision-capable models for a provider.

    Usage:
        service = ModelDiscoveryService()
        models = await service.list_vision_models(config)
        selected = resolve_selection(models, previous_id)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.timeout_seconds = timeout_seconds or get_settings().VISION_DISCOVERY_TIMEOUT_SECONDS
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
            self._owns_client = True
        return self._client

    async def list_vision_models(self, config: ProviderConfig) -> List[VisionModel]:
        """
        Query the catalog and return vision models, never an empty list.

        Providers without a catalog get their configured default model.
        """
        adapter = get_adapter(config.provider_id, strict=False)
        provider = adapter.provider_id.value

        if not adapter.supports_catalog:
            safe_inc(vision_model_discovery_total, provider=provider, outcome="static")
            model_id = adapter.default_model()
            return [VisionModel(id=model_id, display_name=model_id)]

        if not config.has_credential:
            return self._fallback(provider, "missing_credential")
        if not config.credential_is_header_safe:
            return self._fallback(provider, "invalid_credential")

        try:
            models = await self._fetch_catalog(adapter, config)
        except httpx.HTTPStatusError as e:
            return self._fallback(provider, "http_status", status_code=e.response.status_code)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return self._fallback(provider, "transport", detail=str(e))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            return self._fallback(provider, "malformed", detail=str(e))

        if not models:
            return self._fallback(provider, "empty_catalog")

        safe_inc(vision_model_discovery_total, provider=provider, outcome="catalog")
        logger.info(
            "Model catalog loaded",
            extra={"provider": provider, "catalog_size": len(models)},
        )
        return models

    async def _fetch_catalog(
        self, adapter: VisionAdapter, config: ProviderConfig
    ) -> List[VisionModel]:
        wire = adapter.catalog_request(config)
        client = await self._get_client()
        response = await client.request(wire.method, wire.url, headers=wire.headers)
        response.raise_for_status()
        return filter_vision_models(response.json())

    def _fallback(
        self,
        provider: str,
        reason: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> List[VisionModel]:
        safe_inc(vision_model_discovery_total, provider=provider, outcome="fallback")
        logger.info(
            f"Model discovery degraded to fallback catalog ({reason})"
            + (f": {detail}" if detail else ""),
            extra={"provider": provider, "error_code": reason, "status_code": status_code},
        )
        return fallback_models()

    async def close(self) -> None:
        """Close HTTP client if this service created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
