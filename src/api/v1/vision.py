"""Vision API endpoints.

Provides:
- POST /api/v1/vision/recognize - Image to LaTeX through the selected provider
- POST /api/v1/vision/models - Vision model catalog for a provider
- GET /api/v1/vision/providers - Registered providers and capabilities
"""

from __future__ import annotations

import base64
import binascii
import time
from typing import List, Optional

from fastapi import APIRouter, Header
from pydantic import BaseModel, Field, SecretStr

from src.core.errors import ErrorKind
from src.core.vision import (
    ModelDiscoveryService,
    ProviderConfig,
    RecognitionError,
    RecognitionOrchestrator,
    VisionModel,
    choose_model,
    get_adapter,
    get_available_providers,
)

router = APIRouter(tags=["vision"])


# ========== Request/Response Models ==========


class RecognizeRequest(BaseModel):
    """Request model for recognition. The credential is used for this call only."""

    image_base64: str = Field(..., description="Base64-encoded image data")
    mime_type: Optional[str] = Field(None, description="Image MIME type (default image/jpeg)")
    provider: str = Field("openai", description="openai|anthropic|siliconflow")
    model: Optional[str] = Field(None, description="Model id (SiliconFlow only)")
    credential: SecretStr = Field(SecretStr(""), description="Provider API key")
    endpoint_base: Optional[str] = Field(None, description="Provider base URL override")

    model_config = {
        "json_schema_extra": {
            "example": {
                "image_base64": "iVBORw0KGgoAAAANS...",
                "mime_type": "image/png",
                "provider": "siliconflow",
                "model": "Qwen/Qwen2-VL-72B-Instruct",
                "credential": "sk-...",
            }
        }
    }


class RecognizeResponse(BaseModel):
    """Response model for recognition."""

    success: bool = Field(..., description="Whether recognition succeeded")
    text: Optional[str] = Field(None, description="LaTeX source")
    provider: str = Field(..., description="Provider that served the request")
    model: Optional[str] = Field(None, description="Model id sent to the provider")
    processing_time_ms: float = Field(..., description="Total processing time in milliseconds")

    error: Optional[str] = Field(None, description="Error message if success=False")
    code: Optional[ErrorKind] = Field(None, description="Error kind if success=False")
    provider_status_code: Optional[int] = Field(None, description="Provider HTTP status")


class ModelsRequest(BaseModel):
    provider: str = Field("siliconflow", description="Provider to list models for")
    credential: SecretStr = Field(SecretStr(""), description="Provider API key")
    endpoint_base: Optional[str] = None
    previous_model: Optional[str] = Field(None, description="Selection to keep if still listed")


class ModelsResponse(BaseModel):
    provider: str
    models: List[VisionModel]
    selected: str


# ========== Global Instances (Singleton Pattern) ==========

_orchestrator: Optional[RecognitionOrchestrator] = None
_discovery: Optional[ModelDiscoveryService] = None


def get_orchestrator() -> RecognitionOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = RecognitionOrchestrator()
    return _orchestrator


def get_discovery_service() -> ModelDiscoveryService:
    global _discovery
    if _discovery is None:
        _discovery = ModelDiscoveryService()
    return _discovery


async def shutdown_clients() -> None:
    """Close shared HTTP clients (called from the app lifespan)."""
    global _orchestrator, _discovery
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None
    if _discovery is not None:
        await _discovery.close()
        _discovery = None


# ========== Endpoints ==========


@router.post("/recognize", response_model=RecognizeResponse)
async def recognize(
    request: RecognizeRequest,
    x_session_id: Optional[str] = Header(None),
) -> RecognizeResponse:
    """
    Convert an image to LaTeX.

    Always answers HTTP 200; failures carry ``success=false`` and an error ``code``.
    Requests sharing an ``X-Session-Id`` header are processed one at a time.
    """
    start_time = time.time()
    try:
        image_bytes = base64.b64decode(request.image_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        return RecognizeResponse(
            success=False,
            provider=request.provider,
            processing_time_ms=(time.time() - start_time) * 1000,
            error=f"Invalid base64 image data: {e}",
            code=ErrorKind.INVALID_INPUT,
        )

    config = ProviderConfig(
        provider_id=request.provider,
        credential=request.credential,
        endpoint_base=request.endpoint_base,
        model_id=request.model,
    )
    outcome = await get_orchestrator().recognize(
        image_bytes, request.mime_type, config, session_id=x_session_id
    )
    processing_time_ms = (time.time() - start_time) * 1000

    if isinstance(outcome, RecognitionError):
        return RecognizeResponse(
            success=False,
            provider=request.provider,
            processing_time_ms=processing_time_ms,
            error=outcome.message,
            code=outcome.kind,
            provider_status_code=outcome.provider_status_code,
        )
    return RecognizeResponse(
        success=True,
        text=outcome.text,
        provider=outcome.provider_id,
        model=outcome.model,
        processing_time_ms=processing_time_ms,
    )


@router.post("/models", response_model=ModelsResponse)
async def list_models(request: ModelsRequest) -> ModelsResponse:
    """List vision models for a provider; degrades to the fallback catalog, never fails."""
    config = ProviderConfig(
        provider_id=request.provider,
        credential=request.credential,
        endpoint_base=request.endpoint_base,
    )
    models = await get_discovery_service().list_vision_models(config)
    adapter = get_adapter(request.provider, strict=False)
    return ModelsResponse(
        provider=adapter.provider_id.value,
        models=models,
        selected=choose_model(models, request.previous_model, adapter.default_model()),
    )


@router.get("/providers")
async def list_providers():
    """Registered providers with their model-selection capabilities."""
    return {"providers": get_available_providers()}


@router.get("/health")
async def health_check():
    """
    Health check endpoint for vision service.

    Returns:
        Service status and in-flight session count
    """
    orchestrator = get_orchestrator()
    return {
        "status": "healthy",
        "providers": [p["id"] for p in get_available_providers()],
        "active_sessions": orchestrator.sessions.active_sessions(),
    }
