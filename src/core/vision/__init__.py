"""Vision module: image-to-LaTeX recognition across remote multimodal providers.

Provides provider adapters, model discovery and the recognition orchestrator.
"""

from .base import (
    LATEX_PROMPT,
    ProviderConfig,
    ProviderId,
    RecognitionError,
    RecognitionFailure,
    RecognitionRequest,
    RecognitionResult,
    VisionAdapter,
    VisionError,
    VisionModel,
    WireRequest,
)
from .discovery import (
    FALLBACK_MODELS,
    ModelDiscoveryService,
    choose_model,
    resolve_selection,
)
from .factory import ADAPTER_REGISTRY, get_adapter, get_available_providers
from .manager import RecognitionOrchestrator, SessionGuard

__all__ = [
    # Models
    "LATEX_PROMPT",
    "ProviderConfig",
    "ProviderId",
    "RecognitionRequest",
    "RecognitionResult",
    "RecognitionError",
    "VisionModel",
    "WireRequest",
    # Base classes
    "VisionAdapter",
    # Factory
    "ADAPTER_REGISTRY",
    "get_adapter",
    "get_available_providers",
    # Discovery
    "FALLBACK_MODELS",
    "ModelDiscoveryService",
    "choose_model",
    "resolve_selection",
    # Orchestrator
    "RecognitionOrchestrator",
    "SessionGuard",
    # Exceptions
    "VisionError",
    "RecognitionFailure",
]
