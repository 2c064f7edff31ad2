"""Vision module base classes and models.

Provides:
- Pydantic models for recognition requests, configs, results and errors
- VisionAdapter abstract base class (one strategy per remote provider)
- Shared error normalization used by every adapter
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field, SecretStr, field_validator

from src.core.errors import ErrorKind

# Sent byte-for-byte to every provider
LATEX_PROMPT = (
    "Analyze this image and convert its content to LaTeX. "
    "Return only the LaTeX code, with no additional explanation. "
    "If the image contains mathematical formulas, use the appropriate LaTeX math environments.\n\n"
    "Output requirements:\n"
    "- Use appropriate LaTeX environments for formulas (such as equation, align, gather)\n"
    "- Preserve the original formatting and structure\n"
    "- Use correct LaTeX syntax"
)

# Wire label used only when the host sends no MIME type
DEFAULT_MIME_TYPE = "image/jpeg"


class ProviderId(str, Enum):
    """Supported remote vision providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    SILICONFLOW = "siliconflow"


# ========== Request/Response Models ==========


class ProviderConfig(BaseModel):
    """Per-call provider selection supplied by the host. Never persisted."""

    provider_id: str = Field(ProviderId.OPENAI.value, description="openai|anthropic|siliconflow")
    credential: SecretStr = Field(SecretStr(""), description="Provider API key")
    endpoint_base: Optional[str] = Field(None, description="Override for the provider base URL")
    model_id: Optional[str] = Field(None, description="Model id (SiliconFlow only)")

    model_config = {"frozen": True, "protected_namespaces": ()}

    @field_validator("credential", mode="before")
    @classmethod
    def _strip_credential(cls, v: Any) -> Any:
        # Pasted keys often carry surrounding whitespace or a trailing newline
        if isinstance(v, SecretStr):
            return SecretStr(v.get_secret_value().strip())
        if isinstance(v, str):
            return v.strip()
        return v

    @property
    def has_credential(self) -> bool:
        return bool(self.credential.get_secret_value())

    @property
    def credential_is_header_safe(self) -> bool:
        """HTTP header values must be ASCII."""
        return self.credential.get_secret_value().isascii()

    def redact(self, text: str) -> str:
        secret = self.credential.get_secret_value()
        return text.replace(secret, "***") if secret else text


class RecognitionRequest(BaseModel):
    """One recognition attempt, carrying the canonical base64 payload."""

    image_bytes: bytes = Field(..., repr=False)
    image_base64: str = Field(..., repr=False)
    mime_type: str = DEFAULT_MIME_TYPE
    prompt_text: str = LATEX_PROMPT
    provider_id: ProviderId
    model_id: Optional[str] = None

    model_config = {"frozen": True, "protected_namespaces": ()}

    @classmethod
    def build(
        cls,
        image_bytes: bytes,
        mime_type: str,
        provider_id: ProviderId,
        model_id: Optional[str] = None,
    ) -> "RecognitionRequest":
        """Encode the original bytes as-is; no resizing or recompression."""
        return cls(
            image_bytes=image_bytes,
            image_base64=base64.b64encode(image_bytes).decode("ascii"),
            mime_type=mime_type,
            provider_id=provider_id,
            model_id=model_id,
        )

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.image_base64}"


class WireRequest(BaseModel):
    """Provider-specific HTTP request ready to be sent."""

    method: str = "POST"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict, repr=False)
    body: Optional[Dict[str, Any]] = None


class VisionModel(BaseModel):
    """Selectable model from a provider catalog."""

    id: str
    display_name: str


class RecognitionResult(BaseModel):
    """Terminal success value: LaTeX source from the provider."""

    text: str
    provider_id: str
    model: Optional[str] = None


class RecognitionError(BaseModel):
    """Terminal failure value with a message suitable for display."""

    kind: ErrorKind
    message: str
    provider_status_code: Optional[int] = None


# ========== Exceptions ==========


class VisionError(Exception):
    """Base exception for vision module."""

    pass


class RecognitionFailure(VisionError):
    """Raised inside the core; converted to RecognitionError at the orchestrator."""

    def __init__(self, kind: ErrorKind, message: str, status_code: Optional[int] = None):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{kind.value}] {message}")

    def to_error(self) -> RecognitionError:
        return RecognitionError(
            kind=self.kind, message=self.message, provider_status_code=self.status_code
        )


# ========== Helpers ==========


def dig(body: Any, *path: Any) -> Any:
    """Walk dict keys / list indexes, raising MALFORMED_RESPONSE on any miss."""
    node = body
    for step in path:
        try:
            node = node[step]
        except (KeyError, IndexError, TypeError):
            where = ".".join(str(p) for p in path)
            raise RecognitionFailure(
                ErrorKind.MALFORMED_RESPONSE, f"Response is missing expected field '{where}'"
            )
    return node


def extract_error_message(body: Any) -> Optional[str]:
    """Return ``error.message`` from a provider error body, if present."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"] or None
    return None


def status_text(status: int) -> str:
    try:
        return httpx.codes(status).phrase
    except ValueError:
        return "Unknown Status"


# ========== Adapter Abstract Base Class ==========


class VisionAdapter(ABC):
    """Stateless translator between the recognition contract and one provider's wire format."""

    provider_id: ProviderId
    display_name: str
    supports_model_selection: bool = False
    supports_catalog: bool = False

    @abstractmethod
    def default_base_url(self) -> str:
        """Provider base URL used when the config carries no override."""
        pass

    @abstractmethod
    def default_model(self) -> str:
        pass

    @abstractmethod
    def build_request(self, req: RecognitionRequest, config: ProviderConfig) -> WireRequest:
        """
        Build the provider's JSON body and headers.

        Args:
            req: Normalized recognition request with base64 payload
            config: Provider selection including the credential

        Returns:
            WireRequest to send
        """
        pass

    @abstractmethod
    def parse_success(self, body: Any) -> str:
        """
        Extract generated text from a 2xx response body.

        Raises:
            RecognitionFailure: MALFORMED_RESPONSE when the expected path is absent
        """
        pass

    def parse_error(self, http_status: int, body: Any) -> RecognitionError:
        """Map a non-2xx response to PROVIDER_REJECTED with the best available message."""
        detail = extract_error_message(body) or status_text(http_status)
        return RecognitionError(
            kind=ErrorKind.PROVIDER_REJECTED,
            message=f"{self.display_name} API request failed: {http_status} - {detail}",
            provider_status_code=http_status,
        )

    def catalog_request(self, config: ProviderConfig) -> WireRequest:
        """Build the model catalog query for catalog-bearing providers."""
        raise VisionError(f"{self.display_name} does not expose a model catalog")

    def base_url(self, config: ProviderConfig) -> str:
        return (config.endpoint_base or self.default_base_url()).rstrip("/")

    def resolve_model(self, req: RecognitionRequest) -> str:
        """Honour the requested model only where the provider supports selection."""
        if self.supports_model_selection and req.model_id:
            return req.model_id
        return self.default_model()
