"""Recognition Orchestrator: image bytes in, LaTeX (or a normalized error) out.

Responsibilities:
- Validate input and credential centrally
- Encode the image once and dispatch to the provider adapter
- Issue exactly one HTTP call (no retries, no caching)
- Normalize every failure into a RecognitionError
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Union

import httpx

from src.core.config import get_settings
from src.core.errors import ErrorKind
from src.utils.metrics import (
    safe_inc,
    safe_observe,
    vision_image_size_bytes,
    vision_recognition_duration_seconds,
    vision_recognition_errors_total,
    vision_recognition_requests_total,
)

from .base import (
    DEFAULT_MIME_TYPE,
    ProviderConfig,
    RecognitionError,
    RecognitionFailure,
    RecognitionRequest,
    RecognitionResult,
    VisionAdapter,
)
from .factory import get_adapter

logger = logging.getLogger(__name__)

RecognitionOutcome = Union[RecognitionResult, RecognitionError]


class SessionGuard:
    """Per-session single-flight: calls sharing a session id run one at a time."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[session_id] -= 1
            if self._waiters[session_id] == 0:
                del self._waiters[session_id]
                del self._locks[session_id]

    def active_sessions(self) -> int:
        return len(self._locks)


class RecognitionOrchestrator:
    """
    Single entry point for image-to-LaTeX recognition.

    Workflow:
    1. Validate image bytes, MIME type and credential
    2. Base64-encode the original bytes
    3. Select adapter by provider id (unknown ids fall back to OpenAI)
    4. Send one request and parse the response through the adapter
    5. Return RecognitionResult or RecognitionError

    Concurrent calls race independently unless they share a ``session_id``.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            client: Optional shared AsyncClient (tests inject a MockTransport here)
            timeout_seconds: Request timeout (defaults to VISION_REQUEST_TIMEOUT_SECONDS)
        """
        self.timeout_seconds = timeout_seconds or get_settings().VISION_REQUEST_TIMEOUT_SECONDS
        self._client = client
        self._owns_client = client is None
        self.sessions = SessionGuard()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
            self._owns_client = True
        return self._client

    async def recognize(
        self,
        image_bytes: bytes,
        mime_type: Optional[str],
        config: ProviderConfig,
        *,
        session_id: Optional[str] = None,
    ) -> RecognitionOutcome:
        """
        Recognize an image and return LaTeX source.

        Args:
            image_bytes: Raw image bytes, sent as-is
            mime_type: Image MIME type (image/jpeg when not supplied)
            config: Provider, credential and optional model selection
            session_id: Serialize calls sharing this id

        Returns:
            RecognitionResult on success, RecognitionError otherwise. Never raises
            for provider, transport or parsing failures.
        """
        if session_id:
            async with self.sessions.hold(session_id):
                return await self._recognize(image_bytes, mime_type, config, session_id)
        return await self._recognize(image_bytes, mime_type, config, None)

    async def _recognize(
        self,
        image_bytes: bytes,
        mime_type: Optional[str],
        config: ProviderConfig,
        session_id: Optional[str],
    ) -> RecognitionOutcome:
        start_time = time.time()
        provider = config.provider_id
        try:
            self._validate(image_bytes, mime_type, config)
            adapter = get_adapter(config.provider_id)
            provider = adapter.provider_id.value
            safe_observe(vision_image_size_bytes, float(len(image_bytes)))

            request = RecognitionRequest.build(
                image_bytes=image_bytes,
                mime_type=(mime_type or DEFAULT_MIME_TYPE).strip().lower(),
                provider_id=adapter.provider_id,
                model_id=config.model_id,
            )
            model = adapter.resolve_model(request)
            text = await self._dispatch(adapter, request, config)
        except RecognitionFailure as e:
            return self._failed(e.to_error(), config, provider, start_time, session_id)

        latency_ms = (time.time() - start_time) * 1000
        safe_inc(vision_recognition_requests_total, provider=provider, status="success")
        safe_observe(vision_recognition_duration_seconds, latency_ms / 1000.0, provider=provider)
        logger.info(
            "Recognition succeeded",
            extra={
                "provider": provider,
                "model": model,
                "latency_ms": round(latency_ms, 1),
                "session_id": session_id,
            },
        )
        return RecognitionResult(text=text, provider_id=provider, model=model)

    def _validate(self, image_bytes: bytes, mime_type: Optional[str], config: ProviderConfig) -> None:
        if not isinstance(image_bytes, (bytes, bytearray)) or len(image_bytes) == 0:
            raise RecognitionFailure(ErrorKind.INVALID_INPUT, "Image is empty; upload an image file")
        if mime_type and not mime_type.strip().lower().startswith("image/"):
            raise RecognitionFailure(
                ErrorKind.INVALID_INPUT, f"Unsupported file type '{mime_type}'; expected an image"
            )
        if not config.has_credential:
            raise RecognitionFailure(
                ErrorKind.MISSING_CREDENTIAL, "API key is not configured for this provider"
            )
        if not config.credential_is_header_safe:
            raise RecognitionFailure(
                ErrorKind.MISSING_CREDENTIAL,
                "API key contains non-ASCII characters; paste the key again without quotes or ellipses",
            )

    async def _dispatch(
        self, adapter: VisionAdapter, request: RecognitionRequest, config: ProviderConfig
    ) -> str:
        wire = adapter.build_request(request, config)
        client = await self._get_client()
        try:
            response = await client.request(
                wire.method, wire.url, headers=wire.headers, json=wire.body
            )
        except httpx.TimeoutException:
            raise RecognitionFailure(
                ErrorKind.TRANSPORT_FAILURE,
                f"{adapter.display_name} request timed out after {self.timeout_seconds}s",
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise RecognitionFailure(
                ErrorKind.TRANSPORT_FAILURE, f"{adapter.display_name} request failed: {e}"
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            error = adapter.parse_error(response.status_code, body)
            raise RecognitionFailure(error.kind, error.message, error.provider_status_code)

        if body is None:
            raise RecognitionFailure(
                ErrorKind.MALFORMED_RESPONSE,
                f"{adapter.display_name} returned a non-JSON response",
                response.status_code,
            )
        return adapter.parse_success(body)

    def _failed(
        self,
        error: RecognitionError,
        config: ProviderConfig,
        provider: str,
        start_time: float,
        session_id: Optional[str],
    ) -> RecognitionError:
        latency_ms = (time.time() - start_time) * 1000
        safe_inc(vision_recognition_requests_total, provider=provider, status="error")
        safe_inc(vision_recognition_errors_total, provider=provider, code=error.kind.value)
        safe_observe(vision_recognition_duration_seconds, latency_ms / 1000.0, provider=provider)
        logger.warning(
            f"Recognition failed: {config.redact(error.message)}",
            extra={
                "provider": provider,
                "error_code": error.kind.value,
                "status_code": error.provider_status_code,
                "latency_ms": round(latency_ms, 1),
                "session_id": session_id,
            },
        )
        return error

    async def close(self) -> None:
        """Close HTTP client if this orchestrator created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
