"""Unit tests for vision provider adapters.

Tests request building, success parsing and error normalization per provider.
"""

import base64
import os

import pytest

from src.core.errors import ErrorKind
from src.core.vision import (
    LATEX_PROMPT,
    ProviderConfig,
    ProviderId,
    RecognitionFailure,
    RecognitionRequest,
    get_adapter,
)
from src.core.vision.providers import (
    AnthropicVisionAdapter,
    OpenAIVisionAdapter,
    SiliconFlowVisionAdapter,
)

SAMPLE_JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x00\xff"


def _request(provider_id: ProviderId, model_id=None, mime_type="image/jpeg") -> RecognitionRequest:
    return RecognitionRequest.build(
        image_bytes=SAMPLE_JPEG, mime_type=mime_type, provider_id=provider_id, model_id=model_id
    )


def _config(provider: str, **kwargs) -> ProviderConfig:
    return ProviderConfig(provider_id=provider, credential="sk-test", **kwargs)


class TestOpenAIVisionAdapter:
    """Tests for the OpenAI-style adapter."""

    def test_build_request_shape(self):
        """Test body, headers and URL match the OpenAI wire format."""
        adapter = OpenAIVisionAdapter()
        wire = adapter.build_request(_request(ProviderId.OPENAI), _config("openai"))

        assert wire.method == "POST"
        assert wire.url == "https://api.openai.com/v1/chat/completions"
        assert wire.headers["Authorization"] == "Bearer sk-test"
        assert wire.body["model"] == "gpt-4-vision-preview"
        assert wire.body["max_tokens"] == 4000
        assert wire.body["temperature"] == 0.1
        assert "top_p" not in wire.body

        message = wire.body["messages"][0]
        assert message["role"] == "user"
        text_part, image_part = message["content"]
        assert text_part == {"type": "text", "text": LATEX_PROMPT}
        assert image_part["type"] == "image_url"
        assert image_part["image_url"]["url"].startswith("data:image/jpeg;base64,")

    def test_image_payload_round_trips(self):
        """Test the data URI decodes back to the original bytes."""
        adapter = OpenAIVisionAdapter()
        wire = adapter.build_request(_request(ProviderId.OPENAI), _config("openai"))
        url = wire.body["messages"][0]["content"][1]["image_url"]["url"]
        assert base64.b64decode(url.split(",", 1)[1]) == SAMPLE_JPEG

    def test_model_selection_ignored(self):
        """Test a requested model is ignored by providers without selection support."""
        adapter = OpenAIVisionAdapter()
        wire = adapter.build_request(
            _request(ProviderId.OPENAI, model_id="Qwen/QwQ-32B"), _config("openai")
        )
        assert wire.body["model"] == "gpt-4-vision-preview"

    def test_endpoint_override(self):
        """Test the config endpoint base replaces the default."""
        adapter = OpenAIVisionAdapter()
        wire = adapter.build_request(
            _request(ProviderId.OPENAI),
            _config("openai", endpoint_base="https://proxy.example.com/v1/"),
        )
        assert wire.url == "https://proxy.example.com/v1/chat/completions"

    def test_parse_success(self):
        """Test content is read from choices[0].message.content."""
        adapter = OpenAIVisionAdapter()
        assert adapter.parse_success({"choices": [{"message": {"content": "X"}}]}) == "X"

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"choices": []},
            {"choices": [{"message": {}}]},
            {"choices": [{"message": {"content": None}}]},
            [],
            None,
        ],
    )
    def test_parse_success_malformed(self, body):
        """Test missing paths raise MALFORMED_RESPONSE, not KeyError/TypeError."""
        adapter = OpenAIVisionAdapter()
        with pytest.raises(RecognitionFailure) as exc_info:
            adapter.parse_success(body)
        assert exc_info.value.kind == ErrorKind.MALFORMED_RESPONSE

    def test_parse_error_with_provider_message(self):
        """Test the provider's error.message is embedded."""
        adapter = OpenAIVisionAdapter()
        error = adapter.parse_error(401, {"error": {"message": "bad key"}})

        assert error.kind == ErrorKind.PROVIDER_REJECTED
        assert error.provider_status_code == 401
        assert "bad key" in error.message
        assert error.message.startswith("OpenAI API request failed: 401")

    def test_parse_error_falls_back_to_status_text(self):
        """Test the HTTP reason phrase is used when the body has no message."""
        adapter = OpenAIVisionAdapter()
        error = adapter.parse_error(503, None)

        assert error.kind == ErrorKind.PROVIDER_REJECTED
        assert error.provider_status_code == 503
        assert "Service Unavailable" in error.message

    def test_parse_error_non_dict_error_field(self):
        """Test a string ``error`` field is not mistaken for a message."""
        adapter = OpenAIVisionAdapter()
        error = adapter.parse_error(400, {"error": "oops"})
        assert "Bad Request" in error.message


class TestAnthropicVisionAdapter:
    """Tests for the Anthropic-style adapter."""

    def test_build_request_shape(self):
        """Test headers, URL and content block layout."""
        adapter = AnthropicVisionAdapter()
        wire = adapter.build_request(_request(ProviderId.ANTHROPIC), _config("anthropic"))

        assert wire.url == "https://api.anthropic.com/v1/messages"
        assert wire.headers["x-api-key"] == "sk-test"
        assert wire.headers["anthropic-version"] == "2023-06-01"
        assert "Authorization" not in wire.headers
        assert wire.body["model"] == "claude-3-sonnet-20240229"
        assert wire.body["max_tokens"] == 4000
        assert "temperature" not in wire.body

        text_part, image_part = wire.body["messages"][0]["content"]
        assert text_part == {"type": "text", "text": LATEX_PROMPT}
        assert image_part["type"] == "image"
        assert image_part["source"]["type"] == "base64"
        assert image_part["source"]["media_type"] == "image/jpeg"
        assert base64.b64decode(image_part["source"]["data"]) == SAMPLE_JPEG

    def test_media_type_follows_request(self):
        """Test a PNG request is labeled image/png."""
        adapter = AnthropicVisionAdapter()
        wire = adapter.build_request(
            _request(ProviderId.ANTHROPIC, mime_type="image/png"), _config("anthropic")
        )
        assert wire.body["messages"][0]["content"][1]["source"]["media_type"] == "image/png"

    def test_parse_success(self):
        """Test text is read from content[0].text."""
        adapter = AnthropicVisionAdapter()
        assert adapter.parse_success({"content": [{"type": "text", "text": "X"}]}) == "X"

    def test_parse_success_openai_shape_is_malformed(self):
        """Test an OpenAI-shaped body does not satisfy the Anthropic schema."""
        adapter = AnthropicVisionAdapter()
        with pytest.raises(RecognitionFailure) as exc_info:
            adapter.parse_success({"choices": [{"message": {"content": "X"}}]})
        assert exc_info.value.kind == ErrorKind.MALFORMED_RESPONSE

    def test_parse_error(self):
        """Test Anthropic error bodies expose error.message as well."""
        adapter = AnthropicVisionAdapter()
        error = adapter.parse_error(
            401,
            {"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}},
        )
        assert error.provider_status_code == 401
        assert "invalid x-api-key" in error.message
        assert error.message.startswith("Anthropic")


class TestSiliconFlowVisionAdapter:
    """Tests for the SiliconFlow-style adapter."""

    def test_build_request_shape(self):
        """Test sampling parameters and selected model."""
        adapter = SiliconFlowVisionAdapter()
        wire = adapter.build_request(
            _request(ProviderId.SILICONFLOW, model_id="Qwen/Qwen2-VL-72B-Instruct"),
            _config("siliconflow"),
        )

        assert wire.url == "https://api.siliconflow.cn/v1/chat/completions"
        assert wire.headers["Authorization"] == "Bearer sk-test"
        assert wire.body["model"] == "Qwen/Qwen2-VL-72B-Instruct"
        assert wire.body["max_tokens"] == 4096
        assert wire.body["temperature"] == 0.7
        assert wire.body["top_p"] == 0.7
        assert wire.body["stream"] is False

        text_part, image_part = wire.body["messages"][0]["content"]
        assert text_part["text"] == LATEX_PROMPT
        url = image_part["image_url"]["url"]
        assert base64.b64decode(url.split(",", 1)[1]) == SAMPLE_JPEG

    def test_default_model_when_none_selected(self):
        """Test the default model is used without a selection."""
        adapter = SiliconFlowVisionAdapter()
        wire = adapter.build_request(_request(ProviderId.SILICONFLOW), _config("siliconflow"))
        assert wire.body["model"] == "Qwen/QwQ-32B"

    def test_catalog_request(self):
        """Test the catalog query is a bearer-authenticated GET on /models."""
        adapter = SiliconFlowVisionAdapter()
        wire = adapter.catalog_request(_config("siliconflow"))
        assert wire.method == "GET"
        assert wire.url == "https://api.siliconflow.cn/v1/models"
        assert wire.headers == {"Authorization": "Bearer sk-test"}
        assert wire.body is None

    def test_capability_flags(self):
        adapter = SiliconFlowVisionAdapter()
        assert adapter.supports_model_selection is True
        assert adapter.supports_catalog is True
        assert OpenAIVisionAdapter.supports_catalog is False


class TestPromptAndRegistry:
    """Tests shared across adapters."""

    def test_prompt_identical_across_providers(self):
        """Test every provider sends the same instruction text."""
        texts = set()
        for provider_id in ProviderId:
            adapter = get_adapter(provider_id.value)
            wire = adapter.build_request(_request(provider_id), _config(provider_id.value))
            texts.add(wire.body["messages"][0]["content"][0]["text"])
        assert texts == {LATEX_PROMPT}

    def test_prompt_asks_for_latex_only(self):
        assert "only the LaTeX code" in LATEX_PROMPT
        for env in ("equation", "align", "gather"):
            assert env in LATEX_PROMPT

    def test_get_adapter_known_ids(self):
        assert isinstance(get_adapter("openai"), OpenAIVisionAdapter)
        assert isinstance(get_adapter("anthropic"), AnthropicVisionAdapter)
        assert isinstance(get_adapter("siliconflow"), SiliconFlowVisionAdapter)
        assert isinstance(get_adapter(" SiliconFlow "), SiliconFlowVisionAdapter)

    def test_get_adapter_unknown_falls_back_to_openai(self):
        adapter = get_adapter("gemini", strict=False)
        assert adapter.provider_id == ProviderId.OPENAI

    def test_get_adapter_unknown_strict_raises(self):
        with pytest.raises(RecognitionFailure) as exc_info:
            get_adapter("gemini", strict=True)
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT

    def test_credential_not_in_repr(self):
        """Test the credential never appears in config or wire request reprs."""
        config = _config("openai")
        wire = OpenAIVisionAdapter().build_request(_request(ProviderId.OPENAI), config)
        assert "sk-test" not in repr(config)
        assert "sk-test" not in repr(wire)

    def test_credential_whitespace_stripped(self):
        """Test a pasted key with surrounding whitespace is sent trimmed."""
        config = ProviderConfig(provider_id="openai", credential="  sk-abc \n")
        wire = OpenAIVisionAdapter().build_request(_request(ProviderId.OPENAI), config)
        assert wire.headers["Authorization"] == "Bearer sk-abc"

        anthropic = ProviderConfig(provider_id="anthropic", credential="\tsk-abc ")
        wire = AnthropicVisionAdapter().build_request(_request(ProviderId.ANTHROPIC), anthropic)
        assert wire.headers["x-api-key"] == "sk-abc"

        catalog = SiliconFlowVisionAdapter().catalog_request(
            ProviderConfig(provider_id="siliconflow", credential="sk-abc\r\n")
        )
        assert catalog.headers == {"Authorization": "Bearer sk-abc"}


class TestSettings:
    """Tests for environment-driven adapter defaults."""

    def test_sdk_variables_are_ignored(self, monkeypatch):
        """Test SDK-style variables do not redirect the adapters."""
        monkeypatch.setenv("ANTHROPIC_BASE_URL", "http://127.0.0.1:9")
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o")
        wire = AnthropicVisionAdapter().build_request(
            _request(ProviderId.ANTHROPIC), _config("anthropic")
        )
        assert OpenAIVisionAdapter().default_model() == "gpt-4-vision-preview"
        assert wire.url == "https://api.anthropic.com/v1/messages"

    def test_prefixed_variables_override_defaults(self):
        os.environ["VISION_ANTHROPIC_BASE_URL"] = "https://gateway.example.com/"
        os.environ["VISION_ANTHROPIC_MODEL"] = "claude-3-haiku-20240307"
        wire = AnthropicVisionAdapter().build_request(
            _request(ProviderId.ANTHROPIC), _config("anthropic")
        )
        assert wire.url == "https://gateway.example.com/v1/messages"
        assert wire.body["model"] == "claude-3-haiku-20240307"
