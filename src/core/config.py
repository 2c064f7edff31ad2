"""Runtime settings for the recognition service.

Provider credentials are never read from here; they arrive with each call.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Web settings
    CORS_ORIGINS: list[str] = ["*"]

    VISION_REQUEST_TIMEOUT_SECONDS: float = 60.0
    VISION_DISCOVERY_TIMEOUT_SECONDS: float = 15.0
    # Reject unknown provider ids instead of dispatching to the OpenAI adapter
    VISION_STRICT_PROVIDER: bool = False

    VISION_OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    VISION_OPENAI_MODEL: str = "gpt-4-vision-preview"
    VISION_ANTHROPIC_BASE_URL: str = "https://api.anthropic.com"
    VISION_ANTHROPIC_MODEL: str = "claude-3-sonnet-20240229"
    VISION_SILICONFLOW_BASE_URL: str = "https://api.siliconflow.cn/v1"
    VISION_SILICONFLOW_DEFAULT_MODEL: str = "Qwen/QwQ-32B"

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings()
    return _settings_cache


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings_cache
    _settings_cache = None
