import os
import pytest


# List of environment variables that may be modified by tests
_ENV_VARS_TO_ISOLATE = [
    "LOG_LEVEL",
    "VISION_STRICT_PROVIDER",
    "VISION_REQUEST_TIMEOUT_SECONDS",
    "VISION_DISCOVERY_TIMEOUT_SECONDS",
    "VISION_OPENAI_BASE_URL",
    "VISION_OPENAI_MODEL",
    "VISION_ANTHROPIC_BASE_URL",
    "VISION_ANTHROPIC_MODEL",
    "VISION_SILICONFLOW_BASE_URL",
    "VISION_SILICONFLOW_DEFAULT_MODEL",
]


@pytest.fixture(autouse=True)
def env_isolation():
    """Isolate environment variables and the cached settings between tests."""
    from src.core.config import reset_settings

    backup = {k: os.environ.get(k) for k in _ENV_VARS_TO_ISOLATE}
    for k in _ENV_VARS_TO_ISOLATE:
        os.environ.pop(k, None)
    reset_settings()
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v
        reset_settings()

