"""Vision provider adapters."""

from .anthropic import AnthropicVisionAdapter
from .openai import OpenAIVisionAdapter
from .siliconflow import SiliconFlowVisionAdapter

__all__ = [
    "AnthropicVisionAdapter",
    "OpenAIVisionAdapter",
    "SiliconFlowVisionAdapter",
]
