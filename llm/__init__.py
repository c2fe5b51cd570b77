"""Model endpoint abstraction layer."""

from .base_client import BaseLLMClient, ChatMessage, LLMResponse, ModelRequestError
from .factory import create_llm_client, LLMProvider

__all__ = [
    "BaseLLMClient",
    "ChatMessage",
    "LLMResponse",
    "ModelRequestError",
    "create_llm_client",
    "LLMProvider",
]
