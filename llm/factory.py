"""Model endpoint client factory."""

from enum import Enum
from typing import Optional

from config.settings import Settings
from .base_client import BaseLLMClient
from .gateway_client import GatewayClient
from .anthropic_client import AnthropicClient


class LLMProvider(str, Enum):
    """Supported model endpoints."""
    GATEWAY = "gateway"
    ANTHROPIC = "anthropic"


def create_llm_client(
    provider: LLMProvider,
    settings: Optional[Settings] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None
) -> BaseLLMClient:
    """
    Create a model endpoint client for the specified provider.

    Args:
        provider: Model endpoint (gateway or anthropic)
        settings: Application settings (defaults loaded from environment)
        api_key: API key override
        model: Optional model override

    Returns:
        Configured client

    Raises:
        ValueError: If provider is not supported
    """
    settings = settings or Settings()
    if provider == LLMProvider.GATEWAY:
        return GatewayClient(
            base_url=settings.gateway_url,
            api_key=api_key or settings.api_key,
            scope=settings.scope,
            service_type=settings.service_type,
            timeout=settings.request_timeout,
            supports_streaming=settings.supports_streaming
        )
    elif provider == LLMProvider.ANTHROPIC:
        return AnthropicClient(
            api_key=api_key or settings.anthropic_api_key,
            model=model or settings.llm_model
        )
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")
