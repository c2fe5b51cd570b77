"""Anthropic Claude client: direct model endpoint bypassing the gateway."""

import os
import logging
from typing import Optional, List

from .base_client import BaseLLMClient, ChatMessage, ChunkCallback, LLMResponse, ModelRequestError

logger = logging.getLogger(__name__)


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude client implementation."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024
    ):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (falls back to ANTHROPIC_API_KEY env var)
            model: Model to use (default: claude-sonnet-4-20250514)
            max_tokens: Maximum tokens per reply
        """
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.client = None

        if self.api_key:
            import anthropic
            self.client = anthropic.AsyncAnthropic(api_key=self.api_key)
            logger.info(f"Anthropic client initialized with model: {self.model}")
        else:
            logger.warning("No Anthropic API key provided")

    def _build_messages(self, prompt: str, context: Optional[List[ChatMessage]]):
        """Split system directives from the turn-ordered conversation."""
        system_content = ""
        conversation_messages = []

        for msg in context or []:
            if msg.role == "system":
                system_content += msg.content + "\n"
            else:
                conversation_messages.append({"role": msg.role, "content": msg.content})

        conversation_messages.append({"role": "user", "content": prompt})
        return system_content.strip(), conversation_messages

    async def send(
        self,
        prompt: str,
        context: Optional[List[ChatMessage]] = None,
        on_chunk: Optional[ChunkCallback] = None
    ) -> LLMResponse:
        """Send a request to Anthropic, streaming text deltas when on_chunk is set."""
        if not self.client:
            raise ModelRequestError("Anthropic client not initialized. Check API key.")

        import anthropic

        system_content, messages = self._build_messages(prompt, context)
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": messages,
        }
        if system_content:
            kwargs["system"] = system_content

        try:
            if on_chunk is not None:
                parts = []
                async with self.client.messages.stream(**kwargs) as stream:
                    async for text in stream.text_stream:
                        parts.append(text)
                        on_chunk(text)
                    final = await stream.get_final_message()
                content = "".join(parts)
            else:
                final = await self.client.messages.create(**kwargs)
                content = "".join(block.text for block in final.content if block.type == "text")
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error: {e}")
            raise ModelRequestError(str(e), e.status_code) from e
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise ModelRequestError(str(e)) from e

        usage = None
        if final.usage:
            usage = {
                "prompt_tokens": final.usage.input_tokens,
                "completion_tokens": final.usage.output_tokens,
                "total_tokens": final.usage.input_tokens + final.usage.output_tokens,
            }

        return LLMResponse(
            content=content,
            usage=usage,
            metadata={"provider": "anthropic", "finish_reason": final.stop_reason}
        )

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return "anthropic"

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model
