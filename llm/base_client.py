"""Base model endpoint interface."""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Callable
from pydantic import BaseModel, Field


ChunkCallback = Callable[[str], None]


class ChatMessage(BaseModel):
    """Chat message sent to the model as conversational grounding."""
    role: str  # "system", "user", "assistant"
    content: str


class LLMResponse(BaseModel):
    """Reply from the model endpoint."""
    content: str
    usage: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ModelRequestError(RuntimeError):
    """Non-2xx reply, transport failure or unsuccessful model call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BaseLLMClient(ABC):
    """Abstract base class for model endpoints."""

    @abstractmethod
    async def send(
        self,
        prompt: str,
        context: Optional[List[ChatMessage]] = None,
        on_chunk: Optional[ChunkCallback] = None
    ) -> LLMResponse:
        """
        Send one request to the model.

        Args:
            prompt: User prompt (with any directive already applied)
            context: Optional conversation history
            on_chunk: Optional callback receiving each text fragment as it arrives

        Returns:
            LLMResponse with the accumulated content

        Raises:
            ModelRequestError: On transport failure or non-2xx reply
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the name of the model provider."""
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the name of the model being used."""
        pass
