"""Model endpoint request/response schemas."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class ModelPayload(BaseModel):
    """Prompt and conversational grounding sent to the model."""
    prompt: str
    context: Optional[List[Dict[str, Any]]] = None


class ModelRequest(BaseModel):
    """Request body for the AI gateway."""
    scope: str
    service_type: str
    payload: ModelPayload
    stream: bool = False


class ModelReply(BaseModel):
    """Non-streaming gateway reply."""
    success: bool = True
    content: str = ""
    usage: Optional[Dict[str, Any]] = None
    error: Optional[str] = Field(None, description="Error text when success is false")
