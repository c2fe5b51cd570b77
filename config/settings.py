"""Application settings."""

import os
from typing import Optional
from pydantic import BaseModel

from schemas.personality import Personality


class Settings(BaseModel):
    """Assistant configuration settings."""

    # Model endpoint settings
    llm_provider: str = "gateway"  # "gateway" or "anthropic"
    llm_model: Optional[str] = None  # Override default model for direct providers
    gateway_url: str = "http://localhost:54321/functions/v1/ai-gateway"
    scope: str = "teacher"
    service_type: str = "dash_conversation"
    request_timeout: int = 60
    supports_streaming: bool = True  # False when the runtime cannot read bodies incrementally

    # API Keys
    api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Memory settings
    memory_enabled: bool = True
    db_path: str = "data/dash_assistant.db"
    max_context_messages: int = 10
    session_timeout_minutes: int = 30
    max_recent_actions: int = 20

    # Voice settings
    grace_period_seconds: float = 1.2
    manual_send_only: bool = False
    speak_responses: bool = False

    personality: Personality = Personality()

    # Logging
    verbose: bool = False

    def __init__(self, **data):
        # Auto-load endpoint and keys from environment if not provided
        if data.get("gateway_url") is None and os.environ.get("DASH_GATEWAY_URL"):
            data["gateway_url"] = os.environ["DASH_GATEWAY_URL"]

        if "api_key" not in data or data["api_key"] is None:
            data["api_key"] = os.environ.get("DASH_API_KEY")

        if "anthropic_api_key" not in data or data["anthropic_api_key"] is None:
            data["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")

        data = {k: v for k, v in data.items() if v is not None}
        super().__init__(**data)

    @property
    def language(self) -> str:
        """BCP-47 tag used for both recognition and replies."""
        return self.personality.voice_settings.language

    def get_llm_api_key(self) -> Optional[str]:
        """Get the API key for the configured model endpoint."""
        if self.llm_provider == "gateway":
            return self.api_key
        elif self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return None
