"""Memory data models."""

import time
import uuid
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id(prefix: str) -> str:
    """Globally unique id of the form <prefix>_<epoch-ms>_<random>."""
    return f"{prefix}_{now_ms()}_{uuid.uuid4().hex[:9]}"


class MessageRole(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single message in a conversation."""
    id: str = Field(default_factory=lambda: generate_id("msg"))
    role: MessageRole
    content: str
    timestamp: int = Field(default_factory=now_ms)
    attachments: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None  # confidence, suggested actions, errors


class ConversationRecord(BaseModel):
    """A complete conversation."""
    id: str
    title: str = "Conversation"
    messages: List[Message] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)


class UserPreferences(BaseModel):
    """Per-session user preferences."""
    formality_level: Optional[str] = None  # "casual" or "professional"
    preferred_language: Optional[str] = None
    preferred_name: Optional[str] = None


class SessionMemory(BaseModel):
    """Short-lived record of greeting state and recent activity."""
    session_id: str = Field(default_factory=lambda: generate_id("session"))
    user_id: str
    user_name: Optional[str] = None
    start_time: float = Field(default_factory=time.time)
    last_interaction_time: float = Field(default_factory=time.time)
    has_greeted: bool = False
    topics_discussed: List[str] = Field(default_factory=list)
    recent_actions: List[str] = Field(default_factory=list)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
