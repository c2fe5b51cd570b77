"""Context window construction for model requests."""

import logging
from typing import List, Optional

from .conversation_store import ConversationStore
from .models import Message
from llm.base_client import ChatMessage

logger = logging.getLogger(__name__)


class ContextWindowBuilder:
    """Derives a bounded, recency-based message slice from a conversation."""

    # Configuration
    MAX_CONTEXT_MESSAGES = 10  # Maximum messages to include in context

    def __init__(self, store: ConversationStore, max_messages: Optional[int] = None):
        """
        Initialize context window builder.

        Args:
            store: Conversation store to read from
            max_messages: Default window size
        """
        self.store = store
        self.max_messages = self.MAX_CONTEXT_MESSAGES if max_messages is None else max_messages

    async def build_context_window(
        self,
        conversation_id: str,
        max_messages: Optional[int] = None
    ) -> List[Message]:
        """
        Get the most recent messages of a conversation.

        Args:
            conversation_id: Conversation ID
            max_messages: Window size override

        Returns:
            Up to max_messages messages in conversation order
        """
        limit = self.max_messages if max_messages is None else max_messages
        if limit <= 0:
            return []
        conversation = await self.store.get_conversation(conversation_id)
        if not conversation or not conversation.messages:
            return []
        return list(conversation.messages[-limit:])

    async def get_context_messages(
        self,
        conversation_id: str,
        max_messages: Optional[int] = None,
        exclude_message_id: Optional[str] = None
    ) -> List[ChatMessage]:
        """
        Get the context window as chat messages for the model request.

        Args:
            conversation_id: Conversation ID
            max_messages: Window size override
            exclude_message_id: Message left out of the window (the prompt being sent)

        Returns:
            List of ChatMessage objects
        """
        limit = self.max_messages if max_messages is None else max_messages
        if limit <= 0:
            return []

        # Read one extra so the excluded message does not shrink the window
        fetch = limit + 1 if exclude_message_id else limit
        window = await self.build_context_window(conversation_id, fetch)
        messages = [
            ChatMessage(role=m.role.value, content=m.content)
            for m in window if m.id != exclude_message_id
        ]
        return messages[-limit:]
