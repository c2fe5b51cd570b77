"""Conversation store: durable conversation records and the current pointer."""

import json
import logging
from datetime import datetime
from typing import Optional, List

from pydantic import ValidationError

from .models import ConversationRecord, Message, MessageRole, now_ms, generate_id
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


class ConversationNotFoundError(LookupError):
    """Raised when an operation needs a conversation that does not exist."""


class ConversationStore:
    """
    Keyed storage of conversation records plus the current-conversation pointer.

    Storage-layer errors are logged and swallowed: reads degrade to None or an
    empty list and writes become no-ops. The store is the single writer of the
    current pointer for one assistant session.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        conversations_key: str = "dash_conversations",
        current_conversation_key: str = "@dash_ai_current_conversation_id"
    ):
        """
        Initialize conversation store.

        Args:
            storage: Key-value persistence backend
            conversations_key: Prefix for conversation record keys
            current_conversation_key: Key holding the current pointer
        """
        self.storage = storage
        self.conversations_key = conversations_key
        self.current_conversation_key = current_conversation_key
        self._current_conversation_id: Optional[str] = None

    def _record_key(self, conversation_id: str) -> str:
        return f"{self.conversations_key}_{conversation_id}"

    async def initialize(self):
        """Load the persisted current-conversation pointer."""
        try:
            stored_id = await self.storage.get(self.current_conversation_key)
            if stored_id:
                self._current_conversation_id = stored_id
                logger.info(f"Resumed conversation: {stored_id}")
        except Exception as e:
            logger.error(f"Conversation store initialization failed: {e}")

    async def start_new_conversation(self, title: Optional[str] = None) -> str:
        """
        Create an empty conversation and make it current.

        Args:
            title: Optional title (defaults to today's date)

        Returns:
            New conversation ID
        """
        conversation_id = generate_id("dash_conv")
        now = now_ms()
        record = ConversationRecord(
            id=conversation_id,
            title=title or f"Conversation {datetime.now().strftime('%Y-%m-%d')}",
            messages=[],
            created_at=now,
            updated_at=now
        )

        self._current_conversation_id = conversation_id
        await self._save(record)
        await self._persist_pointer(conversation_id)

        logger.info(f"Started new conversation: {conversation_id}")
        return conversation_id

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        """
        Get a conversation with all messages.

        Args:
            conversation_id: Conversation ID

        Returns:
            ConversationRecord or None if not found
        """
        try:
            raw = await self.storage.get(self._record_key(conversation_id))
            if not raw:
                return None
            return self._normalize(json.loads(raw), fallback_id=conversation_id)
        except Exception as e:
            logger.error(f"Failed to get conversation {conversation_id}: {e}")
            return None

    async def get_all_conversations(self) -> List[ConversationRecord]:
        """
        List every stored conversation, most recently updated first.

        Returns:
            List of ConversationRecord objects
        """
        try:
            keys = await self.storage.keys(f"{self.conversations_key}_")
        except Exception as e:
            logger.error(f"Failed to list conversation keys: {e}")
            return []

        conversations = []
        prefix_len = len(self.conversations_key) + 1
        for key in keys:
            try:
                raw = await self.storage.get(key)
                if not raw:
                    continue
                conversations.append(self._normalize(json.loads(raw), fallback_id=key[prefix_len:]))
            except (ValueError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid conversation entry for key {key}: {e}")
            except Exception as e:
                logger.error(f"Failed to read conversation {key}: {e}")

        return sorted(conversations, key=lambda c: c.updated_at, reverse=True)

    async def add_message(self, conversation_id: str, message: Message):
        """
        Append a message unless its id is already present.

        Args:
            conversation_id: Target conversation
            message: Message to append
        """
        try:
            conversation = await self.get_conversation(conversation_id)
            if not conversation:
                logger.warning(f"Cannot add message: conversation {conversation_id} not found")
                return

            if any(m.id == message.id for m in conversation.messages):
                logger.debug(f"Duplicate message {message.id} ignored")
                return

            conversation.messages.append(message)
            conversation.updated_at = now_ms()
            await self._save(conversation)

            self._current_conversation_id = conversation_id
            await self._persist_pointer(conversation_id)
        except Exception as e:
            logger.error(f"Failed to add message to conversation {conversation_id}: {e}")

    async def delete_conversation(self, conversation_id: str):
        """
        Delete a conversation, clearing the current pointer if it pointed there.

        Args:
            conversation_id: Conversation ID
        """
        try:
            await self.storage.remove(self._record_key(conversation_id))

            current_id = await self.storage.get(self.current_conversation_key)
            if current_id == conversation_id or self._current_conversation_id == conversation_id:
                await self.storage.remove(self.current_conversation_key)
                self._current_conversation_id = None

            logger.info(f"Deleted conversation: {conversation_id}")
        except Exception as e:
            logger.error(f"Failed to delete conversation {conversation_id}: {e}")

    async def export_conversation(self, conversation_id: str) -> str:
        """
        Render a conversation as plain text.

        Args:
            conversation_id: Conversation ID

        Returns:
            Export text

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        conversation = await self.get_conversation(conversation_id)
        if not conversation:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")

        created = datetime.fromtimestamp(conversation.created_at / 1000)
        parts = [
            "Dash AI Assistant Conversation",
            f"Title: {conversation.title}",
            f"Date: {created.strftime('%Y-%m-%d')}",
            "",
            "=" * 50,
            "",
        ]
        for message in conversation.messages:
            timestamp = datetime.fromtimestamp(message.timestamp / 1000).strftime("%H:%M:%S")
            sender = "You" if message.role == MessageRole.USER else "Dash"
            parts.append(f"[{timestamp}] {sender}: {message.content}")
            parts.append("")

        return "\n".join(parts)

    def get_current_conversation_id(self) -> Optional[str]:
        """Get current conversation ID."""
        return self._current_conversation_id

    async def set_current_conversation_id(self, conversation_id: str):
        """Set and persist the current conversation pointer."""
        self._current_conversation_id = conversation_id
        await self._persist_pointer(conversation_id)

    async def update_conversation_title(self, conversation_id: str, title: str):
        """Rename a conversation."""
        try:
            conversation = await self.get_conversation(conversation_id)
            if conversation:
                conversation.title = title
                conversation.updated_at = now_ms()
                await self._save(conversation)
        except Exception as e:
            logger.error(f"Failed to update conversation title: {e}")

    async def generate_conversation_summary(self, conversation_id: str) -> str:
        """
        Short summary: an excerpt of the first user message and a message count.

        Args:
            conversation_id: Conversation ID

        Returns:
            Summary text
        """
        conversation = await self.get_conversation(conversation_id)
        if not conversation or not conversation.messages:
            return "Empty conversation"

        user_messages = [m for m in conversation.messages if m.role == MessageRole.USER]
        if user_messages:
            return f'"{user_messages[0].content[:60]}..." ({len(user_messages)} messages)'
        return f"{len(conversation.messages)} messages"

    async def trim_conversation(self, conversation_id: str, max_messages: int):
        """Keep only the most recent max_messages messages."""
        try:
            conversation = await self.get_conversation(conversation_id)
            if conversation and len(conversation.messages) > max_messages:
                conversation.messages = conversation.messages[-max_messages:]
                conversation.updated_at = now_ms()
                await self._save(conversation)
                logger.info(f"Trimmed conversation {conversation_id} to {max_messages} messages")
        except Exception as e:
            logger.error(f"Failed to trim conversation: {e}")

    def dispose(self):
        """Forget the in-memory pointer; persisted state is left untouched."""
        self._current_conversation_id = None

    async def _save(self, conversation: ConversationRecord):
        try:
            await self.storage.set(self._record_key(conversation.id), conversation.model_dump_json())
        except Exception as e:
            logger.error(f"Failed to save conversation {conversation.id}: {e}")

    async def _persist_pointer(self, conversation_id: str):
        try:
            await self.storage.set(self.current_conversation_key, conversation_id)
        except Exception as e:
            logger.error(f"Failed to persist current conversation pointer: {e}")

    @staticmethod
    def _normalize(data: dict, fallback_id: str) -> ConversationRecord:
        """Default missing or mistyped fields of a stored record and drop unreadable messages."""
        if not isinstance(data, dict):
            raise TypeError("conversation record is not an object")
        if not isinstance(data.get("id"), str):
            data["id"] = fallback_id
        if not isinstance(data.get("title"), str):
            data["title"] = "Conversation"
        if not isinstance(data.get("created_at"), (int, float)):
            data["created_at"] = now_ms()
        if not isinstance(data.get("updated_at"), (int, float)):
            data["updated_at"] = data["created_at"]
        data["created_at"] = int(data["created_at"])
        data["updated_at"] = int(data["updated_at"])

        raw_messages = data.get("messages")
        if not isinstance(raw_messages, list):
            raw_messages = []
        messages = []
        for index, entry in enumerate(raw_messages):
            try:
                messages.append(ConversationStore._normalize_message(entry, data, index))
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid message {index} in conversation {data['id']}: {e}")
        data["messages"] = messages
        return ConversationRecord.model_validate(data)

    @staticmethod
    def _normalize_message(entry: dict, record: dict, index: int) -> Message:
        if not isinstance(entry, dict):
            raise TypeError("message is not an object")
        entry = dict(entry)
        # Ids must stay stable across reads for idempotent appends
        if not isinstance(entry.get("id"), str):
            entry["id"] = f"{record['id']}_msg_{index}"
        if isinstance(entry.get("timestamp"), (int, float)):
            entry["timestamp"] = int(entry["timestamp"])
        else:
            entry["timestamp"] = record["created_at"]
        return Message.model_validate(entry)
