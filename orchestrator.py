"""Main orchestrator for the Dash assistant: input -> persist -> model -> persist -> speak."""

import asyncio
import logging
import weakref
from typing import Optional, Iterable, List

from config.settings import Settings

# LLM components
from llm.factory import create_llm_client, LLMProvider
from llm.base_client import BaseLLMClient, ChatMessage, ChunkCallback, ModelRequestError

# Memory components
from memory.models import Message, MessageRole
from memory.storage import KeyValueStorage, InMemoryStorage, SQLiteStorage
from memory.conversation_store import ConversationStore
from memory.context_manager import ContextWindowBuilder
from memory.session_memory import SessionMemoryManager

# Voice components
from voice.base import VoiceSession
from voice.finalization import FinalizationController
from voice.providers import VoiceProvider, select_voice_provider
from voice.speaker import Speaker
from utils.speech_text import normalize_text_for_speech, is_raw_streaming_json

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I'm sorry, I'm having trouble processing that right now. Could you please try again?"


class ConversationUnavailableError(RuntimeError):
    """No conversation could be resolved or created for a turn."""


class DashOrchestrator:
    """Ties conversation storage, the model endpoint and voice input together."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[KeyValueStorage] = None,
        llm_client: Optional[BaseLLMClient] = None,
        speaker: Optional[Speaker] = None,
        user_role: Optional[str] = None
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings
            storage: Persistence backend (defaults from settings)
            llm_client: Model endpoint (defaults from settings)
            speaker: Optional text-to-speech collaborator
            user_role: Role of the signed-in user (teacher, principal, parent)
        """
        self.settings = settings or Settings()
        self.user_role = user_role
        self.speaker = speaker

        # Initialize memory
        self.storage = storage or self._init_storage()
        self.store = ConversationStore(self.storage)
        self.context_builder = ContextWindowBuilder(
            self.store, max_messages=self.settings.max_context_messages
        )
        self.session_memory = SessionMemoryManager(
            self.storage,
            timeout_seconds=self.settings.session_timeout_minutes * 60,
            max_actions=self.settings.max_recent_actions
        )

        # Initialize LLM client
        self.llm_client: Optional[BaseLLMClient] = llm_client
        if self.llm_client is None:
            self._init_llm_client()

        self.active_voice_session: Optional[VoiceSession] = None
        # Entries vanish once no turn holds or awaits the lock
        self._turn_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _init_storage(self) -> KeyValueStorage:
        """Initialize persistence backend based on settings."""
        if not self.settings.memory_enabled:
            logger.info("Memory disabled; conversations kept in process only")
            return InMemoryStorage()
        try:
            storage = SQLiteStorage(db_path=self.settings.db_path)
            logger.info(f"Memory initialized: {self.settings.db_path}")
            return storage
        except Exception as e:
            logger.error(f"Failed to initialize memory, using in-process storage: {e}")
            return InMemoryStorage()

    def _init_llm_client(self):
        """Initialize model endpoint client based on settings."""
        api_key = self.settings.get_llm_api_key()
        if not api_key:
            logger.warning(
                f"No API key for {self.settings.llm_provider}. "
                "Replies will fall back to the apology message if the endpoint rejects the call."
            )

        try:
            provider = LLMProvider(self.settings.llm_provider)
            self.llm_client = create_llm_client(provider=provider, settings=self.settings)
            logger.info(
                f"LLM client initialized: {self.settings.llm_provider} "
                f"({self.llm_client.get_model_name()})"
            )
        except Exception as e:
            logger.error(f"Failed to initialize LLM client: {e}")
            self.llm_client = None

    async def initialize(self, user_id: Optional[str] = None, profile: Optional[dict] = None):
        """Resume the current conversation pointer and, for a known user, the session memory."""
        await self.store.initialize()
        if user_id:
            await self.session_memory.initialize_session(user_id, profile)

    async def send_message(
        self,
        content: str,
        conversation_id: Optional[str] = None,
        on_chunk: Optional[ChunkCallback] = None,
        attachments: Optional[List[str]] = None,
        topic: Optional[str] = None
    ) -> Message:
        """
        Run one user turn end-to-end.

        Args:
            content: User text (typed or a finalized transcript)
            conversation_id: Target conversation (defaults to current, else new)
            on_chunk: Optional callback receiving reply fragments as they stream
            attachments: Optional opaque attachment references
            topic: Optional topic recorded in session memory

        Returns:
            The assistant Message (an apology if the model call failed)

        Raises:
            ConversationUnavailableError: If no conversation could be resolved
        """
        conversation_id = await self._resolve_conversation(conversation_id)

        async with self._lock_for(conversation_id):
            user_message = Message(role=MessageRole.USER, content=content, attachments=attachments)
            await self.store.add_message(conversation_id, user_message)

            assistant_message = await self._generate_reply(conversation_id, user_message, on_chunk)
            await self.store.add_message(conversation_id, assistant_message)

            await self._record_turn(topic)

        await self._maybe_speak(assistant_message)
        return assistant_message

    async def submit_transcript(self, text: str) -> Message:
        """Submit a finalized voice transcript as a user turn."""
        logger.info("Submitting finalized transcript")
        return await self.send_message(text)

    def create_finalization_controller(self) -> FinalizationController:
        """Finalization controller that submits into this orchestrator."""
        return FinalizationController(
            on_submit=self.submit_transcript,
            grace_period=self.settings.grace_period_seconds,
            manual_send_only=self.settings.manual_send_only
        )

    async def start_voice_input(
        self,
        providers: Iterable[VoiceProvider],
        controller: FinalizationController
    ) -> Optional[VoiceSession]:
        """
        Start voice capture feeding the given controller.

        Args:
            providers: Voice providers in preference order
            controller: Finalization controller receiving transcripts

        Returns:
            The active session, or None when the caller must offer text input instead
        """
        provider = select_voice_provider(providers)
        session = provider.create_session()
        controller.reset()

        started = await session.start(controller.start_options(
            self.settings.language,
            on_error=lambda e: logger.warning(f"Voice capture error, use text input: {e}")
        ))
        if not started:
            logger.warning(f"Voice capture unavailable ({provider.id}); text input only")
            return None

        self.active_voice_session = session
        return session

    async def close(self):
        """Stop voice capture and speech output owned by this assistant."""
        if self.active_voice_session:
            await self.active_voice_session.cancel()
            self.active_voice_session = None
        if self.speaker:
            try:
                await self.speaker.stop()
            except Exception as e:
                logger.error(f"Failed to stop speech output: {e}")
        self.store.dispose()

    async def _resolve_conversation(self, conversation_id: Optional[str]) -> str:
        if conversation_id:
            if await self.store.get_conversation(conversation_id):
                return conversation_id
            raise ConversationUnavailableError(f"Conversation not found: {conversation_id}")

        current_id = self.store.get_current_conversation_id()
        if current_id and await self.store.get_conversation(current_id):
            return current_id

        new_id = await self.store.start_new_conversation()
        if not await self.store.get_conversation(new_id):
            raise ConversationUnavailableError("Could not create a conversation")
        return new_id

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        # Turns for one conversation are queued, never interleaved
        lock = self._turn_locks.get(conversation_id)
        if lock is None:
            lock = self._turn_locks[conversation_id] = asyncio.Lock()
        return lock

    async def _build_context(self, conversation_id: str, user_message: Message) -> List[ChatMessage]:
        history = await self.context_builder.get_context_messages(
            conversation_id, exclude_message_id=user_message.id
        )

        directive = self.settings.personality.build_directive(self.user_role)
        session_context = self.session_memory.get_conversation_context()
        if session_context:
            directive = f"{directive}\n\n{session_context}"

        return [ChatMessage(role="system", content=directive)] + history

    async def _generate_reply(
        self,
        conversation_id: str,
        user_message: Message,
        on_chunk: Optional[ChunkCallback]
    ) -> Message:
        if not self.llm_client:
            logger.error("No model endpoint configured")
            return self._fallback_message("no model endpoint configured")

        try:
            context = await self._build_context(conversation_id, user_message)
            response = await self.llm_client.send(user_message.content, context, on_chunk)
        except ModelRequestError as e:
            logger.error(f"Model request failed (status={e.status_code}): {e}")
            return self._fallback_message(str(e))
        except Exception as e:
            logger.error(f"Failed to generate response: {e}")
            return self._fallback_message(str(e))

        if not response.content.strip():
            logger.warning("Model returned an empty reply")
            return self._fallback_message("empty reply")

        return Message(
            role=MessageRole.ASSISTANT,
            content=response.content,
            metadata={
                "confidence": 0.9,
                "usage": response.usage,
                **response.metadata
            }
        )

    @staticmethod
    def _fallback_message(reason: str) -> Message:
        return Message(
            role=MessageRole.ASSISTANT,
            content=FALLBACK_REPLY,
            metadata={
                "confidence": 0.1,
                "suggested_actions": ["try_again", "contact_support"],
                "error": reason
            }
        )

    async def _record_turn(self, topic: Optional[str]):
        if not self.session_memory.current_session:
            return
        if self.session_memory.should_greet():
            await self.session_memory.mark_greeted()
        if topic:
            await self.session_memory.record_topic(topic)
        await self.session_memory.record_action("chat_turn")

    async def _maybe_speak(self, message: Message):
        if not (self.settings.speak_responses and self.speaker):
            return
        if is_raw_streaming_json(message.content):
            logger.warning("Reply looks like raw stream framing; not speaking it")
            return
        text = normalize_text_for_speech(message.content)
        if not text:
            return
        try:
            await self.speaker.speak(text, self.settings.personality.voice_settings)
        except Exception as e:
            logger.error(f"Speech output failed: {e}")
