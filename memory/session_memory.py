"""Ephemeral session memory: greeting state and recent activity."""

import time
import logging
from typing import Callable, Optional, List

from .models import SessionMemory, UserPreferences
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY_SESSION = "@dash_conversation_session"
SESSION_TIMEOUT_SECONDS = 30 * 60
MAX_RECENT_ACTIONS = 20


class SessionMemoryManager:
    """
    Time-boxed record of whether the user was greeted and what happened recently.

    A stored session is resumed when it belongs to the same user and the last
    interaction is within the timeout; otherwise a fresh session replaces it.
    Every mutator persists immediately.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        timeout_seconds: float = SESSION_TIMEOUT_SECONDS,
        max_actions: int = MAX_RECENT_ACTIONS,
        clock: Callable[[], float] = time.time
    ):
        self.storage = storage
        self.timeout_seconds = timeout_seconds
        self.max_actions = max_actions
        self.clock = clock
        self.current_session: Optional[SessionMemory] = None

    async def initialize_session(self, user_id: str, profile: Optional[dict] = None) -> SessionMemory:
        """
        Resume or start the session for a user.

        Args:
            user_id: User ID
            profile: Optional profile with first_name / full_name

        Returns:
            The active SessionMemory
        """
        now = self.clock()
        saved = await self._load()
        if saved and saved.user_id == user_id and now - saved.last_interaction_time < self.timeout_seconds:
            saved.last_interaction_time = now
            self.current_session = saved
            await self._persist()
            logger.info(f"Resumed session {saved.session_id} for user {user_id}")
            return saved

        self.current_session = SessionMemory(
            user_id=user_id,
            user_name=self._extract_first_name(profile),
            start_time=now,
            last_interaction_time=now,
        )
        await self._persist()
        logger.info(f"Started session {self.current_session.session_id} for user {user_id}")
        return self.current_session

    @staticmethod
    def _extract_first_name(profile: Optional[dict]) -> Optional[str]:
        if not profile:
            return None
        if profile.get("first_name"):
            return profile["first_name"]
        full_name = (profile.get("full_name") or "").strip()
        return full_name.split()[0] if full_name else None

    def should_greet(self) -> bool:
        """Greet unless this session already has."""
        if not self.current_session:
            return True
        return not self.current_session.has_greeted

    async def mark_greeted(self):
        if self.current_session:
            self.current_session.has_greeted = True
            await self._touch_and_persist()

    def get_user_name(self) -> Optional[str]:
        """Preferred name, falling back to the profile's first name."""
        if not self.current_session:
            return None
        return self.current_session.preferences.preferred_name or self.current_session.user_name

    async def record_topic(self, topic: str):
        if self.current_session and topic not in self.current_session.topics_discussed:
            self.current_session.topics_discussed.append(topic)
            await self._touch_and_persist()

    def has_discussed_topic(self, topic: str) -> bool:
        return bool(self.current_session and topic in self.current_session.topics_discussed)

    async def record_action(self, action: str):
        if self.current_session:
            actions = self.current_session.recent_actions
            actions.append(action)
            if len(actions) > self.max_actions:
                self.current_session.recent_actions = actions[-self.max_actions:]
            await self._touch_and_persist()

    def get_recent_actions(self, limit: int = 5) -> List[str]:
        if not self.current_session:
            return []
        return self.current_session.recent_actions[-limit:]

    async def update_preferences(self, **preferences):
        """Merge preference fields (formality_level, preferred_language, preferred_name)."""
        if self.current_session:
            merged = self.current_session.preferences.model_dump()
            merged.update({k: v for k, v in preferences.items() if v is not None})
            self.current_session.preferences = UserPreferences(**merged)
            await self._persist()

    async def touch_session(self):
        if self.current_session:
            await self._touch_and_persist()

    async def clear_session(self):
        self.current_session = None
        try:
            await self.storage.remove(STORAGE_KEY_SESSION)
        except Exception as e:
            logger.error(f"Failed to clear session: {e}")

    def get_conversation_context(self) -> str:
        """Context block injected into the prompt to bias greetings and continuity."""
        if not self.current_session:
            return ""

        user_name = self.get_user_name()
        recent_actions = self.get_recent_actions(3)
        recent_topics = self.current_session.topics_discussed[-3:]

        lines = ["## CONVERSATION CONTEXT", ""]
        if user_name:
            lines.append(f"User's Name: {user_name}")
            lines.append("Address the user by their first name naturally in conversation.")
            lines.append("")

        if self.current_session.has_greeted:
            lines.append("Greeting: You have already greeted the user in this session. DO NOT greet again.")
        else:
            name_hint = f" using their name ({user_name})" if user_name else ""
            lines.append(f"Greeting: This is the start of the conversation. Greet the user warmly{name_hint}.")

        if recent_topics:
            lines.append(f"Topics Discussed: {', '.join(recent_topics)}")
        if recent_actions:
            lines.append(f"Recent Actions: {', '.join(recent_actions)}")

        return "\n".join(lines)

    async def _touch_and_persist(self):
        self.current_session.last_interaction_time = self.clock()
        await self._persist()

    async def _load(self) -> Optional[SessionMemory]:
        try:
            raw = await self.storage.get(STORAGE_KEY_SESSION)
            return SessionMemory.model_validate_json(raw) if raw else None
        except Exception as e:
            logger.error(f"Failed to load session memory: {e}")
            return None

    async def _persist(self):
        if not self.current_session:
            return
        try:
            await self.storage.set(STORAGE_KEY_SESSION, self.current_session.model_dump_json())
        except Exception as e:
            logger.error(f"Failed to persist session memory: {e}")
