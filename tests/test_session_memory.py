"""Tests for session memory."""

import asyncio

from memory.session_memory import SessionMemoryManager, STORAGE_KEY_SESSION
from memory.storage import InMemoryStorage


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestSessionMemory:
    """Test greeting state, resume and expiry."""

    def setup_method(self):
        """Set up test fixtures."""
        self.storage = InMemoryStorage()
        self.clock = FakeClock()
        self.memory = SessionMemoryManager(self.storage, clock=self.clock)

    def _new_manager(self) -> SessionMemoryManager:
        return SessionMemoryManager(self.storage, clock=self.clock)

    def test_fresh_session_should_greet(self):
        session = asyncio.run(self.memory.initialize_session("u1", {"full_name": "Thandi Mokoena"}))

        assert session.has_greeted is False
        assert self.memory.should_greet() is True
        assert self.memory.get_user_name() == "Thandi"

    def test_should_greet_without_session(self):
        assert self.memory.should_greet() is True

    def test_resume_within_timeout_keeps_greeting(self):
        """Test re-initializing inside the window keeps has_greeted."""
        async def scenario():
            first = await self.memory.initialize_session("u1")
            await self.memory.mark_greeted()
            self.clock.now += 29 * 60
            manager = self._new_manager()
            resumed = await manager.initialize_session("u1")
            return first, resumed, manager

        first, resumed, manager = asyncio.run(scenario())

        assert resumed.session_id == first.session_id
        assert resumed.has_greeted is True
        assert manager.should_greet() is False

    def test_expired_session_starts_fresh(self):
        """Test re-initializing after the timeout gives a new ungreeted session."""
        async def scenario():
            first = await self.memory.initialize_session("u1")
            await self.memory.mark_greeted()
            self.clock.now += 31 * 60
            manager = self._new_manager()
            return first, await manager.initialize_session("u1")

        first, fresh = asyncio.run(scenario())

        assert fresh.session_id != first.session_id
        assert fresh.has_greeted is False

    def test_other_user_starts_fresh(self):
        async def scenario():
            await self.memory.initialize_session("u1")
            await self.memory.mark_greeted()
            return await self._new_manager().initialize_session("u2")

        session = asyncio.run(scenario())
        assert session.user_id == "u2"
        assert session.has_greeted is False

    def test_topics_are_deduplicated(self):
        async def scenario():
            await self.memory.initialize_session("u1")
            for topic in ("fractions", "reading", "fractions"):
                await self.memory.record_topic(topic)

        asyncio.run(scenario())
        assert self.memory.current_session.topics_discussed == ["fractions", "reading"]
        assert self.memory.has_discussed_topic("reading")

    def test_actions_are_bounded(self):
        async def scenario():
            await self.memory.initialize_session("u1")
            for i in range(25):
                await self.memory.record_action(f"a{i}")

        asyncio.run(scenario())
        actions = self.memory.current_session.recent_actions
        assert len(actions) == 20
        assert actions[0] == "a5"
        assert self.memory.get_recent_actions(3) == ["a22", "a23", "a24"]

    def test_mutators_persist(self):
        async def scenario():
            await self.memory.initialize_session("u1")
            await self.memory.record_topic("attendance")
            await self.memory.update_preferences(preferred_name="Mrs M")
            return await self.storage.get(STORAGE_KEY_SESSION)

        raw = asyncio.run(scenario())
        assert '"attendance"' in raw
        assert '"Mrs M"' in raw
        assert self.memory.get_user_name() == "Mrs M"

    def test_conversation_context_reflects_greeting(self):
        async def scenario():
            await self.memory.initialize_session("u1", {"first_name": "Sipho"})
            before = self.memory.get_conversation_context()
            await self.memory.mark_greeted()
            await self.memory.record_action("chat_turn")
            return before, self.memory.get_conversation_context()

        before, after = asyncio.run(scenario())
        assert "Greet the user warmly using their name (Sipho)" in before
        assert "DO NOT greet again" in after
        assert "Recent Actions: chat_turn" in after

    def test_clear_session(self):
        async def scenario():
            await self.memory.initialize_session("u1")
            await self.memory.clear_session()
            return await self.storage.get(STORAGE_KEY_SESSION)

        assert asyncio.run(scenario()) is None
        assert self.memory.current_session is None
