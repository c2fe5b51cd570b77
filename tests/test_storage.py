"""Tests for key-value storage backends."""

import asyncio

from memory.storage import InMemoryStorage, SQLiteStorage
from memory.conversation_store import ConversationStore
from memory.models import Message, MessageRole


class TestSQLiteStorage:
    """Test the durable SQLite backend."""

    def test_creates_database_file(self, tmp_path):
        db = tmp_path / "nested" / "dash.db"
        SQLiteStorage(str(db))
        assert db.exists()

    def test_set_get_remove(self, tmp_path):
        storage = SQLiteStorage(str(tmp_path / "dash.db"))

        async def scenario():
            await storage.set("a", "1")
            await storage.set("a", "2")
            value = await storage.get("a")
            await storage.remove("a")
            await storage.remove("never-set")
            return value, await storage.get("a")

        value, removed = asyncio.run(scenario())
        assert value == "2"
        assert removed is None

    def test_keys_prefix_is_literal(self, tmp_path):
        """Test '_' in prefixes is not treated as a wildcard."""
        storage = SQLiteStorage(str(tmp_path / "dash.db"))

        async def scenario():
            await storage.set("dash_conversations_1", "{}")
            await storage.set("dash_conversations_2", "{}")
            await storage.set("dashXconversationsX3", "{}")
            return await storage.keys("dash_conversations_")

        assert asyncio.run(scenario()) == ["dash_conversations_1", "dash_conversations_2"]

    def test_conversations_survive_restart(self, tmp_path):
        """Test a new store over the same database resumes everything."""
        db = str(tmp_path / "dash.db")

        async def scenario():
            store = ConversationStore(SQLiteStorage(db))
            conversation_id = await store.start_new_conversation("Persisted")
            await store.add_message(conversation_id, Message(role=MessageRole.USER, content="Hello"))

            restarted = ConversationStore(SQLiteStorage(db))
            await restarted.initialize()
            current = restarted.get_current_conversation_id()
            return conversation_id, current, await restarted.get_conversation(current)

        conversation_id, current, record = asyncio.run(scenario())
        assert current == conversation_id
        assert record.title == "Persisted"
        assert [m.content for m in record.messages] == ["Hello"]


class TestInMemoryStorage:
    """Test the in-process backend."""

    def test_keys_filter(self):
        storage = InMemoryStorage({"x_1": "a", "y_1": "b"})
        assert asyncio.run(storage.keys("x_")) == ["x_1"]
