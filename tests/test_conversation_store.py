"""Tests for the conversation store."""

import asyncio
import json

import pytest
from memory.conversation_store import ConversationStore, ConversationNotFoundError
from memory.models import Message, MessageRole
from memory.storage import InMemoryStorage


class FailingStorage(InMemoryStorage):
    """Storage whose writes always fail."""

    async def set(self, key, value):
        raise OSError("disk full")


def run(coro):
    return asyncio.run(coro)


class TestConversationStore:
    """Test conversation persistence and the current pointer."""

    def setup_method(self):
        """Set up test fixtures."""
        self.storage = InMemoryStorage()
        self.store = ConversationStore(self.storage)

    def test_start_new_conversation_sets_pointer(self):
        """Test a new conversation is empty, current and persisted."""
        async def scenario():
            conversation_id = await self.store.start_new_conversation("Lesson ideas")
            record = await self.store.get_conversation(conversation_id)
            pointer = await self.storage.get(self.store.current_conversation_key)
            return conversation_id, record, pointer

        conversation_id, record, pointer = run(scenario())

        assert conversation_id.startswith("dash_conv_")
        assert record.title == "Lesson ideas"
        assert record.messages == []
        assert self.store.get_current_conversation_id() == conversation_id
        assert pointer == conversation_id

    def test_default_title(self):
        """Test conversations get a dated default title."""
        async def scenario():
            conversation_id = await self.store.start_new_conversation()
            return await self.store.get_conversation(conversation_id)

        record = run(scenario())
        assert record.title.startswith("Conversation ")

    def test_get_missing_conversation(self):
        """Test unknown ids return None."""
        assert run(self.store.get_conversation("nope")) is None

    def test_idempotent_append(self):
        """Test appending the same message id twice is a no-op."""
        message = Message(role=MessageRole.USER, content="Hello")

        async def scenario():
            conversation_id = await self.store.start_new_conversation()
            await self.store.add_message(conversation_id, message)
            first = await self.store.get_conversation(conversation_id)
            await self.store.add_message(conversation_id, message.model_copy(update={"content": "changed"}))
            second = await self.store.get_conversation(conversation_id)
            return first, second

        first, second = run(scenario())

        assert len(first.messages) == 1
        assert len(second.messages) == 1
        assert second.messages[0].content == "Hello"
        assert second.updated_at == first.updated_at

    def test_order_preservation(self):
        """Test messages come back in call order."""
        messages = [
            Message(role=MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT, content=f"m{i}")
            for i in range(6)
        ]

        async def scenario():
            conversation_id = await self.store.start_new_conversation()
            for message in messages:
                await self.store.add_message(conversation_id, message)
            await self.store.add_message(conversation_id, messages[2])
            return await self.store.get_conversation(conversation_id)

        record = run(scenario())
        assert [m.id for m in record.messages] == [m.id for m in messages]

    def test_add_message_to_missing_conversation_is_silent(self):
        """Test appending to an absent record logs and does not raise."""
        run(self.store.add_message("missing", Message(role=MessageRole.USER, content="hi")))
        assert run(self.store.get_conversation("missing")) is None

    def test_add_message_moves_pointer(self):
        """Test appending makes the target conversation current."""
        async def scenario():
            first = await self.store.start_new_conversation()
            await self.store.start_new_conversation()
            await self.store.add_message(first, Message(role=MessageRole.USER, content="back"))
            return first

        first = run(scenario())
        assert self.store.get_current_conversation_id() == first

    def test_get_all_conversations_sorted_by_updated(self):
        """Test listing orders by updated_at descending."""
        async def scenario():
            a = await self.store.start_new_conversation("A")
            b = await self.store.start_new_conversation("B")
            await asyncio.sleep(0.005)
            await self.store.add_message(a, Message(role=MessageRole.USER, content="bump"))
            return a, b, await self.store.get_all_conversations()

        a, b, conversations = run(scenario())
        assert [c.id for c in conversations] == [a, b]

    def test_get_all_conversations_normalizes_malformed_records(self):
        """Test missing fields are defaulted and garbage entries are skipped."""
        self.storage._data["dash_conversations_partial"] = json.dumps({"created_at": 1000})
        self.storage._data["dash_conversations_garbage"] = "{not json"

        conversations = run(self.store.get_all_conversations())

        assert len(conversations) == 1
        record = conversations[0]
        assert record.id == "partial"
        assert record.title == "Conversation"
        assert record.messages == []
        assert record.updated_at == 1000

    def test_invalid_message_does_not_hide_conversation(self):
        """Test one corrupt message is dropped while the record stays readable."""
        async def scenario():
            conversation_id = await self.store.start_new_conversation("Lessons")
            for text in ("first", "second", "third"):
                await self.store.add_message(conversation_id, Message(role=MessageRole.USER, content=text))

            key = f"dash_conversations_{conversation_id}"
            stored = json.loads(self.storage._data[key])
            stored["messages"][1]["role"] = "system"
            del stored["messages"][2]["timestamp"]
            del stored["messages"][2]["id"]
            self.storage._data[key] = json.dumps(stored)

            record = await self.store.get_conversation(conversation_id)
            again = await self.store.get_conversation(conversation_id)
            listed = await self.store.get_all_conversations()
            await self.store.add_message(conversation_id, Message(role=MessageRole.USER, content="fourth"))
            return conversation_id, stored, record, again, listed, await self.store.get_conversation(conversation_id)

        conversation_id, stored, record, again, listed, updated = run(scenario())

        assert [m.content for m in record.messages] == ["first", "third"]
        assert record.messages[1].timestamp == stored["created_at"]
        assert record.messages[1].id == again.messages[1].id
        assert [c.id for c in listed] == [conversation_id]
        assert [m.content for m in updated.messages] == ["first", "third", "fourth"]

    def test_delete_clears_pointer(self):
        """Test deleting the current conversation clears the pointer."""
        async def scenario():
            conversation_id = await self.store.start_new_conversation()
            await self.store.delete_conversation(conversation_id)
            return (
                await self.store.get_conversation(conversation_id),
                await self.storage.get(self.store.current_conversation_key),
            )

        record, pointer = run(scenario())
        assert record is None
        assert pointer is None
        assert self.store.get_current_conversation_id() is None

    def test_delete_other_keeps_pointer(self):
        """Test deleting a non-current conversation leaves the pointer."""
        async def scenario():
            old = await self.store.start_new_conversation()
            current = await self.store.start_new_conversation()
            await self.store.delete_conversation(old)
            return current

        current = run(scenario())
        assert self.store.get_current_conversation_id() == current

    def test_initialize_resumes_pointer(self):
        """Test a fresh store instance resumes the persisted pointer."""
        async def scenario():
            conversation_id = await self.store.start_new_conversation()
            restarted = ConversationStore(self.storage)
            await restarted.initialize()
            return conversation_id, restarted.get_current_conversation_id()

        conversation_id, resumed = run(scenario())
        assert resumed == conversation_id

    def test_export_conversation(self):
        """Test export renders title, date and each message in order."""
        async def scenario():
            conversation_id = await self.store.start_new_conversation("Homework")
            await self.store.add_message(conversation_id, Message(role=MessageRole.USER, content="Hello"))
            await self.store.add_message(conversation_id, Message(role=MessageRole.ASSISTANT, content="Hi there"))
            return await self.store.export_conversation(conversation_id)

        text = run(scenario())

        assert text.startswith("Dash AI Assistant Conversation")
        assert "Title: Homework" in text
        assert "Date: " in text
        assert "=" * 50 in text
        assert text.index("You: Hello") < text.index("Dash: Hi there")
        assert "] You: Hello" in text

    def test_export_missing_conversation_raises(self):
        """Test exporting an unknown conversation raises."""
        with pytest.raises(ConversationNotFoundError):
            run(self.store.export_conversation("missing"))

    def test_storage_write_failure_is_swallowed(self):
        """Test persistence failures never propagate."""
        store = ConversationStore(FailingStorage())

        async def scenario():
            conversation_id = await store.start_new_conversation()
            await store.add_message(conversation_id, Message(role=MessageRole.USER, content="hi"))
            return conversation_id, await store.get_conversation(conversation_id)

        conversation_id, record = run(scenario())
        assert conversation_id
        assert record is None

    def test_update_title_and_summary(self):
        """Test renaming and the heuristic summary."""
        async def scenario():
            conversation_id = await self.store.start_new_conversation()
            empty = await self.store.generate_conversation_summary(conversation_id)
            await self.store.update_conversation_title(conversation_id, "Grade 4 maths")
            await self.store.add_message(conversation_id, Message(role=MessageRole.USER, content="Plan a fractions lesson"))
            summary = await self.store.generate_conversation_summary(conversation_id)
            return empty, summary, await self.store.get_conversation(conversation_id)

        empty, summary, record = run(scenario())
        assert empty == "Empty conversation"
        assert summary == '"Plan a fractions lesson..." (1 messages)'
        assert record.title == "Grade 4 maths"

    def test_trim_conversation(self):
        """Test trimming keeps only the most recent messages."""
        async def scenario():
            conversation_id = await self.store.start_new_conversation()
            for i in range(5):
                await self.store.add_message(conversation_id, Message(role=MessageRole.USER, content=f"m{i}"))
            await self.store.trim_conversation(conversation_id, 2)
            return await self.store.get_conversation(conversation_id)

        record = run(scenario())
        assert [m.content for m in record.messages] == ["m3", "m4"]
