"""Tests for the in-memory conversation registry."""

import pytest

from services.conversation.conversation_store import ConversationStore

from conftest import ASSISTANT_ID


class TestConversationStore:
    """Test registry bookkeeping."""

    def test_create_uses_default_assistant(self, assistant_client, message_log) -> None:
        """Test conversations fall back to the configured assistant."""
        store = ConversationStore(assistant_client, message_log, default_assistant_id=ASSISTANT_ID)

        conversation_id, orchestrator = store.create()

        assert orchestrator.assistant_id == ASSISTANT_ID
        assert store.get(conversation_id) is orchestrator
        assert len(store) == 1

    def test_explicit_assistant_wins(self, assistant_client, message_log) -> None:
        """Test an explicit assistant id overrides the default."""
        store = ConversationStore(assistant_client, message_log, default_assistant_id=ASSISTANT_ID)

        _, orchestrator = store.create("asst_other")

        assert orchestrator.assistant_id == "asst_other"

    def test_create_without_assistant(self, assistant_client, message_log) -> None:
        """Test creation fails without any assistant id."""
        with pytest.raises(ValueError):
            ConversationStore(assistant_client, message_log).create()

    def test_get_missing(self, assistant_client, message_log) -> None:
        """Test unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            ConversationStore(assistant_client, message_log).get("missing")

    @pytest.mark.asyncio
    async def test_remove_closes(self, assistant_client, message_log) -> None:
        """Test remove closes the orchestrator and forgets it."""
        store = ConversationStore(assistant_client, message_log, default_assistant_id=ASSISTANT_ID)
        conversation_id, orchestrator = store.create()

        await store.remove(conversation_id)

        assert orchestrator.state.closed is True
        with pytest.raises(KeyError):
            store.get(conversation_id)
        with pytest.raises(KeyError):
            await store.remove(conversation_id)

    @pytest.mark.asyncio
    async def test_close_all(self, assistant_client, message_log) -> None:
        """Test shutdown closes every conversation."""
        store = ConversationStore(assistant_client, message_log, default_assistant_id=ASSISTANT_ID)
        orchestrators = [store.create()[1] for _ in range(3)]

        await store.close_all()

        assert len(store) == 0
        assert all(o.state.closed for o in orchestrators)
