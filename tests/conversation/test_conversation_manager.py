"""Tests for the conversation manager."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from chatmemory.config.schema import ConversationConfig, MemoryConfig
from chatmemory.conversation.follow_up import HeuristicFollowUpGenerator
from chatmemory.conversation.manager import ConversationManager
from chatmemory.embeddings.hashing import HashingEmbedding
from chatmemory.errors import (
    CollaboratorTimeoutError,
    EmbeddingError,
    PersistenceError,
    VectorStoreError,
)
from chatmemory.memory.schema import Message, MessageRole
from chatmemory.memory.strategies import SummarizationStrategy
from chatmemory.memory.summarizer import DeterministicSummarizer
from chatmemory.persistence.memory import InMemoryMessageStore
from chatmemory.utils.tokens import HeuristicTokenCounter
from chatmemory.vector.memory import InMemoryVectorStore


@pytest.fixture
def store():
    return InMemoryVectorStore(dimensions=512)


@pytest.fixture
def persistence():
    return InMemoryMessageStore()


@pytest.fixture
def manager(counter, store, persistence):
    """Manager with persistence and recall over hashing embeddings."""
    return ConversationManager(
        token_counter=counter,
        persistence=persistence,
        vector_store=store,
        embedding_service=HashingEmbedding(dimensions=512),
        follow_up_generator=HeuristicFollowUpGenerator(),
        memory_config=MemoryConfig(min_similarity=0.2),
    )


def failing_service():
    service = MagicMock()
    service.name = "broken"
    service.dimensions = 512
    service.embed = AsyncMock(side_effect=RuntimeError("down"))
    service.embed_batch = AsyncMock(side_effect=RuntimeError("down"))
    return service


# Prompt building


@pytest.mark.asyncio
async def test_empty_conversation_prompt():
    """Test that an empty conversation builds an empty prompt."""
    payload = await ConversationManager().build_prompt(500)

    assert payload.prompt_text == ""
    assert payload.included_messages == []
    assert payload.estimated_tokens == 0
    assert payload.summary is None
    assert payload.trace.strategy_used == "sliding_window"


@pytest.mark.asyncio
async def test_build_prompt_renders_conversation(counter):
    """Test the conversation section format."""
    manager = ConversationManager(token_counter=counter)
    await manager.append_user_message("hello")
    await manager.append_assistant_message("hi there")

    payload = await manager.build_prompt(1000)

    assert payload.prompt_text == "[Conversation]\nuser: hello\nassistant: hi there"
    assert payload.estimated_tokens == 13
    assert [m.content for m in payload.included_messages] == ["hello", "hi there"]
    assert payload.trace.token_budget == 1000
    assert payload.trace.selected_message_ids == [m.id for m in manager.messages]


@pytest.mark.asyncio
async def test_sixty_messages_fit_budget():
    """Test the 60 x 20-token conversation against a 200-token budget."""
    manager = ConversationManager(token_counter=HeuristicTokenCounter())
    for i in range(60):
        await manager.append_user_message(f"{i:02d}" + "z" * 78)

    payload = await manager.build_prompt(200)

    assert len(payload.included_messages) == 10
    assert payload.included_messages == manager.messages[-10:]
    assert payload.estimated_tokens <= 200


@pytest.mark.asyncio
async def test_build_prompt_with_recall(manager):
    """Test that older relevant content is recalled into the prompt."""
    await manager.append_user_message("My favorite color is blue.")
    for i in range(6):
        await manager.append_assistant_message(f"filler message number {i}")

    payload = await manager.build_prompt(100, query="favorite color")

    assert [m.content for m in payload.included_messages] == [
        f"filler message number {i}" for i in range(3, 6)
    ]
    assert [item.content for item in payload.recalled] == ["My favorite color is blue."]
    assert "[Recalled context]\n- user: My favorite color is blue." in payload.prompt_text
    assert payload.prompt_text.index("[Recalled context]") < payload.prompt_text.index(
        "[Conversation]"
    )
    assert payload.estimated_tokens == 95
    assert payload.trace.recall_query == "favorite color"


@pytest.mark.asyncio
async def test_build_prompt_with_summary(counter, conversation):
    """Test the summary section and the summary hook."""
    created = []
    manager = ConversationManager(
        token_counter=counter,
        strategy=SummarizationStrategy(DeterministicSummarizer(max_chars=10)),
        on_summary_created=created.append,
    )
    for message in conversation:
        await manager.append_message(message)

    payload = await manager.build_prompt(100)

    assert payload.summary == "message 00…"
    assert payload.prompt_text.startswith("[Summary of earlier conversation]\nmessage 00…")
    assert payload.estimated_tokens == 91
    assert len(created) == 1
    assert created[0].role == MessageRole.SUMMARY
    assert created[0].content == "message 00…"
    assert payload.trace.excluded_message_ids == ["m00", "m01"]


# Appending


@pytest.mark.asyncio
async def test_append_persists_and_indexes(manager, store, persistence):
    """Test that appended messages are stored and indexed."""
    stored = []
    manager.on_message_stored = stored.append

    message = await manager.append_user_message("hello world", metadata={"source": "test"})

    assert manager.get_message(message.id) == message
    assert await persistence.load_messages() == [message]
    assert store.count() == 1
    entry = store.get([f"{message.id}#0"])[0]
    assert entry.metadata["message_id"] == message.id
    assert entry.metadata["role"] == "user"
    assert entry.metadata["source"] == "test"
    assert stored == [message]


@pytest.mark.asyncio
async def test_duplicate_append_rejected(manager):
    """Test that a message can only be appended once."""
    message = await manager.append_user_message("hello")
    with pytest.raises(ValueError):
        await manager.append_message(message)
    assert len(manager.messages) == 1


@pytest.mark.asyncio
async def test_system_messages_not_indexed_by_default(manager, store):
    """Test that system messages stay out of the vector store."""
    await manager.append_system_message("You are helpful.")
    assert store.count() == 0


@pytest.mark.asyncio
async def test_system_messages_indexed_when_enabled(counter, store):
    """Test the index_system_messages switch."""
    manager = ConversationManager(
        token_counter=counter,
        vector_store=store,
        embedding_service=HashingEmbedding(dimensions=512),
        conversation_config=ConversationConfig(index_system_messages=True),
    )
    await manager.append_system_message("You are helpful.")
    assert store.count() == 1


@pytest.mark.asyncio
async def test_persistence_failure_aborts_append(counter):
    """Test that a persistence failure leaves the log unchanged."""
    persistence = MagicMock()
    persistence.save_messages = AsyncMock(side_effect=OSError("disk full"))
    manager = ConversationManager(token_counter=counter, persistence=persistence)

    with pytest.raises(PersistenceError) as exc_info:
        await manager.append_user_message("hello")

    assert isinstance(exc_info.value.__cause__, OSError)
    assert manager.messages == []


@pytest.mark.asyncio
async def test_persistence_timeout(counter):
    """Test that slow persistence raises CollaboratorTimeoutError."""

    async def slow_save(messages):
        await asyncio.sleep(1.0)

    persistence = MagicMock()
    persistence.save_messages = slow_save
    manager = ConversationManager(
        token_counter=counter,
        persistence=persistence,
        conversation_config=ConversationConfig(collaborator_timeout=0.01),
    )

    with pytest.raises(CollaboratorTimeoutError):
        await manager.append_user_message("hello")
    assert manager.messages == []


@pytest.mark.asyncio
async def test_indexing_failure_strict(counter, store):
    """Test that indexing failures keep the message and re-raise."""
    stored = []
    manager = ConversationManager(
        token_counter=counter,
        vector_store=store,
        embedding_service=failing_service(),
        on_message_stored=stored.append,
    )

    with pytest.raises(EmbeddingError):
        await manager.append_user_message("hello")

    assert [m.content for m in manager.messages] == ["hello"]
    assert manager.get_stats().index_failures == 1
    assert len(stored) == 1


@pytest.mark.asyncio
async def test_indexing_failure_lenient(counter, store):
    """Test that indexing failures are counted but not raised when lenient."""
    manager = ConversationManager(
        token_counter=counter,
        vector_store=store,
        embedding_service=failing_service(),
        conversation_config=ConversationConfig(strict_indexing=False),
    )

    message = await manager.append_user_message("hello")

    assert manager.get_message(message.id) is not None
    assert manager.get_stats().index_failures == 1
    assert store.count() == 0


@pytest.mark.asyncio
async def test_vector_store_failure_lenient(counter, store):
    """Test that a failing vector store is wrapped, counted and not raised when lenient."""
    store.insert = MagicMock(side_effect=RuntimeError("backend down"))
    stored = []
    manager = ConversationManager(
        token_counter=counter,
        vector_store=store,
        embedding_service=HashingEmbedding(dimensions=512),
        conversation_config=ConversationConfig(strict_indexing=False),
        on_message_stored=stored.append,
    )

    message = await manager.append_user_message("hello world")

    assert manager.messages == [message]
    assert stored == [message]
    assert manager.get_stats().index_failures == 1


@pytest.mark.asyncio
async def test_vector_store_failure_strict(counter, store):
    """Test that a failing vector store raises VectorStoreError after the append."""
    store.insert = MagicMock(side_effect=RuntimeError("backend down"))
    manager = ConversationManager(
        token_counter=counter,
        vector_store=store,
        embedding_service=HashingEmbedding(dimensions=512),
    )

    with pytest.raises(VectorStoreError) as exc_info:
        await manager.append_user_message("hello world")

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert [m.content for m in manager.messages] == ["hello world"]


@pytest.mark.asyncio
async def test_hook_errors_are_not_raised(counter):
    """Test that a failing hook does not break the append."""
    hook = MagicMock(side_effect=RuntimeError("hook failed"))
    manager = ConversationManager(token_counter=counter, on_message_stored=hook)

    await manager.append_user_message("hello")

    hook.assert_called_once()
    assert len(manager.messages) == 1


# Lifecycle


@pytest.mark.asyncio
async def test_get_stats(manager):
    """Test conversation statistics."""
    await manager.append_system_message("rules")
    await manager.append_user_message("hello")
    await manager.append_assistant_message("hi there")
    await manager.build_prompt(1000)

    stats = manager.get_stats()

    assert stats.total_messages == 3
    assert stats.user_messages == 1
    assert stats.assistant_messages == 1
    assert stats.system_messages == 1
    assert stats.total_tokens == 18
    assert stats.vector_count == 2
    assert stats.last_build_tokens == 18
    assert stats.oldest_message == manager.messages[0].timestamp
    assert stats.to_dict()["total_messages"] == 3


def test_stats_empty():
    """Test statistics of an empty conversation."""
    stats = ConversationManager().get_stats()

    assert stats.total_messages == 0
    assert stats.vector_count is None
    assert stats.last_build_tokens is None
    assert stats.oldest_message is None


@pytest.mark.asyncio
async def test_clear(manager, store, persistence):
    """Test that clear empties the log, persistence and vector store."""
    await manager.append_user_message("hello")
    await manager.build_prompt(100)

    await manager.clear()

    assert manager.messages == []
    assert await persistence.load_messages() == []
    assert store.count() == 0
    assert manager.get_stats().last_build_tokens is None


@pytest.mark.asyncio
async def test_clear_restores_persistence_on_failure(manager, store, persistence):
    """Test that a vector store failure leaves everything in place."""
    message = await manager.append_user_message("hello")
    store.clear = MagicMock(side_effect=RuntimeError("locked"))

    with pytest.raises(VectorStoreError) as exc_info:
        await manager.clear()

    assert isinstance(exc_info.value.__cause__, RuntimeError)

    assert manager.messages == [message]
    assert await persistence.load_messages() == [message]


@pytest.mark.asyncio
async def test_delete_messages(manager, store, persistence):
    """Test deleting messages everywhere."""
    keep = await manager.append_user_message("keep me")
    drop = await manager.append_user_message("drop me")

    removed = await manager.delete_messages([drop.id, "unknown"])

    assert removed == 1
    assert manager.messages == [keep]
    assert await persistence.load_messages() == [keep]
    assert store.count() == 1


@pytest.mark.asyncio
async def test_delete_after_load_removes_recalled_content(manager, counter, store, persistence):
    """Test that a message deleted in a later session can no longer be recalled."""
    secret = await manager.append_user_message("my secret password is swordfish")
    for i in range(20):
        await manager.append_assistant_message(f"filler message number {i}")

    restored = ConversationManager(
        token_counter=counter,
        persistence=persistence,
        vector_store=store,
        embedding_service=HashingEmbedding(dimensions=512),
        memory_config=MemoryConfig(min_similarity=0.2),
    )
    assert await restored.load() == 21

    assert await restored.delete_messages([secret.id]) == 1
    payload = await restored.build_prompt(40, query="secret password swordfish")

    assert "swordfish" not in payload.prompt_text
    assert store.count() == 20
    assert await persistence.load_messages() == restored.messages


@pytest.mark.asyncio
async def test_load_and_reindex(counter, store, persistence, conversation):
    """Test restoring a conversation from persistence and rebuilding its index."""
    await persistence.save_messages(conversation)
    manager = ConversationManager(
        token_counter=counter,
        persistence=persistence,
        vector_store=store,
        embedding_service=HashingEmbedding(dimensions=512),
    )

    assert await manager.load() == 10
    assert manager.messages == conversation
    assert store.count() == 0

    assert await manager.reindex() == 10
    assert store.count() == 10

    # Reindexing replaces rather than duplicates entries
    assert await manager.reindex() == 10
    assert store.count() == 10


@pytest.mark.asyncio
async def test_reindex_keeps_entries_when_embedding_fails(manager, store):
    """Test that a failed re-embed leaves the previous entries in place."""
    first = await manager.append_user_message("first message")
    second = await manager.append_assistant_message("second message")
    entry_ids = [f"{first.id}#0", f"{second.id}#0"]

    manager.embedding_pipeline.service = failing_service()

    assert await manager.reindex() == 0
    assert manager.get_stats().index_failures == 2
    assert [entry.id for entry in store.get(entry_ids)] == entry_ids


@pytest.mark.asyncio
async def test_load_without_persistence():
    """Test that load is a no-op without persistence."""
    assert await ConversationManager().load() == 0


@pytest.mark.asyncio
async def test_follow_up_questions(manager):
    """Test follow-up generation through the manager."""
    await manager.append_user_message("How do I bake bread?")
    await manager.append_assistant_message("Mix flour, water, salt and yeast.")

    questions = await manager.generate_follow_up_questions(max_questions=2)

    assert len(questions) == 2
    assert "How do I bake bread?" in questions[0]


@pytest.mark.asyncio
async def test_follow_up_without_generator():
    """Test that no generator means no questions."""
    assert await ConversationManager().generate_follow_up_questions() == []


@pytest.mark.asyncio
async def test_follow_up_failure_degrades(counter):
    """Test that generator failures yield an empty list."""
    generator = MagicMock()
    generator.generate = AsyncMock(side_effect=RuntimeError("model offline"))
    manager = ConversationManager(token_counter=counter)
    manager.register_follow_up_generator(generator)

    assert await manager.generate_follow_up_questions() == []
    generator.generate.assert_awaited_once()


@pytest.mark.asyncio
async def test_messages_are_chronological(manager):
    """Test that the log preserves append order."""
    contents = [f"turn {i}" for i in range(5)]
    for content in contents:
        await manager.append_message(Message(role=MessageRole.USER, content=content))

    assert [m.content for m in manager.messages] == contents
