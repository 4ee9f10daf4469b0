"""Tests for SQLite message persistence."""

import pytest

from chatmemory.errors import PersistenceError
from chatmemory.memory.schema import MessageRole
from chatmemory.persistence.sqlite import SQLiteMessageStore


@pytest.fixture
def storage(tmp_path):
    """Create a temporary storage instance."""
    return SQLiteMessageStore(tmp_path / "messages.db")


@pytest.mark.asyncio
async def test_save_and_load(storage, conversation):
    """Test that messages load back in save order."""
    await storage.save_messages(conversation[:3])
    await storage.save_messages(conversation[3:])

    loaded = await storage.load_messages()

    assert loaded == conversation
    assert storage.get_message_count() == 10


@pytest.mark.asyncio
async def test_metadata_round_trip(storage, make_message):
    """Test that metadata and role survive storage."""
    message = make_message("rules", role=MessageRole.SYSTEM).copy_with(metadata={"k": [1, 2]})
    await storage.save_messages([message])

    (loaded,) = await storage.load_messages()

    assert loaded.role == MessageRole.SYSTEM
    assert loaded.metadata == {"k": [1, 2]}
    assert loaded.timestamp == message.timestamp


@pytest.mark.asyncio
async def test_save_is_upsert(storage, conversation):
    """Test that saving an existing ID updates it in place."""
    await storage.save_messages(conversation[:2])
    await storage.save_messages([conversation[0].copy_with(content="edited")])

    loaded = await storage.load_messages()

    assert [m.id for m in loaded] == ["m00", "m01"]
    assert loaded[0].content == "edited"


@pytest.mark.asyncio
async def test_delete_and_clear(storage, conversation):
    """Test deleting by ID and clearing."""
    await storage.save_messages(conversation)

    await storage.delete_messages(["m01", "m02"])
    assert storage.get_message_count() == 8

    await storage.clear()
    assert await storage.load_messages() == []


@pytest.mark.asyncio
async def test_conversations_are_isolated(tmp_path, conversation):
    """Test that conversation IDs partition a shared database."""
    path = tmp_path / "shared.db"
    first = SQLiteMessageStore(path, conversation_id="first")
    second = SQLiteMessageStore(path, conversation_id="second")

    await first.save_messages(conversation[:2])
    await second.save_messages(conversation[2:5])
    await first.clear()

    assert await first.load_messages() == []
    assert len(await second.load_messages()) == 3


@pytest.mark.asyncio
async def test_persists_across_instances(tmp_path, conversation):
    """Test that a new store on the same file sees earlier messages."""
    path = tmp_path / "messages.db"
    await SQLiteMessageStore(path).save_messages(conversation)

    assert len(await SQLiteMessageStore(path).load_messages()) == 10


def test_unusable_path(tmp_path):
    """Test that an unusable database path raises PersistenceError."""
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    with pytest.raises(PersistenceError):
        SQLiteMessageStore(blocker / "messages.db")
