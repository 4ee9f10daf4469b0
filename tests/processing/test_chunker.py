"""Tests for message chunking."""

import pytest

from chatmemory.config.schema import ChunkingConfig, ChunkingStrategy
from chatmemory.memory.schema import Message, MessageRole
from chatmemory.processing.chunker import MessageChunker
from chatmemory.utils.tokens import HeuristicTokenCounter


def message(content: str, message_id: str = "msg") -> Message:
    return Message(id=message_id, role=MessageRole.USER, content=content)


@pytest.fixture
def chunker(counter):
    """Chunker counting one token per character."""
    return MessageChunker(counter)


def contents(chunks):
    return [chunk.content for chunk in chunks]


@pytest.mark.asyncio
async def test_small_message_single_chunk(chunker):
    """Test that content within the ceiling is one chunk."""
    chunks = await chunker.chunk_message(message("Hello there."), ChunkingConfig())

    assert len(chunks) == 1
    assert chunks[0].content == "Hello there."
    assert chunks[0].sequence_index == 0
    assert chunks[0].id == "msg#0"
    assert chunks[0].estimated_tokens == 12


@pytest.mark.asyncio
async def test_blank_message_single_chunk(chunker):
    """Test that whitespace-only content yields one chunk."""
    chunks = await chunker.chunk_message(message("   "), ChunkingConfig(max_chunk_tokens=1))
    assert contents(chunks) == ["   "]


@pytest.mark.asyncio
async def test_five_thousand_characters():
    """Test a 5000-character message against the default 500-token ceiling."""
    sentence = "This sentence is part of a very long message about memory. "
    text = (sentence * 100)[:5000]
    counter = HeuristicTokenCounter()
    chunker = MessageChunker(counter)

    chunks = await chunker.chunk_message(message(text), ChunkingConfig())

    assert len(chunks) > 1
    assert all(chunk.estimated_tokens <= 500 for chunk in chunks)
    assert [chunk.sequence_index for chunk in chunks] == list(range(len(chunks)))
    for chunk in chunks:
        assert text[chunk.start : chunk.end] == chunk.content
    starts = [chunk.start for chunk in chunks]
    assert starts == sorted(starts)
    # Only whitespace between chunks is dropped
    joined = "".join(chunk.content for chunk in chunks)
    assert "".join(joined.split()) == "".join(text.split())


@pytest.mark.asyncio
async def test_sentence_boundary_packing(chunker):
    """Test that consecutive sentences are packed up to the ceiling."""
    text = "One two. Three four. Five six."

    narrow = await chunker.chunk_message(message(text), ChunkingConfig(max_chunk_tokens=12))
    assert contents(narrow) == ["One two.", "Three four.", "Five six."]

    wide = await chunker.chunk_message(message(text), ChunkingConfig(max_chunk_tokens=20))
    assert contents(wide) == ["One two. Three four.", "Five six."]


@pytest.mark.asyncio
async def test_oversized_sentence_preserved(chunker):
    """Test that an oversized sentence stays whole when sentences are preserved."""
    config = ChunkingConfig(max_chunk_tokens=10, preserve_sentences=True)
    chunks = await chunker.chunk_message(message("aaaa bbbb cccc dddd."), config)

    assert contents(chunks) == ["aaaa bbbb cccc dddd."]


@pytest.mark.asyncio
async def test_oversized_sentence_split_on_words(chunker):
    """Test word splitting when only words are preserved."""
    config = ChunkingConfig(max_chunk_tokens=10, preserve_sentences=False, preserve_words=True)
    chunks = await chunker.chunk_message(message("aaaa bbbb cccc dddd."), config)

    assert contents(chunks) == ["aaaa bbbb", "cccc dddd."]


@pytest.mark.asyncio
async def test_oversized_sentence_hard_split(chunker):
    """Test character splitting when neither words nor sentences are preserved."""
    config = ChunkingConfig(max_chunk_tokens=10, preserve_sentences=False, preserve_words=False)
    chunks = await chunker.chunk_message(message("abcdefghijklmnopqrstuvwxy."), config)

    assert contents(chunks) == ["abcdefghij", "klmnopqrst", "uvwxy."]


@pytest.mark.asyncio
async def test_fixed_size_words(chunker):
    """Test fixed-size packing of whole words."""
    config = ChunkingConfig(max_chunk_tokens=11, strategy=ChunkingStrategy.FIXED_SIZE)
    chunks = await chunker.chunk_message(message("alpha beta gamma delta"), config)

    assert contents(chunks) == ["alpha beta", "gamma delta"]


@pytest.mark.asyncio
async def test_fixed_size_characters(chunker):
    """Test fixed-size character splitting."""
    config = ChunkingConfig(
        max_chunk_tokens=5,
        strategy=ChunkingStrategy.FIXED_SIZE,
        preserve_words=False,
    )
    chunks = await chunker.chunk_message(message("abcdefghijkl"), config)

    assert contents(chunks) == ["abcde", "fghij", "kl"]


@pytest.mark.asyncio
async def test_paragraph_boundary(chunker):
    """Test that whole paragraphs are packed together."""
    text = "Para one here.\n\nPara two here.\n\nPara three."

    wide = ChunkingConfig(max_chunk_tokens=30, strategy=ChunkingStrategy.PARAGRAPH_BOUNDARY)
    chunks = await chunker.chunk_message(message(text), wide)
    assert contents(chunks) == ["Para one here.\n\nPara two here.", "Para three."]

    narrow = ChunkingConfig(max_chunk_tokens=20, strategy=ChunkingStrategy.PARAGRAPH_BOUNDARY)
    chunks = await chunker.chunk_message(message(text), narrow)
    assert contents(chunks) == ["Para one here.", "Para two here.", "Para three."]


@pytest.mark.asyncio
async def test_oversized_paragraph_falls_back_to_sentences(chunker):
    """Test sentence packing inside a paragraph that exceeds the ceiling."""
    text = "Short para.\n\nFirst sentence here. Second sentence here."
    config = ChunkingConfig(max_chunk_tokens=22, strategy=ChunkingStrategy.PARAGRAPH_BOUNDARY)

    chunks = await chunker.chunk_message(message(text), config)

    assert contents(chunks) == ["Short para.", "First sentence here.", "Second sentence here."]


@pytest.mark.asyncio
async def test_chunk_messages_and_stats(chunker):
    """Test chunking several messages and the running statistics."""
    config = ChunkingConfig(max_chunk_tokens=12)
    chunks = await chunker.chunk_messages(
        [message("One two. Three four. Five six.", "a"), message("Short.", "b")],
        config,
    )

    assert [chunk.id for chunk in chunks] == ["a#0", "a#1", "a#2", "b#0"]
    assert chunker.stats.total_messages == 2
    assert chunker.stats.total_chunks == 4
    assert chunker.stats.average_chunks_per_message == 2.0
