"""Split oversized messages into token-bounded chunks for embedding.

Chunks are always substrings of the original content, emitted in order.
Boundaries follow paragraphs (blank lines) and sentences (``.``, ``!`` or
``?`` followed by whitespace) depending on the configured strategy.
"""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from chatmemory.config.schema import ChunkingConfig, ChunkingStrategy
from chatmemory.memory.schema import Message
from chatmemory.utils.tokens import TokenCounter

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_WORD = re.compile(r"\S+")

Span = tuple[int, int]


@dataclass(frozen=True)
class Chunk:
    """A token-bounded piece of a message."""

    parent_message_id: str
    content: str
    estimated_tokens: int
    sequence_index: int
    start: int  # Offset of the chunk in the parent content
    end: int

    @property
    def id(self) -> str:
        return f"{self.parent_message_id}#{self.sequence_index}"


@dataclass
class ChunkingStats:
    """Running statistics about chunking."""

    total_messages: int = 0
    total_chunks: int = 0
    total_chars: int = 0

    @property
    def average_chunks_per_message(self) -> float:
        return self.total_chunks / self.total_messages if self.total_messages else 0.0

    @property
    def average_chunk_chars(self) -> float:
        return self.total_chars / self.total_chunks if self.total_chunks else 0.0


def _trim(text: str, start: int, end: int) -> Span:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def _split_spans(text: str, start: int, end: int, pattern: re.Pattern[str]) -> list[Span]:
    """Split text[start:end] on pattern, returning trimmed non-empty spans."""
    spans = []
    cursor = start
    for match in pattern.finditer(text, start, end):
        spans.append(_trim(text, cursor, match.start()))
        cursor = match.end()
    spans.append(_trim(text, cursor, end))
    return [(s, e) for s, e in spans if e > s]


class MessageChunker:
    """Splits message content into chunks of at most ``max_chunk_tokens``."""

    def __init__(self, token_counter: TokenCounter):
        self.token_counter = token_counter
        self.stats = ChunkingStats()

    async def chunk_message(self, message: Message, config: ChunkingConfig) -> list[Chunk]:
        """Chunk a single message.

        Args:
            message: Message to split
            config: Chunking configuration

        Returns:
            Chunks in original order, ``sequence_index`` starting at 0
        """
        text = message.content
        max_tokens = config.max_chunk_tokens

        if not text.strip() or self._fits(text, 0, len(text), max_tokens):
            spans = [(0, len(text))]
        elif config.strategy == ChunkingStrategy.FIXED_SIZE:
            spans = self._fixed_size(text, max_tokens, config.preserve_words)
        elif config.strategy == ChunkingStrategy.PARAGRAPH_BOUNDARY:
            spans = self._paragraph_boundary(text, max_tokens, config)
        else:
            spans = self._sentence_boundary(text, 0, len(text), max_tokens, config)

        chunks = [
            Chunk(
                parent_message_id=message.id,
                content=text[start:end],
                estimated_tokens=self.token_counter.estimate_tokens(text[start:end]),
                sequence_index=index,
                start=start,
                end=end,
            )
            for index, (start, end) in enumerate(spans)
        ]

        self.stats.total_messages += 1
        self.stats.total_chunks += len(chunks)
        self.stats.total_chars += sum(len(c.content) for c in chunks)

        if len(chunks) > 1:
            logger.debug(
                "Split message %s (%d chars) into %d chunks using %s",
                message.id,
                len(text),
                len(chunks),
                config.strategy.value,
            )
        return chunks

    async def chunk_messages(
        self,
        messages: Sequence[Message],
        config: ChunkingConfig,
    ) -> list[Chunk]:
        """Chunk several messages, concatenating their chunks in order."""
        chunks: list[Chunk] = []
        for message in messages:
            chunks.extend(await self.chunk_message(message, config))
        return chunks

    # Strategies

    def _sentence_boundary(
        self,
        text: str,
        start: int,
        end: int,
        max_tokens: int,
        config: ChunkingConfig,
    ) -> list[Span]:
        sentences = [
            sentence
            for paragraph in _split_spans(text, start, end, _PARAGRAPH_BREAK)
            for sentence in _split_spans(text, *paragraph, _SENTENCE_BREAK)
        ]
        return self._pack(
            text,
            sentences,
            max_tokens,
            lambda s, e: self._split_oversized_sentence(text, s, e, max_tokens, config),
        )

    def _paragraph_boundary(
        self,
        text: str,
        max_tokens: int,
        config: ChunkingConfig,
    ) -> list[Span]:
        paragraphs = _split_spans(text, 0, len(text), _PARAGRAPH_BREAK)
        return self._pack(
            text,
            paragraphs,
            max_tokens,
            lambda s, e: self._sentence_boundary(text, s, e, max_tokens, config),
        )

    def _fixed_size(self, text: str, max_tokens: int, preserve_words: bool) -> list[Span]:
        if not preserve_words:
            return self._hard_split(text, 0, len(text), max_tokens)
        words = [m.span() for m in _WORD.finditer(text)]
        return self._pack(text, words, max_tokens, lambda s, e: [(s, e)])

    # Helpers

    def _split_oversized_sentence(
        self,
        text: str,
        start: int,
        end: int,
        max_tokens: int,
        config: ChunkingConfig,
    ) -> list[Span]:
        if config.preserve_sentences:
            return [(start, end)]
        if config.preserve_words:
            words = [m.span() for m in _WORD.finditer(text, start, end)]
            return self._pack(text, words, max_tokens, lambda s, e: [(s, e)])
        return self._hard_split(text, start, end, max_tokens)

    def _pack(
        self,
        text: str,
        spans: list[Span],
        max_tokens: int,
        split_oversized: Callable[[int, int], list[Span]],
    ) -> list[Span]:
        """Greedily merge consecutive spans while the merged text fits."""
        packed: list[Span] = []
        current: Span | None = None

        for start, end in spans:
            if current is not None and self._fits(text, current[0], end, max_tokens):
                current = (current[0], end)
                continue
            if current is not None:
                packed.append(current)
                current = None
            if self._fits(text, start, end, max_tokens):
                current = (start, end)
            else:
                packed.extend(split_oversized(start, end))

        if current is not None:
            packed.append(current)
        return packed

    def _hard_split(self, text: str, start: int, end: int, max_tokens: int) -> list[Span]:
        """Split by characters, taking the longest prefix that fits each time."""
        spans = []
        cursor = start
        while cursor < end:
            lo, hi = cursor + 1, end
            best = cursor + 1
            while lo <= hi:
                mid = (lo + hi) // 2
                if self._fits(text, cursor, mid, max_tokens):
                    best = mid
                    lo = mid + 1
                else:
                    hi = mid - 1
            spans.append((cursor, best))
            cursor = best
        return spans

    def _fits(self, text: str, start: int, end: int, max_tokens: int) -> bool:
        return self.token_counter.estimate_tokens(text[start:end]) <= max_tokens
