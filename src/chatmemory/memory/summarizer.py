"""Summarizers that condense runs of excluded messages."""

import logging
import uuid
from collections.abc import Sequence
from typing import Protocol

from chatmemory.errors import InvalidConfigurationError, SummarizationError
from chatmemory.memory.schema import Message, SummaryInfo
from chatmemory.utils.tokens import TokenCounter

logger = logging.getLogger(__name__)


class Summarizer(Protocol):
    """Protocol for summarizer implementations."""

    async def summarize(
        self,
        messages: Sequence[Message],
        token_counter: TokenCounter,
    ) -> SummaryInfo:
        """Summarize messages into a single SummaryInfo.

        Args:
            messages: Messages to summarize (chronological)
            token_counter: Counter used for the before/after estimates

        Returns:
            Summary with token estimates

        Raises:
            SummarizationError: If no summary can be produced
        """
        ...


class DeterministicSummarizer:
    """Joins message contents and truncates to ``max_chars``.

    Lossy and model-free; useful as a default and in tests.
    """

    def __init__(self, max_chars: int = 200):
        if max_chars <= 0:
            msg = f"max_chars must be positive, got {max_chars}"
            raise InvalidConfigurationError(msg)
        self.max_chars = max_chars

    async def summarize(
        self,
        messages: Sequence[Message],
        token_counter: TokenCounter,
    ) -> SummaryInfo:
        if not messages:
            raise SummarizationError("Nothing to summarize: no messages given")

        chunk_id = f"summary_{uuid.uuid4().hex[:12]}"

        combined = " ".join(m.content.strip() for m in messages if m.content.strip())
        before = token_counter.estimate_tokens(combined)

        if len(combined) > self.max_chars:
            summary = combined[: self.max_chars].rstrip() + "…"
        else:
            summary = combined

        after = token_counter.estimate_tokens(summary)
        logger.debug(
            "Deterministic summary of %d messages: %d -> %d tokens",
            len(messages),
            before,
            after,
        )
        return SummaryInfo(
            chunk_id=chunk_id,
            summary=summary,
            token_estimate_before=before,
            token_estimate_after=after,
        )
