"""Context strategies: decide which messages survive into the prompt window."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from chatmemory.errors import InvalidConfigurationError
from chatmemory.memory.schema import Message, MessageRole, StrategyResult, SummaryInfo
from chatmemory.memory.summarizer import Summarizer
from chatmemory.utils.circuit_breaker import CircuitBreaker
from chatmemory.utils.tokens import TokenCounter

logger = logging.getLogger(__name__)


class ContextStrategy(Protocol):
    """Protocol for context selection strategies."""

    name: str

    async def apply(
        self,
        messages: Sequence[Message],
        token_budget: int,
        token_counter: TokenCounter,
    ) -> StrategyResult:
        """Partition messages into included, excluded and summarized.

        Args:
            messages: Messages ordered oldest to newest (not mutated)
            token_budget: Maximum estimated tokens for included content
            token_counter: Estimator used for budget accounting

        Returns:
            StrategyResult with chronological included/excluded lists
        """
        ...


def _check_budget(token_budget: int) -> None:
    if token_budget < 0:
        msg = f"token_budget must be non-negative, got {token_budget}"
        raise InvalidConfigurationError(msg)


class SlidingWindowStrategy:
    """Keep the most recent messages that fit the budget.

    Scans newest to oldest and includes a message only if it fits in the
    remaining budget and fewer than ``lookback_messages`` are included.
    Messages are never truncated: one that does not fit is excluded whole.
    """

    name = "sliding_window"

    def __init__(self, lookback_messages: int = 50):
        if lookback_messages < 0:
            msg = f"lookback_messages must be non-negative, got {lookback_messages}"
            raise InvalidConfigurationError(msg)
        self.lookback_messages = lookback_messages

    async def apply(
        self,
        messages: Sequence[Message],
        token_budget: int,
        token_counter: TokenCounter,
    ) -> StrategyResult:
        _check_budget(token_budget)

        included: list[Message] = []
        excluded: list[Message] = []
        total_tokens = 0

        for message in reversed(messages):
            estimate = token_counter.estimate_tokens(message.content)
            if (
                total_tokens + estimate <= token_budget
                and len(included) < self.lookback_messages
            ):
                included.append(message)
                total_tokens += estimate
            else:
                excluded.append(message)

        # Collected newest-first
        included.reverse()
        excluded.reverse()

        logger.debug(
            "Sliding window kept %d/%d messages (%d/%d tokens)",
            len(included),
            len(messages),
            total_tokens,
            token_budget,
        )
        return StrategyResult(included=included, excluded=excluded, summaries=[], name=self.name)


class SummarizationStrategy:
    """Sliding window that summarizes what falls out of the window.

    A share of the budget (``summary_reserve_ratio``) is held back for
    summaries. System messages are kept ahead of the window when
    ``preserve_system_messages`` is set and they fit. Excluded conversation
    messages are summarized in chunks; summarizer failures are retried with
    exponential backoff and then replaced by a fallback summary. Repeated
    failures open a circuit breaker that skips the summarizer entirely until
    its cooldown elapses.
    """

    name = "summarization"

    def __init__(
        self,
        summarizer: Summarizer,
        lookback_messages: int = 50,
        max_summary_chunk_size: int = 20,
        summary_reserve_ratio: float = 0.2,
        preserve_system_messages: bool = True,
        max_retries: int = 2,
        retry_base_delay: float = 0.1,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        """Initialize the strategy.

        Args:
            summarizer: Summarizer used for excluded chunks
            lookback_messages: Maximum messages kept verbatim
            max_summary_chunk_size: Messages per summarized chunk
            summary_reserve_ratio: Fraction of the budget held back for summaries
            preserve_system_messages: Keep system messages ahead of the window
            max_retries: Retries per chunk before falling back
            retry_base_delay: Initial backoff delay in seconds (doubles per retry)
            circuit_breaker: Breaker guarding the summarizer (default created)
        """
        if max_summary_chunk_size <= 0:
            msg = f"max_summary_chunk_size must be positive, got {max_summary_chunk_size}"
            raise InvalidConfigurationError(msg)
        if not 0.0 <= summary_reserve_ratio < 1.0:
            msg = f"summary_reserve_ratio must be in [0, 1), got {summary_reserve_ratio}"
            raise InvalidConfigurationError(msg)
        if max_retries < 0:
            msg = f"max_retries must be non-negative, got {max_retries}"
            raise InvalidConfigurationError(msg)

        self.summarizer = summarizer
        self.window = SlidingWindowStrategy(lookback_messages=lookback_messages)
        self.max_summary_chunk_size = max_summary_chunk_size
        self.summary_reserve_ratio = summary_reserve_ratio
        self.preserve_system_messages = preserve_system_messages
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name="summarizer")

    async def apply(
        self,
        messages: Sequence[Message],
        token_budget: int,
        token_counter: TokenCounter,
    ) -> StrategyResult:
        _check_budget(token_budget)
        if not messages:
            return StrategyResult(included=[], excluded=[], summaries=[], name=self.name)

        window_budget = token_budget - int(token_budget * self.summary_reserve_ratio)

        system_kept: list[Message] = []
        system_dropped: list[Message] = []
        conversation: list[Message] = []
        used = 0
        for message in messages:
            if self.preserve_system_messages and message.role == MessageRole.SYSTEM:
                estimate = token_counter.estimate_tokens(message.content)
                if used + estimate <= window_budget:
                    system_kept.append(message)
                    used += estimate
                else:
                    system_dropped.append(message)
            else:
                conversation.append(message)

        window = await self.window.apply(conversation, window_budget - used, token_counter)

        position = {m.id: i for i, m in enumerate(messages)}
        included = sorted([*system_kept, *window.included], key=lambda m: position[m.id])
        excluded = sorted([*system_dropped, *window.excluded], key=lambda m: position[m.id])

        summaries: list[SummaryInfo] = []
        if window.excluded:
            included_tokens = sum(token_counter.estimate_tokens(m.content) for m in included)
            summaries = await self._summarize_in_chunks(window.excluded, token_counter)
            summaries = self._fit_summaries(
                summaries, token_budget - included_tokens, token_counter
            )

        logger.debug(
            "Summarization strategy: included=%d excluded=%d summaries=%d",
            len(included),
            len(excluded),
            len(summaries),
        )
        return StrategyResult(
            included=included,
            excluded=excluded,
            summaries=summaries,
            name=self.name,
        )

    async def _summarize_in_chunks(
        self,
        messages: list[Message],
        token_counter: TokenCounter,
    ) -> list[SummaryInfo]:
        summaries = []
        for start in range(0, len(messages), self.max_summary_chunk_size):
            chunk = messages[start : start + self.max_summary_chunk_size]
            summary = await self._summarize_chunk(chunk, token_counter)
            summaries.append(summary)
        return summaries

    async def _summarize_chunk(
        self,
        chunk: list[Message],
        token_counter: TokenCounter,
    ) -> SummaryInfo:
        if not self.circuit_breaker.can_attempt():
            logger.warning("Summarizer circuit open; using fallback summary")
            return self._fallback_summary(chunk, token_counter)

        for attempt in range(self.max_retries + 1):
            try:
                summary = await self.summarizer.summarize(chunk, token_counter)
            except Exception as e:
                logger.warning(
                    "Summarizer failed on attempt %d for %d messages: %s",
                    attempt + 1,
                    len(chunk),
                    e,
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_base_delay * (2**attempt))
                continue

            self.circuit_breaker.record_success()
            if summary.token_estimate_after > summary.token_estimate_before:
                logger.warning(
                    "Summary %s grew from %d to %d tokens",
                    summary.chunk_id,
                    summary.token_estimate_before,
                    summary.token_estimate_after,
                )
            return summary

        self.circuit_breaker.record_failure()
        return self._fallback_summary(chunk, token_counter)

    def _fallback_summary(
        self,
        chunk: list[Message],
        token_counter: TokenCounter,
    ) -> SummaryInfo:
        first, last = chunk[0], chunk[-1]
        text = (
            f"{len(chunk)} earlier messages from {first.timestamp:%Y-%m-%d %H:%M} "
            f"to {last.timestamp:%Y-%m-%d %H:%M} (summary unavailable)"
        )
        return SummaryInfo(
            chunk_id=f"fallback_{first.id}",
            summary=text,
            token_estimate_before=sum(token_counter.estimate_tokens(m.content) for m in chunk),
            token_estimate_after=token_counter.estimate_tokens(text),
        )

    @staticmethod
    def _fit_summaries(
        summaries: list[SummaryInfo],
        allowance: int,
        token_counter: TokenCounter,
    ) -> list[SummaryInfo]:
        """Keep the newest summaries whose combined size fits the allowance."""
        kept: list[SummaryInfo] = []
        used = 0
        for summary in reversed(summaries):
            tokens = token_counter.estimate_tokens(summary.summary)
            if used + tokens > allowance:
                break
            kept.append(summary)
            used += tokens
        if len(kept) < len(summaries):
            logger.debug("Dropped %d summaries over budget", len(summaries) - len(kept))
        kept.reverse()
        return kept
