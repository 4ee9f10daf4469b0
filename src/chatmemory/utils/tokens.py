"""Token estimation helpers.

Estimates are approximate and only guarantee determinism and monotonicity.
For exact counts, plug in a tokenizer-backed :class:`TokenCounter`.
"""

import math
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from chatmemory.errors import InvalidConfigurationError

if TYPE_CHECKING:
    from chatmemory.memory.schema import Message

_WHITESPACE = re.compile(r"\s+")


class TokenCounter(Protocol):
    """Protocol for token estimators."""

    def estimate_tokens(self, text: str) -> int:
        """Estimate the number of tokens in text.

        Args:
            text: Text to estimate

        Returns:
            Non-negative token estimate
        """
        ...


class HeuristicTokenCounter:
    """Character-ratio token estimator.

    Collapses whitespace runs to a single space, then divides the character
    count by ``chars_per_token`` (rounding up) and adds a fixed offset.
    """

    def __init__(self, chars_per_token: float = 4.0, offset: int = 0):
        """Initialize the counter.

        Args:
            chars_per_token: Average characters per token (must be positive)
            offset: Fixed number of tokens added to every estimate

        Raises:
            InvalidConfigurationError: If chars_per_token <= 0 or offset < 0
        """
        if chars_per_token <= 0:
            msg = f"chars_per_token must be positive, got {chars_per_token}"
            raise InvalidConfigurationError(msg)
        if offset < 0:
            msg = f"offset must be non-negative, got {offset}"
            raise InvalidConfigurationError(msg)

        self.chars_per_token = chars_per_token
        self.offset = offset

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return self.offset
        normalized = _WHITESPACE.sub(" ", text)
        return math.ceil(len(normalized) / self.chars_per_token) + self.offset


_default_counter = HeuristicTokenCounter()


def estimate_tokens(text: str) -> int:
    """Estimate tokens for text with the default heuristic (~4 chars per token)."""
    return _default_counter.estimate_tokens(text)


def estimate_message_tokens(message: "Message", counter: TokenCounter | None = None) -> int:
    """Estimate tokens for a single message's content."""
    counter = counter or _default_counter
    return counter.estimate_tokens(message.content)


def estimate_total_tokens(
    messages: Iterable["Message"],
    counter: TokenCounter | None = None,
) -> int:
    """Estimate total tokens for a sequence of messages.

    Args:
        messages: Messages to count
        counter: Token counter to use (default heuristic if None)

    Returns:
        Sum of per-message estimates
    """
    counter = counter or _default_counter
    return sum(counter.estimate_tokens(msg.content) for msg in messages)
