"""Shared utilities: token estimation and circuit breaking."""

from chatmemory.utils.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from chatmemory.utils.tokens import (
    HeuristicTokenCounter,
    TokenCounter,
    estimate_message_tokens,
    estimate_tokens,
    estimate_total_tokens,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "HeuristicTokenCounter",
    "TokenCounter",
    "estimate_message_tokens",
    "estimate_tokens",
    "estimate_total_tokens",
]
