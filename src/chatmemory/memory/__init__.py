"""Context selection for conversation memory.

Components:

- :class:`MessageLog` - In-process ordered message log
- :class:`SlidingWindowStrategy` - Keep the newest messages that fit the budget
- :class:`SummarizationStrategy` - Sliding window plus summaries of what fell out
- :class:`MemoryManager` - Strategy selection combined with vector recall
"""

from chatmemory.memory.log import MessageLog
from chatmemory.memory.manager import MemoryContext, MemoryManager
from chatmemory.memory.schema import (
    InclusionTrace,
    Message,
    MessageRole,
    PromptPayload,
    RecalledItem,
    StrategyResult,
    SummaryInfo,
)
from chatmemory.memory.strategies import (
    ContextStrategy,
    SlidingWindowStrategy,
    SummarizationStrategy,
)
from chatmemory.memory.summarizer import DeterministicSummarizer, Summarizer

__all__ = [
    "ContextStrategy",
    "DeterministicSummarizer",
    "InclusionTrace",
    "MemoryContext",
    "MemoryManager",
    "Message",
    "MessageLog",
    "MessageRole",
    "PromptPayload",
    "RecalledItem",
    "SlidingWindowStrategy",
    "StrategyResult",
    "SummarizationStrategy",
    "Summarizer",
    "SummaryInfo",
]
