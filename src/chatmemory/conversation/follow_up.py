"""Follow-up question generators."""

import re
from collections.abc import Sequence
from typing import Protocol

from chatmemory.memory.schema import Message, MessageRole

_WHITESPACE = re.compile(r"\s+")

GENERIC_SUGGESTIONS = (
    "Would you like a step-by-step plan to accomplish that?",
    "Should I provide examples for this topic?",
    "Is there anything from earlier in the conversation you want to revisit?",
)


class FollowUpGenerator(Protocol):
    """Protocol for follow-up question generators."""

    async def generate(self, messages: Sequence[Message], max_questions: int = 3) -> list[str]:
        """Suggest follow-up questions for a conversation.

        Args:
            messages: Conversation, oldest first
            max_questions: Upper bound on returned questions

        Returns:
            Question strings, best first
        """
        ...


def _snippet(text: str, limit: int) -> str:
    single = _WHITESPACE.sub(" ", text).strip()
    if len(single) <= limit:
        return single
    return single[:limit].rstrip() + "…"


class HeuristicFollowUpGenerator:
    """Template-based suggestions built from the last user and assistant turns.

    Deterministic and offline; swap in a model-backed generator for better
    questions.
    """

    def __init__(self, user_snippet_chars: int = 60, assistant_snippet_chars: int = 80):
        self.user_snippet_chars = user_snippet_chars
        self.assistant_snippet_chars = assistant_snippet_chars

    async def generate(self, messages: Sequence[Message], max_questions: int = 3) -> list[str]:
        if max_questions <= 0:
            return []

        last_user = next((m for m in reversed(messages) if m.role == MessageRole.USER), None)
        last_assistant = next(
            (m for m in reversed(messages) if m.role == MessageRole.ASSISTANT), None
        )

        suggestions = []
        if last_user is not None and last_user.content.strip():
            snippet = _snippet(last_user.content, self.user_snippet_chars)
            suggestions.append(f'Do you mean "{snippet}" or something else?')
        if last_assistant is not None and last_assistant.content.strip():
            snippet = _snippet(last_assistant.content, self.assistant_snippet_chars)
            suggestions.append(f'Would you like more detail on "{snippet}"?')
        suggestions.extend(GENERIC_SUGGESTIONS)

        # dict preserves order while dropping duplicates
        return list(dict.fromkeys(suggestions))[:max_questions]
