"""Conversation-level API: append, build prompts, follow-ups and stats."""

from chatmemory.conversation.follow_up import FollowUpGenerator, HeuristicFollowUpGenerator
from chatmemory.conversation.manager import ConversationManager, ConversationStats

__all__ = [
    "ConversationManager",
    "ConversationStats",
    "FollowUpGenerator",
    "HeuristicFollowUpGenerator",
]
