"""Conversation memory module for taoloop.

Keeps the ordered message history of each session, optionally bounded to
the most recent N entries.
"""

from .base import ConversationMemory
from .factory import create_conversation_memory
from .models import ConversationState, window_messages

__all__ = [
    "ConversationMemory",
    "ConversationState",
    "create_conversation_memory",
    "window_messages",
]
