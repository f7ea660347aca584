"""Data models for conversation memory.

These models define the structure of conversation state independent of
the storage backend used.
"""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

from ..llm.models import ChatMessage, MessageRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def window_messages(messages: list[ChatMessage], limit: int | None) -> list[ChatMessage]:
    """Select the most recent messages within a size limit.

    System messages are always kept, in their original position at the front;
    non-system messages fill the remaining ``limit - len(system)`` slots.

    Args:
        messages: Full ordered history
        limit: Maximum number of entries (None for no limit)

    Returns:
        New list with at most ``max(limit, len(system))`` messages
    """
    if limit is None or len(messages) <= limit:
        return list(messages)

    system = [m for m in messages if m.role == MessageRole.SYSTEM]
    others = [m for m in messages if m.role != MessageRole.SYSTEM]
    keep = max(limit - len(system), 0)

    return system + (others[-keep:] if keep else [])


class ConversationState(BaseModel):
    """Complete conversation state for a session.

    The history is an ordered list of messages, appended as turns occur and
    trimmed from the oldest end.
    """

    session_id: str = Field(default_factory=lambda: str(uuid4()))
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def add_message(self, message: ChatMessage) -> None:
        """Append a message to the history."""
        self.messages.append(message)
        self.updated_at = _utcnow()

    def window(self, limit: int | None = None) -> list[ChatMessage]:
        """Get the most recent messages, keeping system messages."""
        return window_messages(self.messages, limit)

    def trim(self, limit: int | None) -> int:
        """Drop old messages beyond the limit.

        Returns:
            Number of messages removed
        """
        kept = self.window(limit)
        removed = len(self.messages) - len(kept)
        if removed:
            self.messages = kept
            self.updated_at = _utcnow()
        return removed

    def to_context_string(self, limit: int | None = None) -> str:
        """Render recent history as ``[ROLE]: text`` lines."""
        return "\n".join(
            f"[{msg.role.value.upper()}]: {msg.text}"
            for msg in self.window(limit)
        )
