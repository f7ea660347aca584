"""Abstract base class for conversation memory backends.

The abstraction hides:
- Storage format
- Persistence mechanism (in-memory dict, SQLite file)
- History trimming
"""

from abc import ABC, abstractmethod

from ..llm.models import ChatMessage
from .models import ConversationState


class ConversationMemory(ABC):
    """Abstract conversation memory backend.

    Stores the ordered message history of each session. Backends constructed
    with ``max_messages`` drop the oldest non-system messages on append.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the memory backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the memory backend gracefully."""

    @abstractmethod
    async def get_state(self, session_id: str | None = None) -> ConversationState:
        """Retrieve conversation state."""

    @abstractmethod
    async def save_state(self, state: ConversationState) -> None:
        """Persist conversation state."""

    @abstractmethod
    async def add_message(
        self,
        message: ChatMessage,
        session_id: str | None = None
    ) -> None:
        """Append a message to the session history."""

    @abstractmethod
    async def get_recent_messages(
        self,
        limit: int | None = None,
        session_id: str | None = None
    ) -> list[ChatMessage]:
        """Get the most recent messages, oldest first."""

    @abstractmethod
    async def clear_history(self, session_id: str | None = None) -> None:
        """Clear conversation history for a session."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def __aenter__(self) -> "ConversationMemory":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
