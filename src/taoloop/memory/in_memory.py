"""In-memory conversation memory backend.

Simple dict-based storage for session-only memory.
Data is lost when the application exits.
"""

from uuid import uuid4

from ..llm.models import ChatMessage
from .base import ConversationMemory
from .models import ConversationState


class InMemoryConversationMemory(ConversationMemory):
    """In-memory conversation memory (session-only)."""

    def __init__(
        self,
        default_session_id: str | None = None,
        max_messages: int | None = None
    ):
        if max_messages is not None and max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._default_session_id = default_session_id or str(uuid4())
        self._max_messages = max_messages
        self._states: dict[str, ConversationState] = {}

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def get_state(self, session_id: str | None = None) -> ConversationState:
        """Get or create conversation state."""
        sid = session_id or self._default_session_id
        if sid not in self._states:
            self._states[sid] = ConversationState(session_id=sid)
        return self._states[sid]

    async def save_state(self, state: ConversationState) -> None:
        if self._max_messages is not None:
            state.trim(self._max_messages)
        self._states[state.session_id] = state

    async def add_message(
        self,
        message: ChatMessage,
        session_id: str | None = None
    ) -> None:
        state = await self.get_state(session_id)
        state.add_message(message)
        if self._max_messages is not None:
            state.trim(self._max_messages)

    async def get_recent_messages(
        self,
        limit: int | None = None,
        session_id: str | None = None
    ) -> list[ChatMessage]:
        state = await self.get_state(session_id)
        return state.window(limit)

    async def clear_history(self, session_id: str | None = None) -> None:
        sid = session_id or self._default_session_id
        if sid in self._states:
            self._states[sid] = ConversationState(session_id=sid)

    @property
    def backend_type(self) -> str:
        return "memory"

    @property
    def default_session_id(self) -> str:
        return self._default_session_id
