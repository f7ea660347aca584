from typing import Any

from .base import ConversationMemory
from .in_memory import InMemoryConversationMemory
from .sqlite import SQLiteConversationMemory

_BACKENDS: dict[str, type[ConversationMemory]] = {
    "memory": InMemoryConversationMemory,
    "sqlite": SQLiteConversationMemory,
}

SUPPORTED_BACKENDS = tuple(_BACKENDS)


def create_conversation_memory(
    backend: str = "memory",
    **config: Any
) -> ConversationMemory:
    """Create a conversation memory backend.

    Args:
        backend: Backend name ('memory' or 'sqlite'), case-insensitive
        **config: Backend configuration
            For both backends:
                - default_session_id: str | None
                - max_messages: int | None (history bound, system messages kept)
            For SQLite only:
                - path: str | Path (default: './conversation_memory.db')

    Raises:
        ValueError: If the backend is not supported
    """
    memory_cls = _BACKENDS.get(backend.lower())
    if memory_cls is None:
        raise ValueError(
            f"Unsupported memory backend: {backend}. "
            f"Supported backends: {', '.join(repr(b) for b in SUPPORTED_BACKENDS)}"
        )
    return memory_cls(**config)
