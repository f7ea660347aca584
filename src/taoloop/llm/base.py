from abc import ABC, abstractmethod
from typing import Any

from .models import ChatMessage, LLMResponse, MessageRole, StreamingResponse


def to_provider_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    """Convert chat messages to plain role/content dicts.

    Tool calling is prompt-driven, so hosted chat APIs only ever see the
    three text roles:
    - 'tool' / 'function' observations are sent back as 'user' messages
    - assistant function calls are serialized to their JSON form
    - 'system' and 'user' pass through unchanged

    Returns:
        List of message dicts with 'role' and 'content' keys
    """
    converted = []

    for msg in messages:
        if msg.role.is_tool:
            role = MessageRole.USER.value
        else:
            role = msg.role.value
        converted.append({"role": role, "content": msg.text})

    return converted


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    This module hides the design decision of which hosted LLM API is used.
    Implementations handle:
    - API client setup and authentication
    - Request/response format conversion
    - Retries (delegated to the vendor SDK)

    Supports async context manager protocol for proper resource cleanup:
        async with provider:
            response = await provider.chat_completion(messages)
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion.

        Args:
            messages: List of chat messages forming the conversation history
            model: Model to use (None uses provider's default)
            temperature: Sampling temperature (0.0 to 2.0)
            max_tokens: Maximum tokens to generate
            **kwargs: Provider-specific parameters

        Returns:
            LLMResponse containing generated content and metadata
        """

    @abstractmethod
    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Generate a streaming chat completion.

        Returns:
            StreamingResponse that yields text chunks. After iteration,
            access usage via stream_response.usage
        """

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    @property
    def model(self) -> str:
        """Default model name."""
        return "unknown"

    async def __aenter__(self) -> "LLMProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the provider on exit.

        "Event loop is closed" errors from httpx/anyio cleanup are ignored:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
