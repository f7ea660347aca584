import json
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StreamingResponse:
    """Wrapper for streaming LLM responses that captures usage info.

    Acts as an async iterator for text chunks while storing token usage
    that becomes available at the end of the stream.

    Usage:
        stream = await provider.chat_completion_stream(messages)
        async for chunk in stream:
            print(chunk, end="")
        # After iteration, usage is available
        print(stream.usage)  # {"prompt_tokens": 100, "completion_tokens": 50, ...}

    Providers whose generator needs the response to report usage create it
    unbound and call ``bind`` with a generator that closes over it.
    """

    def __init__(self, async_iter: AsyncIterator[str] | None = None):
        self._iter = async_iter
        self._usage: dict[str, Any] | None = None

    def bind(self, async_iter: AsyncIterator[str]) -> "StreamingResponse":
        """Attach the chunk iterator; a response is bound at most once."""
        if self._iter is not None:
            raise RuntimeError("StreamingResponse is already bound")
        self._iter = async_iter
        return self

    @property
    def usage(self) -> dict[str, Any] | None:
        """Get token usage info (available after iteration completes)."""
        return self._usage

    def set_usage(self, usage: dict[str, Any]) -> None:
        """Set token usage info (called by provider at end of stream)."""
        self._usage = usage

    def __aiter__(self) -> "StreamingResponse":
        return self

    async def __anext__(self) -> str:
        if self._iter is None:
            raise RuntimeError("StreamingResponse has no iterator; call bind() first")
        return await self._iter.__anext__()


class MessageRole(str, Enum):
    """Closed set of message roles.

    FUNCTION is the legacy name for TOOL and is treated identically.
    """

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    FUNCTION = "function"

    @property
    def is_tool(self) -> bool:
        return self in (MessageRole.TOOL, MessageRole.FUNCTION)


class FunctionCall(BaseModel):
    """Structured request to invoke a tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Name of the tool to invoke")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")

    def to_json(self) -> str:
        return json.dumps(
            {"tool_name": self.name, "arguments": self.arguments},
            ensure_ascii=False
        )


class ChatMessage(BaseModel):
    """Represents a chat message in a conversation.

    A message carries text, a function call descriptor, or both.
    """

    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(description="Role of the message sender")
    content: str | None = Field(default=None, description="Text content of the message")
    name: str | None = Field(default=None, description="Tool name for tool/function messages")
    function_call: FunctionCall | None = Field(
        default=None,
        description="Tool invocation requested by the assistant"
    )

    @model_validator(mode="after")
    def _check_payload(self) -> "ChatMessage":
        if self.content is None and self.function_call is None:
            raise ValueError("message requires content or function_call")
        if self.function_call is not None and self.role != MessageRole.ASSISTANT:
            raise ValueError("only assistant messages may carry a function_call")
        return self

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: str | None = None,
        function_call: FunctionCall | None = None
    ) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, content=content, function_call=function_call)

    @classmethod
    def tool(cls, name: str, content: str) -> "ChatMessage":
        return cls(role=MessageRole.TOOL, name=name, content=content)

    @property
    def text(self) -> str:
        """Plain-text rendering for providers that only accept text content."""
        if self.role.is_tool:
            return f"Observation from {self.name or 'tool'}: {self.content or ''}"
        if self.function_call is not None:
            call = self.function_call.to_json()
            return f"{self.content}\n{call}" if self.content else call
        return self.content or ""


class LLMResponse(BaseModel):
    """Response from an LLM provider."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Generated text content")
    model: str = Field(description="Model that generated the response")
    usage: dict[str, int] | None = Field(
        default=None,
        description="Token usage information"
    )
