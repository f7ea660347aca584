from .base import LLMProvider, to_provider_messages
from .factory import create_llm_provider
from .models import ChatMessage, FunctionCall, LLMResponse, MessageRole, StreamingResponse
from .providers import AnthropicProvider, OpenAIProvider

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "to_provider_messages",
    "ChatMessage",
    "FunctionCall",
    "LLMResponse",
    "MessageRole",
    "StreamingResponse",
    "AnthropicProvider",
    "OpenAIProvider",
]
