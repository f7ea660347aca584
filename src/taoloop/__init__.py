"""
taoloop: a small LLM agent built around a Think/Act/Observe loop.

Each module hides one design decision: which LLM API is called (llm),
how conversation history is kept (memory) and how the agent selects and
invokes tools (agent).
"""

__version__ = "0.1.0"

from .agent import (
    BaseTool,
    FunctionTool,
    ReasoningAgent,
    Task,
    TaskResult,
    tool,
)
from .llm import ChatMessage, FunctionCall, LLMProvider, MessageRole, create_llm_provider
from .memory import ConversationMemory, create_conversation_memory

__all__ = [
    "BaseTool",
    "ChatMessage",
    "ConversationMemory",
    "FunctionCall",
    "FunctionTool",
    "LLMProvider",
    "MessageRole",
    "ReasoningAgent",
    "Task",
    "TaskResult",
    "create_conversation_memory",
    "create_llm_provider",
    "tool",
]
