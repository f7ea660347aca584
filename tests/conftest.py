"""Pytest configuration and shared fixtures."""
import json
import os
from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any

import pytest

from taoloop.llm import LLMProvider
from taoloop.llm.models import ChatMessage, LLMResponse, StreamingResponse


class ScriptedLLM(LLMProvider):
    """LLM provider that replays scripted replies.

    Each entry is returned by one call, in order. An exception entry is raised
    instead of returned.
    """

    def __init__(self, replies: list[Any], model: str = "scripted-model"):
        self._replies = list(replies)
        self._model = model
        self.calls: list[list[ChatMessage]] = []
        self.closed = False

    @property
    def model(self) -> str:
        return self._model

    def _next(self, messages: list[ChatMessage]) -> str:
        self.calls.append(list(messages))
        if not self._replies:
            raise RuntimeError("ScriptedLLM ran out of replies")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def chat_completion(self, messages, model=None, temperature=0.7, max_tokens=None, **kwargs):
        content = self._next(messages)
        return LLMResponse(
            content=content,
            model=self._model,
            usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
        )

    async def chat_completion_stream(self, messages, model=None, temperature=0.7, max_tokens=None, **kwargs):
        content = self._next(messages)

        async def _chunks() -> AsyncIterator[str]:
            for i in range(0, len(content), 4):
                yield content[i:i + 4]
            response.set_usage({"prompt_tokens": 7, "completion_tokens": 3, "total_tokens": 10})

        response = StreamingResponse(_chunks())
        return response

    async def close(self) -> None:
        self.closed = True


def action(tool_name: str, thought: str = "", **arguments: Any) -> str:
    """JSON reply selecting a tool."""
    return json.dumps({
        "thought": thought,
        "action": {"tool_name": tool_name, "arguments": arguments}
    })


def final(answer: str, thought: str = "") -> str:
    """JSON reply with a final answer."""
    return json.dumps({"thought": thought, "final_answer": answer})


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM


@pytest.fixture
def replies():
    """Helpers to build scripted JSON replies."""
    return SimpleNamespace(action=action, final=final)


@pytest.fixture
def debug_log():
    """Collect (level, component, message) triples from a debug callback."""
    entries: list[tuple[str, str, str]] = []

    def _callback(level: str, component: str, message: str) -> None:
        entries.append((level, component, message))

    _callback.entries = entries
    return _callback


@pytest.fixture
def knowledge_base():
    return {
        "RAG": "RAG (Retrieval-Augmented Generation) retrieves documents and feeds them to the LLM as context.",
        "Embedding": "An embedding maps text to a vector so that similar texts are close together.",
        "Chunking": "Chunking splits long documents into pieces sized for retrieval.",
    }


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
        "anthropic": os.getenv("ANTHROPIC_API_KEY"),
    }
