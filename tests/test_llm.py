"""Unit tests for the llm module."""
from types import SimpleNamespace

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from taoloop.llm import (
    AnthropicProvider,
    ChatMessage,
    FunctionCall,
    LLMProvider,
    MessageRole,
    OpenAIProvider,
    StreamingResponse,
    create_llm_provider,
    to_provider_messages,
)
from taoloop.llm.providers.anthropic import _split_system

VALID_ROLES = {"system", "user", "assistant", "tool", "function"}


class TestChatMessage:
    """Tests for the ChatMessage model."""

    def test_user_message(self):
        msg = ChatMessage.user("hello")

        assert msg.role == MessageRole.USER
        assert msg.content == "hello"
        assert msg.function_call is None

    def test_role_accepts_plain_strings(self):
        msg = ChatMessage(role="assistant", content="hi")
        assert msg.role is MessageRole.ASSISTANT

    @given(st.text())
    def test_only_enumerated_roles_are_accepted(self, role: str):
        """Property test: role must be one of the closed set."""
        if role in VALID_ROLES:
            assert ChatMessage(role=role, content="x").role.value == role
        else:
            with pytest.raises(ValidationError):
                ChatMessage(role=role, content="x")

    def test_content_or_function_call_required(self):
        with pytest.raises(ValidationError, match="content or function_call"):
            ChatMessage(role="assistant")

    def test_function_call_without_content(self):
        call = FunctionCall(name="calculate", arguments={"expression": "1+1"})
        msg = ChatMessage.assistant(function_call=call)

        assert msg.content is None
        assert msg.function_call.name == "calculate"

    def test_function_call_only_on_assistant(self):
        call = FunctionCall(name="calculate")
        with pytest.raises(ValidationError, match="only assistant"):
            ChatMessage(role="user", content="x", function_call=call)

    def test_function_call_name_required(self):
        with pytest.raises(ValidationError):
            FunctionCall(name="")

    def test_messages_are_frozen(self):
        msg = ChatMessage.user("hello")
        with pytest.raises(ValidationError):
            msg.content = "changed"

    def test_tool_message_text(self):
        msg = ChatMessage.tool(name="calculate", content="2 = 2")
        assert msg.text == "Observation from calculate: 2 = 2"

    def test_function_role_renders_like_tool(self):
        msg = ChatMessage(role="function", name="search", content="nothing")
        assert msg.role.is_tool
        assert msg.text == "Observation from search: nothing"

    def test_function_call_text_is_json(self):
        call = FunctionCall(name="search", arguments={"query": "에이전트"})
        msg = ChatMessage.assistant(content="Let me look.", function_call=call)

        assert msg.text.startswith("Let me look.\n")
        assert '"tool_name": "search"' in msg.text
        assert "에이전트" in msg.text


class TestProviderMessages:
    """Tests for to_provider_messages conversion."""

    def test_conversion_uses_text_roles_only(self):
        messages = [
            ChatMessage.system("rules"),
            ChatMessage.user("question"),
            ChatMessage.assistant(function_call=FunctionCall(name="calculate", arguments={"expression": "2*3"})),
            ChatMessage.tool(name="calculate", content="2*3 = 6"),
            ChatMessage.assistant("6"),
        ]

        converted = to_provider_messages(messages)

        assert [m["role"] for m in converted] == ["system", "user", "assistant", "user", "assistant"]
        assert converted[3]["content"] == "Observation from calculate: 2*3 = 6"
        assert '"calculate"' in converted[2]["content"]

    def test_anthropic_lifts_system_messages(self):
        system, conversation = _split_system([
            ChatMessage.system("first"),
            ChatMessage.user("hi"),
            ChatMessage.system("second"),
        ])

        assert system == "first\n\nsecond"
        assert conversation == [{"role": "user", "content": "hi"}]

    def test_anthropic_without_system(self):
        system, conversation = _split_system([ChatMessage.user("hi")])
        assert system is None
        assert len(conversation) == 1


class TestLLMFactory:
    """Tests for create_llm_provider."""

    def test_provider_is_abstract(self):
        with pytest.raises(TypeError):
            LLMProvider()  # type: ignore

    def test_create_openai(self):
        provider = create_llm_provider("openai", api_key="fake-key", model="gpt-4o-mini")
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o-mini"

    @pytest.mark.parametrize("name", ["anthropic", "claude", "Claude"])
    def test_create_anthropic(self, name):
        provider = create_llm_provider(name, api_key="fake-key")
        assert isinstance(provider, AnthropicProvider)

    def test_missing_api_key(self):
        with pytest.raises(TypeError, match="api_key"):
            create_llm_provider("openai")

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported provider"):
            create_llm_provider("nope", api_key="fake-key")


class _FakeOpenAICompletions:
    """Streams one delta and a usage chunk; prompt tokens grow per request."""

    def __init__(self):
        self.requests = 0

    async def create(self, **params):
        self.requests += 1
        prompt_tokens = self.requests * 100

        async def _chunks():
            yield SimpleNamespace(
                usage=None,
                choices=[SimpleNamespace(delta=SimpleNamespace(content=f"r{prompt_tokens}"))],
            )
            yield SimpleNamespace(
                usage=SimpleNamespace(
                    prompt_tokens=prompt_tokens,
                    completion_tokens=1,
                    total_tokens=prompt_tokens + 1,
                ),
                choices=[],
            )

        return _chunks()


class _FakeAnthropicStream:
    def __init__(self, input_tokens: int):
        self._input_tokens = input_tokens

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        async def _texts():
            yield f"r{self._input_tokens}"
        return _texts()

    async def get_final_message(self):
        return SimpleNamespace(usage=SimpleNamespace(input_tokens=self._input_tokens, output_tokens=1))


class _FakeAnthropicMessages:
    def __init__(self):
        self.requests = 0

    def stream(self, **params):
        self.requests += 1
        return _FakeAnthropicStream(self.requests * 100)


async def _drain(stream) -> str:
    return "".join([chunk async for chunk in stream])


class TestStreamingUsage:
    """Usage is recorded on the stream that produced it."""

    async def test_openai_overlapping_streams(self):
        provider = OpenAIProvider(api_key="fake-key")
        provider._client = SimpleNamespace(chat=SimpleNamespace(completions=_FakeOpenAICompletions()))

        first = await provider.chat_completion_stream([ChatMessage.user("a")])
        second = await provider.chat_completion_stream([ChatMessage.user("b")])

        assert await _drain(first) == "r100"
        assert await _drain(second) == "r200"
        assert first.usage["prompt_tokens"] == 100
        assert second.usage["prompt_tokens"] == 200

    async def test_anthropic_overlapping_streams(self):
        provider = AnthropicProvider(api_key="fake-key")
        provider._client = SimpleNamespace(messages=_FakeAnthropicMessages())

        first = await provider.chat_completion_stream([ChatMessage.user("a")])
        second = await provider.chat_completion_stream([ChatMessage.user("b")])

        await _drain(first)
        await _drain(second)

        assert first.usage == {"prompt_tokens": 100, "completion_tokens": 1, "total_tokens": 101}
        assert second.usage["prompt_tokens"] == 200

    async def test_unbound_stream(self):
        with pytest.raises(RuntimeError, match="bind"):
            await _drain(StreamingResponse())

    def test_bind_once(self):
        async def _empty():
            yield ""

        response = StreamingResponse(_empty())
        with pytest.raises(RuntimeError, match="already bound"):
            response.bind(_empty())


@pytest.mark.integration
async def test_openai_completion_real_api(api_keys):
    """Integration test: non-empty input yields a non-empty completion."""
    if not api_keys["openai"]:
        pytest.skip("OPENAI_API_KEY not set")

    async with OpenAIProvider(api_key=api_keys["openai"]) as provider:
        response = await provider.chat_completion([ChatMessage.user("Say hello in one word.")])

    assert response.content.strip()
