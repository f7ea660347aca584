"""Anthropic Claude LLM provider implementation.

Uses the official Anthropic Python SDK for async chat completions.
Reference: https://github.com/anthropics/anthropic-sdk-python
"""

from collections.abc import AsyncIterator
from typing import Any

from anthropic import AsyncAnthropic

from ..base import LLMProvider, to_provider_messages
from ..models import ChatMessage, LLMResponse, StreamingResponse


def _split_system(messages: list[ChatMessage]) -> tuple[str | None, list[dict[str, str]]]:
    """Lift system messages out of the conversation.

    Anthropic takes the system prompt as a separate parameter; multiple
    system messages are joined in order.
    """
    system_parts = []
    conversation = []

    for msg in to_provider_messages(messages):
        if msg["role"] == "system":
            system_parts.append(msg["content"])
        else:
            conversation.append(msg)

    system = "\n\n".join(system_parts) if system_parts else None
    return system, conversation


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider implementation.

    Hidden design decisions:
    - Anthropic API client initialization
    - System message handling
    - Retry policy (delegated to the SDK)
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        max_retries: int = 2,
        **client_kwargs: Any
    ):
        self._model = model
        self._client = AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            max_retries=max_retries,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        return self._model

    def _build_request(
        self,
        messages: list[ChatMessage],
        model: str | None,
        temperature: float,
        max_tokens: int | None,
        **kwargs: Any
    ) -> dict[str, Any]:
        system, conversation = _split_system(messages)
        request_params: dict[str, Any] = {
            "model": model or self._model,
            "messages": conversation,
            "temperature": temperature,
            "max_tokens": max_tokens or 4096,  # Anthropic requires max_tokens
            **kwargs
        }
        if system:
            request_params["system"] = system
        return request_params

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion using Anthropic Claude."""
        request_params = self._build_request(messages, model, temperature, max_tokens, **kwargs)
        response = await self._client.messages.create(**request_params)

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens
            }

        content = "".join(
            block.text for block in response.content if hasattr(block, "text")
        )

        return LLMResponse(
            content=content,
            model=response.model,
            usage=usage
        )

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Generate a streaming chat completion using Anthropic Claude."""
        request_params = self._build_request(messages, model, temperature, max_tokens, **kwargs)
        response = StreamingResponse()
        return response.bind(self._stream_generator(request_params, response))

    async def _stream_generator(
        self,
        request_params: dict[str, Any],
        response: StreamingResponse
    ) -> AsyncIterator[str]:
        """Yield text deltas and record usage on ``response`` once the stream ends."""
        async with self._client.messages.stream(**request_params) as stream:
            async for text in stream.text_stream:
                yield text

            final = await stream.get_final_message()
            response.set_usage({
                "prompt_tokens": final.usage.input_tokens,
                "completion_tokens": final.usage.output_tokens,
                "total_tokens": final.usage.input_tokens + final.usage.output_tokens,
            })

    async def close(self) -> None:
        """Close the Anthropic client."""
        await self._client.close()
