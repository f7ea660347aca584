from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from ..base import LLMProvider, to_provider_messages
from ..models import ChatMessage, LLMResponse, StreamingResponse


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider.

    Hidden design decisions:
    - OpenAI API client initialization
    - Message format conversion
    - Retry policy (the SDK retries with exponential backoff)
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        organization: str | None = None,
        max_retries: int = 2,
        timeout: float | None = 60.0,
        **client_kwargs: Any
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Default chat model
            base_url: Optional custom API base URL
            organization: Optional organization ID
            max_retries: Retries performed by the SDK on transient failures
            timeout: Request timeout in seconds
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._model = model
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            max_retries=max_retries,
            timeout=timeout,
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
        request_params: dict[str, Any] = {
            "model": model or self._model,
            "messages": to_provider_messages(messages),
            "temperature": temperature,
            **kwargs
        }
        if max_tokens is not None:
            request_params["max_tokens"] = max_tokens
        return request_params

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion using OpenAI."""
        request_params = self._build_request(messages, model, temperature, max_tokens, **kwargs)
        completion = await self._client.chat.completions.create(**request_params)

        usage = None
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens
            }

        return LLMResponse(
            content=completion.choices[0].message.content or "",
            model=completion.model,
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
        """Generate a streaming chat completion using OpenAI."""
        request_params = self._build_request(messages, model, temperature, max_tokens, **kwargs)
        request_params["stream"] = True
        request_params["stream_options"] = {"include_usage": True}

        response = StreamingResponse()
        return response.bind(self._stream_generator(request_params, response))

    async def _stream_generator(
        self,
        request_params: dict[str, Any],
        response: StreamingResponse
    ) -> AsyncIterator[str]:
        """Yield content deltas and record usage from the final chunk on ``response``."""
        stream = await self._client.chat.completions.create(**request_params)

        async for chunk in stream:
            if chunk.usage is not None:
                response.set_usage({
                    "prompt_tokens": chunk.usage.prompt_tokens,
                    "completion_tokens": chunk.usage.completion_tokens,
                    "total_tokens": chunk.usage.total_tokens,
                })
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

    async def close(self) -> None:
        """Close the OpenAI client."""
        await self._client.close()
