"""Data structures for the Think/Act/Observe agent loop."""

import uuid
from typing import Any

from pydantic import BaseModel, Field, model_validator

from ..llm.models import ChatMessage, FunctionCall


class Task(BaseModel):
    """Represents a task with an instruction.

    Attributes:
        id_: Unique identifier for the task
        instruction: The user message that started the task
    """

    id_: str = Field(default_factory=lambda: str(uuid.uuid4()))
    instruction: str = Field(description="The task instruction")

    def __str__(self) -> str:
        return self.instruction


class ToolCall(BaseModel):
    """Represents a tool call request.

    Attributes:
        id_: Unique identifier for this tool call
        tool_name: Name of the tool to call
        arguments: Arguments for the tool call
    """

    id_: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_function_call(cls, call: FunctionCall) -> "ToolCall":
        return cls(tool_name=call.name, arguments=dict(call.arguments))

    def to_function_call(self) -> FunctionCall:
        return FunctionCall(name=self.tool_name, arguments=self.arguments)


class ToolCallResult(BaseModel):
    """Result of executing a tool call.

    Attributes:
        tool_call_id: ID of the tool call that was executed
        content: The result content
        error: Whether an error occurred
    """

    tool_call_id: str
    content: str
    error: bool = False


class Thought(BaseModel):
    """Outcome of the Think stage.

    Exactly one of ``action`` and ``final_answer`` is set.
    """

    thought: str = Field(default="", description="The model's reasoning for this step")
    action: ToolCall | None = Field(default=None, description="Tool to invoke next")
    final_answer: str | None = Field(default=None, description="Answer for the user")

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "Thought":
        if (self.action is None) == (self.final_answer is None):
            raise ValueError("thought needs exactly one of action or final_answer")
        return self

    @property
    def is_final(self) -> bool:
        return self.final_answer is not None


class StepRecord(BaseModel):
    """One Think/Act/Observe iteration."""

    step: int
    thought: str = ""
    tool_call: ToolCall
    observation: str
    error: bool = False


class TaskResult(BaseModel):
    """The result of the overall task execution.

    Attributes:
        task_id: ID of the task that was executed
        content: The final natural-language response
        steps: Tool steps taken, in order
        messages: Full message list sent to and received from the LLM
        metadata: Status, timing and token usage
    """

    task_id: str
    content: str
    steps: list[StepRecord] = Field(default_factory=list)
    messages: list[ChatMessage] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return self.content


class UsageSummary(BaseModel):
    """Summary of LLM token usage across all calls.

    Attributes:
        total_calls: Total number of LLM API calls
        total_input_tokens: Total input tokens across all calls
        total_output_tokens: Total output tokens across all calls
        model_breakdown: Token usage broken down by model name
    """

    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    model_breakdown: dict[str, dict[str, int]] = Field(default_factory=dict)

    def add_usage(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int
    ) -> None:
        """Add usage statistics for a model call."""
        self.total_calls += 1
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens

        breakdown = self.model_breakdown.setdefault(
            model,
            {"calls": 0, "input_tokens": 0, "output_tokens": 0}
        )
        breakdown["calls"] += 1
        breakdown["input_tokens"] += input_tokens
        breakdown["output_tokens"] += output_tokens
