"""Reasoning agent running a Think/Act/Observe loop.

Each task goes through:
- Intake: system prompt, recent conversation history and the user message
- Think: the LLM picks a tool or answers
- Act: the selected tool runs with the LLM's arguments
- Observe: the tool result is fed back and the loop decides to stop or continue
"""

import asyncio
import json
import time
from typing import Any

from ..config import (
    DEFAULT_MAX_HISTORY,
    DEFAULT_MAX_STEPS,
    FALLBACK_RESPONSE,
    LOG_PREVIEW_LENGTH,
    MAX_OBSERVATION_LENGTH,
)
from ..llm import LLMProvider
from ..llm.models import ChatMessage, FunctionCall, MessageRole
from ..memory import ConversationMemory
from ..prompts import get_system_prompt, render_system_prompt
from .data_structures import (
    StepRecord,
    Task,
    TaskResult,
    Thought,
    ToolCall,
    ToolCallResult,
    UsageSummary,
)
from .tools import BaseTool, ToolRegistry

_decoder = json.JSONDecoder()


def _truncate(text: str, max_len: int = LOG_PREVIEW_LENGTH) -> str:
    return text[:max_len] + "..." if len(text) > max_len else text


def _thought_from_object(data: dict[str, Any]) -> Thought | None:
    """Build a Thought from a decoded JSON object, if it has the right shape."""
    reasoning = str(data.get("thought", ""))

    if "final_answer" in data:
        return Thought(thought=reasoning, final_answer=str(data["final_answer"]))

    action = data.get("action")
    if isinstance(action, dict):
        name = action.get("tool_name") or action.get("name")
        arguments = action.get("arguments", {})
    elif "tool_name" in data:
        name = data["tool_name"]
        arguments = data.get("arguments", {})
    else:
        return None

    if not isinstance(name, str) or not name or not isinstance(arguments, dict):
        return None
    call = FunctionCall(name=name, arguments=arguments)
    return Thought(thought=reasoning, action=ToolCall.from_function_call(call))


def parse_thought(content: str) -> Thought:
    """Parse the LLM reply of a Think step.

    Scans for the first JSON object carrying either an ``action`` or a
    ``final_answer``. A reply without such an object is the final answer.
    """
    index = content.find("{")
    while index != -1:
        try:
            data, _ = _decoder.raw_decode(content, index)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            thought = _thought_from_object(data)
            if thought is not None:
                return thought
        index = content.find("{", index + 1)

    return Thought(final_answer=content.strip())


class ReasoningAgent:
    """An agent that answers by selecting and invoking tools in a loop.

    Hidden design decisions:
    - Prompt format for tool selection
    - Message list construction and history window
    - Loop termination rules
    - Fallback behavior on failure
    """

    def __init__(
        self,
        llm: LLMProvider,
        tools: list[BaseTool] | None = None,
        memory: ConversationMemory | None = None,
        system_prompt: str | None = None,
        max_history: int | None = DEFAULT_MAX_HISTORY,
        stream_callback: Any | None = None
    ):
        """Initialize the reasoning agent.

        Args:
            llm: LLM provider for generation
            tools: List of available tools
            memory: Optional conversation memory used by respond()
            system_prompt: Optional prompt template with a {tools_description}
                placeholder (default: prompts/system.txt)
            max_history: Messages of history injected into each task
            stream_callback: Optional callback for streaming tokens (callable(str))
        """
        self._llm = llm
        self._registry = ToolRegistry(tools or [])
        self._memory = memory
        self._max_history = max_history
        self._usage = UsageSummary()
        self._stream_callback = stream_callback
        self._debug_callback: Any | None = None

        self._system_prompt_template = system_prompt or get_system_prompt()

    def add_tool(self, tool: BaseTool) -> "ReasoningAgent":
        """Add a tool to the agent.

        Returns:
            Self for method chaining
        """
        self._registry.register(tool)
        tool.set_debug_callback(self._debug_callback)
        return self

    @property
    def tools(self) -> list[BaseTool]:
        return list(self._registry)

    @property
    def usage(self) -> UsageSummary:
        return self._usage

    @property
    def memory(self) -> ConversationMemory | None:
        return self._memory

    @property
    def system_prompt(self) -> str:
        """System prompt with the current tool list filled in."""
        return render_system_prompt(self._registry.describe(), self._system_prompt_template)

    def run(
        self,
        task: Task,
        max_steps: int | None = DEFAULT_MAX_STEPS,
        session_id: str | None = None
    ) -> "ReasoningAgent.TaskHandler":
        """Execute a task in the background.

        Args:
            task: The task to execute
            max_steps: Maximum number of tool executions (None for no limit)
            session_id: Memory session whose history is injected

        Returns:
            TaskHandler that can be awaited for the TaskResult
        """
        handler = self.TaskHandler(
            agent=self,
            task=task,
            max_steps=max_steps,
            session_id=session_id
        )
        handler.background_task = asyncio.create_task(handler._execute_processing_loop())
        return handler

    async def respond(
        self,
        user_input: str,
        session_id: str | None = None,
        max_steps: int | None = DEFAULT_MAX_STEPS
    ) -> str:
        """Answer a user message, never raising on failure.

        The turn is recorded in memory when it succeeds. Any failure is
        logged and replaced by FALLBACK_RESPONSE.

        Raises:
            ValueError: If user_input is empty
        """
        if not user_input or not user_input.strip():
            raise ValueError("user_input must be a non-empty string")

        try:
            result = await self.run(
                Task(instruction=user_input),
                max_steps=max_steps,
                session_id=session_id
            )
            if self._memory is not None:
                await self._memory.add_message(ChatMessage.user(user_input), session_id)
                await self._memory.add_message(ChatMessage.assistant(result.content), session_id)
        except Exception as e:
            self._debug("error", "Agent", f"Turn failed: {type(e).__name__}: {e}")
            return FALLBACK_RESPONSE

        return result.content

    def set_stream_callback(self, callback: Any) -> None:
        """Set the stream callback for real-time token display."""
        self._stream_callback = callback

    def set_debug_callback(self, callback: Any) -> None:
        """Set the debug callback for execution logging.

        Args:
            callback: Callable(level: str, component: str, message: str)
                      level: 'debug', 'info', 'warning', 'error'
        """
        self._debug_callback = callback
        for tool in self._registry:
            tool.set_debug_callback(callback)

    def _debug(self, level: str, component: str, message: str) -> None:
        if self._debug_callback:
            self._debug_callback(level, component, message)

    async def _complete(
        self,
        messages: list[ChatMessage],
        task_usage: UsageSummary | None = None
    ) -> str:
        """Call the LLM, streaming when a callback is set.

        Usage is added to the agent totals and, when given, to ``task_usage``.
        """
        if self._stream_callback:
            self._stream_callback("__START__")
            chunks = []
            stream_response = await self._llm.chat_completion_stream(messages)
            async for chunk in stream_response:
                chunks.append(chunk)
                self._stream_callback(chunk)
            self._stream_callback("__END__")
            content = "".join(chunks)
            usage = stream_response.usage
            model = self._llm.model
        else:
            response = await self._llm.chat_completion(messages)
            content = response.content
            usage = response.usage
            model = response.model

        usage = usage or {}
        for summary in (self._usage, task_usage):
            if summary is not None:
                summary.add_usage(
                    model=model,
                    input_tokens=usage.get("prompt_tokens", 0),
                    output_tokens=usage.get("completion_tokens", 0)
                )
        return content

    async def close(self) -> None:
        """Close resources."""
        await self._llm.close()

    class TaskHandler(asyncio.Future):
        """Runs the Think/Act/Observe loop for one task."""

        def __init__(
            self,
            agent: "ReasoningAgent",
            task: Task,
            max_steps: int | None = DEFAULT_MAX_STEPS,
            session_id: str | None = None,
            *args: Any,
            **kwargs: Any
        ):
            super().__init__(*args, **kwargs)
            self.agent = agent
            self.task = task
            self.max_steps = max_steps
            self.session_id = session_id
            self.messages: list[ChatMessage] = []
            self.steps: list[StepRecord] = []
            self.step_counter = 0
            self.usage = UsageSummary()
            self._background_task: asyncio.Task | None = None
            self._start_time = time.time()

        async def _execute_processing_loop(self) -> None:
            try:
                await self.intake()

                while not self.done():
                    thought = await self.think()

                    if thought.is_final:
                        answer = thought.final_answer.strip() or FALLBACK_RESPONSE
                        self.messages.append(ChatMessage.assistant(answer))
                        self.set_result(self._build_result(answer, "completed"))
                    elif self.max_steps is not None and self.step_counter >= self.max_steps:
                        self.agent._debug("warning", "Loop", f"Step limit {self.max_steps} reached")
                        self.set_result(self._build_result(
                            f"Maximum steps ({self.max_steps}) reached. "
                            "Unable to complete the task within the step limit.",
                            "max_steps_reached"
                        ))
                    else:
                        result = await self.act(thought.action)
                        self.observe(thought, thought.action, result)

            except Exception as e:
                if not self.done():
                    self.set_exception(e)

        async def intake(self) -> None:
            """Build the initial message list for the task."""
            history: list[ChatMessage] = []
            memory = self.agent._memory
            if memory is not None:
                history = await memory.get_recent_messages(
                    limit=self.agent._max_history,
                    session_id=self.session_id
                )
                history = [m for m in history if m.role != MessageRole.SYSTEM]
                self.agent._debug("debug", "Memory", f"Injecting {len(history)} history messages")

            self.messages = [
                ChatMessage.system(self.agent.system_prompt),
                *history,
                ChatMessage.user(self.task.instruction),
            ]
            self.agent._debug("info", "Intake", f"Task: {_truncate(self.task.instruction, 80)}")

        async def think(self) -> Thought:
            """Ask the LLM for the next action or the final answer."""
            self.agent._debug("info", "Think", f"Calling LLM ({len(self.messages)} messages)...")
            try:
                content = await self.agent._complete(self.messages, self.usage)
            except Exception as e:
                raise RuntimeError(f"Failed to get next step: {e}") from e

            self.agent._debug("debug", "Think", f"Response preview: {_truncate(content)}")
            thought = parse_thought(content)

            if thought.is_final:
                self.agent._debug("info", "Think", "Decision: final answer")
            else:
                self.agent._debug("info", "Think", f"Decision: call {thought.action.tool_name}")
            return thought

        async def act(self, tool_call: ToolCall) -> ToolCallResult:
            """Execute the selected tool. Failures become error results."""
            self.step_counter += 1
            self.agent._debug("info", "Act", f"Step {self.step_counter}: {tool_call.tool_name}")
            self.agent._debug("debug", "Act", f"Arguments: {_truncate(json.dumps(tool_call.arguments, ensure_ascii=False))}")

            tool = self.agent._registry.get(tool_call.tool_name)
            if tool is None:
                available = ", ".join(self.agent._registry.names) or "none"
                return ToolCallResult(
                    tool_call_id=tool_call.id_,
                    content=f"Error: Tool '{tool_call.tool_name}' not found. Available tools: {available}",
                    error=True
                )

            try:
                return await tool.execute(tool_call)
            except Exception as e:
                return ToolCallResult(
                    tool_call_id=tool_call.id_,
                    content=f"Error executing tool: {e}",
                    error=True
                )

        def observe(self, thought: Thought, tool_call: ToolCall, result: ToolCallResult) -> None:
            """Feed the tool result back into the conversation."""
            observation = _truncate(result.content, MAX_OBSERVATION_LENGTH)
            level = "warning" if result.error else "info"
            self.agent._debug(level, "Observe", f"Result: {_truncate(observation)}")

            self.messages.append(ChatMessage.assistant(
                content=thought.thought or None,
                function_call=tool_call.to_function_call()
            ))
            self.messages.append(ChatMessage.tool(name=tool_call.tool_name, content=observation))
            self.steps.append(StepRecord(
                step=self.step_counter,
                thought=thought.thought,
                tool_call=tool_call,
                observation=observation,
                error=result.error
            ))

        def _build_result(self, content: str, status: str) -> TaskResult:
            usage = self.usage
            return TaskResult(
                task_id=self.task.id_,
                content=content,
                steps=list(self.steps),
                messages=list(self.messages),
                metadata={
                    "status": status,
                    "steps": self.step_counter,
                    "processing_time_seconds": time.time() - self._start_time,
                    "input_tokens": usage.total_input_tokens,
                    "output_tokens": usage.total_output_tokens,
                    "llm_calls": usage.total_calls
                }
            )

        @property
        def background_task(self) -> asyncio.Task:
            if not self._background_task:
                raise RuntimeError("No background task running")
            return self._background_task

        @background_task.setter
        def background_task(self, task: asyncio.Task) -> None:
            if self._background_task is not None:
                raise RuntimeError("Background task already set")
            self._background_task = task
