"""Agent module: tools and the Think/Act/Observe loop."""

from .batch import gather_responses, map_tool
from .data_structures import (
    StepRecord,
    Task,
    TaskResult,
    Thought,
    ToolCall,
    ToolCallResult,
    UsageSummary,
)
from .reasoning_agent import ReasoningAgent, parse_thought
from .tools import (
    BaseTool,
    CalculatorTool,
    CurrentTimeTool,
    FunctionTool,
    KnowledgeSearchTool,
    ToolRegistry,
    tool,
)

__all__ = [
    "Task",
    "TaskResult",
    "Thought",
    "StepRecord",
    "ToolCall",
    "ToolCallResult",
    "UsageSummary",
    "ReasoningAgent",
    "parse_thought",
    "BaseTool",
    "FunctionTool",
    "ToolRegistry",
    "tool",
    "CalculatorTool",
    "CurrentTimeTool",
    "KnowledgeSearchTool",
    "map_tool",
    "gather_responses",
]
