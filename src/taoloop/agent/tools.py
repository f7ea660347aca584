"""Tool infrastructure for the agent.

A tool is a named callable with a description string. The agent selects
tools by name and passes JSON arguments parsed from the model's reply.
"""

import ast
import asyncio
import functools
import inspect
import json
import math
import operator
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .data_structures import ToolCall, ToolCallResult

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


class BaseTool(ABC):
    """Abstract base class for tools."""

    def __init__(self) -> None:
        self._debug_callback: Any | None = None

    def set_debug_callback(self, callback: Any) -> None:
        """Set debug callback for logging.

        Args:
            callback: Callable(level: str, component: str, message: str)
        """
        self._debug_callback = callback

    def _debug(self, level: str, component: str, message: str) -> None:
        if self._debug_callback:
            self._debug_callback(level, component, message)

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the tool name."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Get the tool description for the LLM."""

    @property
    @abstractmethod
    def parameters_schema(self) -> dict[str, Any]:
        """Get the JSON schema for tool parameters."""

    @abstractmethod
    async def execute(self, tool_call: ToolCall) -> ToolCallResult:
        """Execute the tool call.

        Args:
            tool_call: The tool call to execute

        Returns:
            ToolCallResult with the execution result
        """

    def invoke(self, arguments: dict[str, Any] | None = None) -> ToolCallResult:
        """Run the tool synchronously on a private event loop.

        Safe to call from worker threads; must not be called from a thread
        that is already running an event loop.
        """
        tool_call = ToolCall(tool_name=self.name, arguments=arguments or {})
        return asyncio.run(self.execute(tool_call))

    def to_llm_spec(self) -> dict[str, Any]:
        """Convert tool to LLM-friendly specification."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters_schema
        }


def _schema_from_signature(func: Callable[..., Any]) -> dict[str, Any]:
    """Infer a JSON schema from a callable's parameters."""
    properties: dict[str, Any] = {}
    required: list[str] = []

    for param in inspect.signature(func).parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        prop: dict[str, Any] = {}
        json_type = _JSON_TYPES.get(param.annotation)
        if json_type:
            prop["type"] = json_type
        if param.default is param.empty:
            required.append(param.name)
        else:
            prop["default"] = param.default
        properties[param.name] = prop

    return {"type": "object", "properties": properties, "required": required}


def _format_output(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class FunctionTool(BaseTool):
    """Tool backed by a plain Python callable.

    Sync and async callables are both supported. Sync callables may be
    memoized per argument set with ``cache_size``.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
        cache_size: int = 0
    ):
        super().__init__()
        self._func = func
        self._name = name or func.__name__
        doc = inspect.getdoc(func) or ""
        self._description = description or doc.split("\n\n")[0].strip()
        self._schema = _schema_from_signature(func)
        self._is_async = inspect.iscoroutinefunction(func)
        self._cached: Any | None = None

        if cache_size > 0:
            if self._is_async:
                raise ValueError("cache_size is only supported for synchronous functions")
            self._cached = functools.lru_cache(maxsize=cache_size)(self._call_with_key)

    def _call_with_key(self, key: str) -> Any:
        return self._func(**json.loads(key))

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return self._schema

    def cache_info(self) -> Any | None:
        """Hit/miss statistics of the result cache, or None when uncached."""
        return self._cached.cache_info() if self._cached else None

    async def execute(self, tool_call: ToolCall) -> ToolCallResult:
        arguments = tool_call.arguments
        try:
            if self._is_async:
                value = await self._func(**arguments)
            elif self._cached is not None:
                value = self._cached(json.dumps(arguments, sort_keys=True, default=str))
            else:
                value = self._func(**arguments)
            content = _format_output(value)
        except Exception as e:
            self._debug("warning", "Tool", f"{self._name} failed: {e}")
            return ToolCallResult(
                tool_call_id=tool_call.id_,
                content=f"Error executing {self._name}: {e}",
                error=True
            )

        return ToolCallResult(tool_call_id=tool_call.id_, content=content)


def tool(
    func: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    cache_size: int = 0
) -> Any:
    """Turn a function into a FunctionTool.

    Usable bare (``@tool``) or with options
    (``@tool(name="add", description="Add two numbers")``).
    """
    def decorator(f: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(f, name=name, description=description, cache_size=cache_size)

    if func is not None:
        return decorator(func)
    return decorator


class ToolRegistry:
    """Name-to-tool mapping used by the agent."""

    def __init__(self, tools: Iterable[BaseTool] = ()):
        self._tools: dict[str, BaseTool] = {}
        for t in tools:
            self.register(t)

    def register(self, tool_obj: BaseTool) -> None:
        if tool_obj.name in self._tools:
            raise ValueError(f"Tool {tool_obj.name} already registered")
        self._tools[tool_obj.name] = tool_obj

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def describe(self) -> str:
        """Render tool names, descriptions and parameters for a prompt."""
        lines = []
        for t in self._tools.values():
            spec = t.to_llm_spec()
            lines.append(f"- {spec['name']}: {spec['description']}")
            lines.append(f"  parameters: {json.dumps(spec['parameters'], ensure_ascii=False)}")
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


MAX_EXPONENT = 1000
MAX_INT_BITS = 10_000  # keeps results printable (CPython caps int->str at 4300 digits)


def _check_size(value: Any) -> Any:
    if isinstance(value, int) and value.bit_length() > MAX_INT_BITS:
        raise ValueError(f"Result too large (over {MAX_INT_BITS} bits)")
    return value


def _checked_pow(base: Any, exponent: Any) -> Any:
    """``base ** exponent`` refusing results that would not fit MAX_INT_BITS."""
    if abs(exponent) > MAX_EXPONENT:
        raise ValueError(f"Exponent too large: {exponent}")
    if (
        isinstance(base, int)
        and isinstance(exponent, int)
        and exponent > 0
        and base.bit_length() * exponent > MAX_INT_BITS
    ):
        raise ValueError(f"Result too large (over {MAX_INT_BITS} bits)")
    return operator.pow(base, exponent)


_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: _checked_pow,
}

_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_MATH_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "log": math.log,
    "log10": math.log10,
    "abs": abs,
    "round": round,
    "pow": _checked_pow,
}

_MATH_CONSTANTS = {"pi": math.pi, "e": math.e}


class CalculatorTool(BaseTool):
    """Evaluates arithmetic expressions without ``eval``."""

    @property
    def name(self) -> str:
        return "calculate"

    @property
    def description(self) -> str:
        return (
            "Evaluate a math expression. Supports + - * / // % **, parentheses, "
            "sqrt, sin, cos, tan, log, log10, abs, round, pow, pi and e."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "expression": {
                    "type": "string",
                    "description": "Expression to evaluate, e.g. '2 + 3 * 4' or 'sqrt(16)'"
                }
            },
            "required": ["expression"]
        }

    def evaluate(self, expression: str) -> int | float:
        """Evaluate ``expression``; raises ValueError on unsupported syntax."""
        try:
            tree = ast.parse(expression, mode="eval")
        except SyntaxError as e:
            raise ValueError(f"Invalid expression: {expression}") from e
        return self._eval(tree.body)

    def _eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
            return node.value
        if isinstance(node, ast.Name) and node.id in _MATH_CONSTANTS:
            return _MATH_CONSTANTS[node.id]
        if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
            left = self._eval(node.left)
            right = self._eval(node.right)
            return _check_size(_BIN_OPS[type(node.op)](left, right))
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](self._eval(node.operand))
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id in _MATH_FUNCTIONS
            and not node.keywords
        ):
            args = [self._eval(arg) for arg in node.args]
            return _check_size(_MATH_FUNCTIONS[node.func.id](*args))
        raise ValueError(f"Unsupported expression element: {ast.dump(node)}")

    async def execute(self, tool_call: ToolCall) -> ToolCallResult:
        expression = str(tool_call.arguments.get("expression", "")).strip()

        if not expression:
            return ToolCallResult(
                tool_call_id=tool_call.id_,
                content="Error: expression parameter is required",
                error=True
            )

        try:
            content = f"{expression} = {self.evaluate(expression)}"
        except (ValueError, ArithmeticError, TypeError, RecursionError) as e:
            return ToolCallResult(
                tool_call_id=tool_call.id_,
                content=f"Error evaluating '{expression}': {e}",
                error=True
            )

        self._debug("debug", "Calculator", content)
        return ToolCallResult(tool_call_id=tool_call.id_, content=content)


class CurrentTimeTool(BaseTool):
    """Reports the current date and time."""

    def __init__(self, clock: Callable[[ZoneInfo | None], datetime] | None = None):
        """Initialize the time tool.

        Args:
            clock: Returns "now" for an optional zone (default: datetime.now)
        """
        super().__init__()
        self._clock = clock or (lambda tz: datetime.now(tz))

    @property
    def name(self) -> str:
        return "get_current_time"

    @property
    def description(self) -> str:
        return "Get the current date and time, optionally in an IANA time zone such as 'Asia/Seoul'."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "timezone": {
                    "type": "string",
                    "description": "IANA time zone name (default: local time)"
                }
            },
            "required": []
        }

    async def execute(self, tool_call: ToolCall) -> ToolCallResult:
        zone_name = tool_call.arguments.get("timezone")
        zone = None

        if zone_name:
            try:
                zone = ZoneInfo(zone_name)
            except (ZoneInfoNotFoundError, ValueError):
                return ToolCallResult(
                    tool_call_id=tool_call.id_,
                    content=f"Error: Unknown time zone: {zone_name}",
                    error=True
                )

        now = self._clock(zone)
        label = zone_name or "local"
        return ToolCallResult(
            tool_call_id=tool_call.id_,
            content=f"Current time ({label}): {now.strftime('%Y-%m-%d %H:%M:%S')}"
        )


class KnowledgeSearchTool(BaseTool):
    """Keyword search over a small in-memory document collection."""

    def __init__(
        self,
        documents: dict[str, str],
        limit: int = 3,
        snippet_chars: int = 100
    ):
        """Initialize the search tool.

        Args:
            documents: Mapping of title to document text
            limit: Maximum number of results returned
            snippet_chars: Characters of context around the first match
        """
        super().__init__()
        self._documents = dict(documents)
        self._limit = limit
        self._snippet_chars = snippet_chars

    @property
    def name(self) -> str:
        return "search_knowledge"

    @property
    def description(self) -> str:
        return "Search the internal knowledge base by keyword and return matching snippets."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Keywords or question to search for"
                },
                "limit": {
                    "type": "integer",
                    "description": f"Maximum number of results (default: {self._limit})",
                    "default": self._limit
                }
            },
            "required": ["query"]
        }

    def _snippet(self, text: str, position: int, length: int) -> str:
        start = max(0, position - self._snippet_chars // 2)
        end = min(len(text), position + length + self._snippet_chars)
        snippet = text[start:end].replace("\n", " ").strip()
        if start > 0:
            snippet = "..." + snippet
        if end < len(text):
            snippet += "..."
        return snippet

    def search(self, query: str, limit: int | None = None) -> list[dict[str, Any]]:
        """Rank documents by the number of query terms they contain.

        Ties are broken by title. The snippet is centred on the earliest
        matching term in the text.
        """
        terms = [t for t in query.lower().split() if t]
        matches = []

        for title, text in self._documents.items():
            lowered = text.lower()
            hits = [t for t in terms if t in lowered or t in title.lower()]
            if not hits:
                continue
            position, length = min(
                ((lowered.find(t), len(t)) for t in hits if t in lowered),
                default=(0, 0)
            )
            matches.append({
                "title": title,
                "score": len(hits),
                "snippet": self._snippet(text, position, length)
            })

        matches.sort(key=lambda m: (-m["score"], m["title"]))
        return matches[:self._limit if limit is None else limit]

    async def execute(self, tool_call: ToolCall) -> ToolCallResult:
        query = str(tool_call.arguments.get("query", "")).strip()

        if not query:
            return ToolCallResult(
                tool_call_id=tool_call.id_,
                content="Error: query parameter is required",
                error=True
            )

        try:
            limit = int(tool_call.arguments.get("limit", self._limit))
        except (TypeError, ValueError):
            return ToolCallResult(
                tool_call_id=tool_call.id_,
                content=f"Error: limit must be an integer, got {tool_call.arguments['limit']!r}",
                error=True
            )
        if limit < 1:
            return ToolCallResult(
                tool_call_id=tool_call.id_,
                content="Error: limit must be at least 1",
                error=True
            )

        self._debug("info", "Search", f"Query: '{query[:50]}' (limit={limit})")
        results = self.search(query, limit)

        if not results:
            content = f"No results found for query: {query}"
        else:
            ranked = [{"rank": i, **r} for i, r in enumerate(results, 1)]
            content = f"Found {len(results)} results:\n"
            content += json.dumps(ranked, indent=2, ensure_ascii=False)

        return ToolCallResult(tool_call_id=tool_call.id_, content=content)
