"""Unit tests for built-in tools, FunctionTool and the registry."""
import json
from datetime import datetime

import pytest

from taoloop.agent import (
    CalculatorTool,
    CurrentTimeTool,
    FunctionTool,
    KnowledgeSearchTool,
    ToolCall,
    ToolRegistry,
    tool,
)


def _call(name: str, /, **arguments) -> ToolCall:
    return ToolCall(tool_name=name, arguments=arguments)


class TestCalculatorTool:
    """Tests for CalculatorTool."""

    @pytest.mark.parametrize("expression,expected", [
        ("2 + 3 * 4", 14),
        ("(2 + 3) * 4", 20),
        ("2 ** 10", 1024),
        ("-7 // 2", -4),
        ("sqrt(16)", 4.0),
        ("round(pi, 2)", 3.14),
    ])
    def test_evaluate(self, expression, expected):
        assert CalculatorTool().evaluate(expression) == expected

    async def test_execute_formats_result(self):
        result = await CalculatorTool().execute(_call("calculate", expression="6 * 7"))

        assert not result.error
        assert result.content == "6 * 7 = 42"

    async def test_missing_expression(self):
        result = await CalculatorTool().execute(_call("calculate"))

        assert result.error
        assert result.content == "Error: expression parameter is required"

    @pytest.mark.parametrize("expression", [
        "__import__('os').system('ls')",
        "open('secrets.txt')",
        "2 ** 100000",
        "1 / 0",
        "1 +",
    ])
    async def test_rejects_unsafe_or_invalid(self, expression):
        result = await CalculatorTool().execute(_call("calculate", expression=expression))

        assert result.error
        assert result.content.startswith(f"Error evaluating '{expression}'")

    @pytest.mark.parametrize("expression", [
        "(10**1000)**5",
        "((9**999)**999)**999",
        "pow(9, 999) ** 999",
        "10**1000 * 10**1000 * 10**1000 * 10**1000",
    ])
    async def test_huge_integers_become_error_results(self, expression):
        result = await CalculatorTool().execute(_call("calculate", expression=expression))

        assert result.error
        assert "too large" in result.content

    def test_large_but_printable_result(self):
        result = CalculatorTool().invoke({"expression": "10 ** 1000"})

        assert not result.error
        assert result.content.endswith("1" + "0" * 1000)

    def test_evaluate_raises_value_error(self):
        with pytest.raises(ValueError):
            CalculatorTool().evaluate("x + 1")


class TestCurrentTimeTool:
    """Tests for CurrentTimeTool with an injected clock."""

    @staticmethod
    def _clock(tz):
        return datetime(2026, 1, 2, 3, 4, 5, tzinfo=tz)

    async def test_local_time(self):
        result = await CurrentTimeTool(clock=self._clock).execute(_call("get_current_time"))
        assert result.content == "Current time (local): 2026-01-02 03:04:05"

    async def test_named_zone_is_passed_to_clock(self):
        seen = []

        def clock(tz):
            seen.append(tz)
            return self._clock(tz)

        result = await CurrentTimeTool(clock=clock).execute(
            _call("get_current_time", timezone="Asia/Seoul")
        )

        assert result.content == "Current time (Asia/Seoul): 2026-01-02 03:04:05"
        assert str(seen[0]) == "Asia/Seoul"

    async def test_unknown_zone(self):
        result = await CurrentTimeTool(clock=self._clock).execute(
            _call("get_current_time", timezone="Mars/Olympus_Mons")
        )

        assert result.error
        assert result.content == "Error: Unknown time zone: Mars/Olympus_Mons"


class TestKnowledgeSearchTool:
    """Tests for KnowledgeSearchTool."""

    def test_ranks_by_matching_terms(self, knowledge_base):
        results = KnowledgeSearchTool(knowledge_base).search("vector embedding")

        assert [r["title"] for r in results] == ["Embedding"]
        assert results[0]["score"] == 2

    def test_ties_break_by_title(self, knowledge_base):
        results = KnowledgeSearchTool(knowledge_base).search("retrieval")
        assert [r["title"] for r in results] == ["Chunking", "RAG"]

    def test_limit(self, knowledge_base):
        results = KnowledgeSearchTool(knowledge_base).search("retrieval", limit=1)
        assert len(results) == 1

    async def test_execute_returns_ranked_json(self, knowledge_base):
        result = await KnowledgeSearchTool(knowledge_base).execute(
            _call("search_knowledge", query="chunking")
        )

        header, body = result.content.split("\n", 1)
        assert header == "Found 1 results:"
        ranked = json.loads(body)
        assert ranked[0]["rank"] == 1
        assert ranked[0]["title"] == "Chunking"

    async def test_no_results_is_not_an_error(self, knowledge_base):
        result = await KnowledgeSearchTool(knowledge_base).execute(
            _call("search_knowledge", query="quantum")
        )

        assert not result.error
        assert result.content == "No results found for query: quantum"

    async def test_string_limit_is_coerced(self, knowledge_base):
        result = await KnowledgeSearchTool(knowledge_base).execute(
            _call("search_knowledge", query="retrieval", limit="1")
        )

        assert not result.error
        assert result.content.startswith("Found 1 results:")

    @pytest.mark.parametrize("limit", [0, -2, "many", None])
    async def test_invalid_limit(self, knowledge_base, limit):
        result = await KnowledgeSearchTool(knowledge_base).execute(
            _call("search_knowledge", query="retrieval", limit=limit)
        )
        assert result.error
        assert "limit" in result.content

    def test_snippet_centres_on_earliest_term(self):
        text = "x" * 200 + " alpha " + "y" * 200 + " omega"
        tool_obj = KnowledgeSearchTool({"Doc": text}, snippet_chars=20)

        snippet = tool_obj.search("omega alpha")[0]["snippet"]

        assert "alpha" in snippet
        assert "omega" not in snippet

    async def test_empty_query(self, knowledge_base):
        result = await KnowledgeSearchTool(knowledge_base).execute(
            _call("search_knowledge", query="  ")
        )
        assert result.error


class TestFunctionTool:
    """Tests for FunctionTool and the @tool decorator."""

    def test_schema_and_description_from_function(self):
        def add(a: int, b: int = 0) -> int:
            """Add two numbers.

            Extra detail not shown to the model.
            """
            return a + b

        add_tool = FunctionTool(add)

        assert add_tool.name == "add"
        assert add_tool.description == "Add two numbers."
        assert add_tool.parameters_schema == {
            "type": "object",
            "properties": {
                "a": {"type": "integer"},
                "b": {"type": "integer", "default": 0},
            },
            "required": ["a"],
        }

    def test_decorator_with_options(self):
        @tool(name="shout", description="Upper-case a word")
        def upper(word: str) -> str:
            return word.upper()

        assert isinstance(upper, FunctionTool)
        assert upper.name == "shout"
        assert upper.invoke({"word": "hi"}).content == "HI"

    def test_bare_decorator(self):
        @tool
        def pair(a: int, b: int) -> dict:
            """Make a pair."""
            return {"a": a, "b": b}

        result = pair.invoke({"a": 1, "b": 2})
        assert json.loads(result.content) == {"a": 1, "b": 2}

    async def test_async_function(self):
        @tool
        async def greet(name: str) -> str:
            """Greet someone."""
            return f"hello {name}"

        result = await greet.execute(_call("greet", name="ada"))
        assert result.content == "hello ada"

    async def test_failure_becomes_error_result(self):
        @tool
        def boom() -> str:
            """Always fails."""
            raise RuntimeError("bad")

        result = await boom.execute(_call("boom"))

        assert result.error
        assert result.content == "Error executing boom: bad"

    def test_cache_reuses_results(self):
        calls = []

        @tool(cache_size=8)
        def square(x: int) -> int:
            """Square a number."""
            calls.append(x)
            return x * x

        assert square.invoke({"x": 3}).content == "9"
        assert square.invoke({"x": 3}).content == "9"
        assert square.invoke({"x": 4}).content == "16"

        assert calls == [3, 4]
        assert square.cache_info().hits == 1

    def test_uncached_tool_has_no_cache_info(self):
        assert FunctionTool(lambda: "x", name="x").cache_info() is None

    def test_cache_requires_sync_function(self):
        async def fetch() -> str:
            return "x"

        with pytest.raises(ValueError, match="synchronous"):
            FunctionTool(fetch, cache_size=4)


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_register_and_lookup(self):
        registry = ToolRegistry([CalculatorTool(), CurrentTimeTool()])

        assert len(registry) == 2
        assert "calculate" in registry
        assert registry.get("missing") is None
        assert registry.names == ["calculate", "get_current_time"]

    def test_duplicate_name_rejected(self):
        registry = ToolRegistry([CalculatorTool()])
        with pytest.raises(ValueError, match="already registered"):
            registry.register(CalculatorTool())

    def test_describe(self):
        text = ToolRegistry([CalculatorTool()]).describe()

        first, second = text.split("\n")
        assert first.startswith("- calculate: Evaluate a math expression")
        assert second.startswith("  parameters: ")
        assert json.loads(second.split(": ", 1)[1])["required"] == ["expression"]

    def test_llm_spec(self):
        spec = CurrentTimeTool().to_llm_spec()

        assert spec["name"] == "get_current_time"
        assert spec["parameters"]["required"] == []

    def test_describe_empty(self):
        assert ToolRegistry().describe() == ""
