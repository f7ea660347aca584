"""Provider factory functions for CLI.

Centralizes creation of the LLM, memory and tool instances from environment
variables. Hides configuration details from command implementations.
"""

import os
from datetime import datetime
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from ..agent import BaseTool, CalculatorTool, CurrentTimeTool, KnowledgeSearchTool
from ..config import LogLevel
from ..llm import LLMProvider, create_llm_provider
from ..memory import ConversationMemory, create_conversation_memory

_console = Console()

_LEVEL_STYLES = {
    "debug": "dim",
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
}

# Glossary served by the search_knowledge tool
KNOWLEDGE_BASE = {
    "Agent": (
        "An agent wraps an LLM that selects and invokes tools in a loop. "
        "It receives a user message, decides which tool to call, inspects the "
        "result and finally answers in natural language."
    ),
    "Tool": (
        "A tool is a named callable with a description string. The agent "
        "invokes tools to look things up or to perform side-effecting actions."
    ),
    "Think/Act/Observe loop": (
        "The control pattern of an agent: think about the input and pick a tool, "
        "act by invoking it with derived parameters, observe the result and "
        "decide whether to continue or stop with a final answer."
    ),
    "Message": (
        "A message has a role (system, user, assistant or tool), an optional "
        "text payload and an optional function call descriptor naming a tool "
        "and its arguments. Conversation history is an ordered list of messages."
    ),
}


def get_llm(console: Console | None = None) -> LLMProvider | None:
    """Create LLM provider from environment variables.

    Returns:
        LLM provider instance, or None if not configured

    Environment variables:
        LLM_PROVIDER: Provider type (openai, anthropic; default: openai)
        OPENAI_API_KEY: OpenAI API key (for openai provider)
        OPENAI_CHAT_MODEL: OpenAI model (default: gpt-4o-mini)
        ANTHROPIC_API_KEY: Anthropic API key (for anthropic provider)
        ANTHROPIC_MODEL: Anthropic model (default: claude-sonnet-4-20250514)
    """
    con = console or _console
    llm_provider = os.getenv("LLM_PROVIDER", "openai").lower()

    if llm_provider == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            con.print("[yellow]Warning: OPENAI_API_KEY not set, LLM features disabled[/yellow]")
            return None
        model = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
        return create_llm_provider("openai", api_key=api_key, model=model)

    elif llm_provider in ("anthropic", "claude"):
        api_key = os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            con.print("[yellow]Warning: ANTHROPIC_API_KEY not set, LLM features disabled[/yellow]")
            return None
        model = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
        return create_llm_provider("anthropic", api_key=api_key, model=model)

    con.print(f"[red]Error: Unknown LLM provider: {llm_provider}[/red]")
    return None


def require_llm(console: Console | None = None) -> LLMProvider:
    """Get LLM provider, exiting if it is not configured."""
    con = console or _console
    llm = get_llm(con)
    if not llm:
        con.print("[red]Error: LLM provider not configured[/red]")
        raise typer.Exit(code=1)
    return llm


def get_memory(max_messages: int | None = None) -> ConversationMemory:
    """Create conversation memory from environment variables.

    Environment variables:
        TAOLOOP_MEMORY: Backend (memory, sqlite; default: memory)
        TAOLOOP_MEMORY_PATH: SQLite file (default: ./conversation_memory.db)
    """
    backend = os.getenv("TAOLOOP_MEMORY", "memory").lower()
    kwargs: dict[str, Any] = {"max_messages": max_messages}
    if backend == "sqlite":
        kwargs["path"] = os.getenv("TAOLOOP_MEMORY_PATH", "./conversation_memory.db")
    return create_conversation_memory(backend, **kwargs)


def default_tools() -> list[BaseTool]:
    """Built-in tools available to CLI agents."""
    return [
        CalculatorTool(),
        CurrentTimeTool(),
        KnowledgeSearchTool(KNOWLEDGE_BASE),
    ]


def make_debug_logger(console: Console, log_level: str | None) -> Any | None:
    """Build a debug callback that prints agent logs at or above a level.

    Returns:
        Callable(level, component, message), or None when logging is off
    """
    if not log_level:
        return None

    def _log(level: str, component: str, message: str) -> None:
        if not LogLevel.is_enabled(level, log_level):
            return
        stamp = datetime.now().strftime("%H:%M:%S")
        style = _LEVEL_STYLES.get(level, "white")
        console.print(
            f"[dim]{stamp}[/dim] [{style}]{level.upper():<7}[/{style}] "
            f"[bold]{escape(component)}[/bold]: {escape(message)}",
            markup=True,
            highlight=False,
        )

    return _log
