"""Main CLI application using Typer."""
import asyncio
import json
import os

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..agent import ReasoningAgent, Task, TaskResult, gather_responses
from ..config import DEFAULT_MAX_HISTORY, DEFAULT_MAX_STEPS, DEFAULT_MAX_WORKERS
from ..memory.sqlite import SQLiteConversationMemory
from .providers import default_tools, get_memory, make_debug_logger, require_llm

load_dotenv()

app = typer.Typer(
    name="taoloop",
    help="LLM agent with a Think/Act/Observe tool loop",
    no_args_is_help=True,
    add_completion=True,
)

console = Console()

_EXIT_WORDS = ("exit", "quit", "q")


def _print_steps(result: TaskResult) -> None:
    """Render the tool steps of a finished task."""
    if not result.steps:
        console.print("[dim]No tools were used.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Step", style="dim", width=4)
    table.add_column("Thought")
    table.add_column("Tool", style="yellow")
    table.add_column("Arguments")
    table.add_column("Observation")

    for step in result.steps:
        observation = step.observation
        if len(observation) > 200:
            observation = observation[:200] + "..."
        table.add_row(
            str(step.step),
            escape(step.thought),
            step.tool_call.tool_name,
            escape(json.dumps(step.tool_call.arguments, ensure_ascii=False)),
            f"[red]{escape(observation)}[/red]" if step.error else escape(observation),
        )

    console.print(table)


def _print_stats(result: TaskResult) -> None:
    meta = result.metadata
    console.print(f"[dim]Status: {meta.get('status', 'unknown')}[/dim]")
    console.print(f"[dim]Steps: {meta.get('steps', 0)}[/dim]")
    console.print(f"[dim]Processing time: {meta.get('processing_time_seconds', 0):.2f}s[/dim]")
    input_tokens = meta.get("input_tokens", 0)
    output_tokens = meta.get("output_tokens", 0)
    if input_tokens or output_tokens:
        console.print(f"[dim]Input tokens: {input_tokens:,}[/dim]")
        console.print(f"[dim]Output tokens: {output_tokens:,}[/dim]")


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question or task for the agent"),
    max_steps: int = typer.Option(
        DEFAULT_MAX_STEPS,
        "--max-steps",
        "-s",
        help="Maximum number of tool steps"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show the Think/Act/Observe steps"
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Print agent logs: debug, info, warning, or error"
    ),
):
    """Answer a single question."""
    async def _ask():
        agent = ReasoningAgent(llm=require_llm(console), tools=default_tools())
        agent.set_debug_callback(make_debug_logger(console, log_level))

        try:
            result = await agent.run(Task(instruction=question), max_steps=max_steps)

            if verbose:
                _print_steps(result)

            console.print("\n[bold green]Answer:[/bold green]")
            console.print(result.content)

            if verbose:
                console.print()
                _print_stats(result)

        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise typer.Exit(code=1)
        finally:
            await agent.close()

    asyncio.run(_ask())


@app.command()
def chat(
    max_steps: int = typer.Option(
        DEFAULT_MAX_STEPS,
        "--max-steps",
        "-s",
        help="Maximum tool steps per turn"
    ),
    max_history: int = typer.Option(
        DEFAULT_MAX_HISTORY,
        "--max-history",
        "-H",
        help="Messages kept in conversation memory"
    ),
    session: str | None = typer.Option(
        None,
        "--session",
        help="Memory session to resume (SQLite memory only)"
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Print agent logs: debug, info, warning, or error"
    ),
):
    """Interactive chat with conversation memory.

    Type /history to show the remembered messages and /clear to forget them.
    """
    async def _chat():
        memory = get_memory(max_messages=max_history)
        agent = ReasoningAgent(
            llm=require_llm(console),
            tools=default_tools(),
            memory=memory,
            max_history=max_history,
        )
        agent.set_debug_callback(make_debug_logger(console, log_level))

        try:
            await memory.connect()

            console.print("[bold cyan]taoloop chat[/bold cyan]")
            where = memory.backend_type
            if isinstance(memory, SQLiteConversationMemory):
                where = f"{where} ({escape(str(memory.db_path))})"
            console.print(f"[dim]Memory: {where}. Type 'exit', 'quit', or 'q' to leave[/dim]\n")

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                text = user_input.strip()
                if not text:
                    continue
                if text.lower() in _EXIT_WORDS:
                    console.print("[dim]Goodbye![/dim]")
                    break
                if text == "/clear":
                    await memory.clear_history(session)
                    console.print("[dim]History cleared.[/dim]\n")
                    continue
                if text == "/history":
                    state = await memory.get_state(session)
                    console.print(escape(state.to_context_string()) or "[dim](empty)[/dim]")
                    console.print()
                    continue

                answer = await agent.respond(text, session_id=session, max_steps=max_steps)
                console.print(f"[bold green]Agent:[/bold green] {escape(answer)}\n")

        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise typer.Exit(code=1)
        finally:
            await memory.disconnect()
            await agent.close()

    asyncio.run(_chat())


@app.command()
def batch(
    questions: list[str] = typer.Argument(..., help="Questions to answer"),
    concurrency: int = typer.Option(
        DEFAULT_MAX_WORKERS,
        "--concurrency",
        "-c",
        help="Questions answered at the same time"
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Print agent logs: debug, info, warning, or error"
    ),
):
    """Answer several questions concurrently."""
    async def _batch():
        agent = ReasoningAgent(llm=require_llm(console), tools=default_tools())
        agent.set_debug_callback(make_debug_logger(console, log_level))

        try:
            answers = await gather_responses(agent, questions, concurrency=concurrency)

            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("#", style="dim", width=3)
            table.add_column("Question", style="yellow")
            table.add_column("Answer")
            for i, (question, answer) in enumerate(zip(questions, answers), 1):
                table.add_row(str(i), escape(question), escape(answer))
            console.print(table)

            usage = agent.usage
            console.print(
                f"[dim]LLM calls: {usage.total_calls}, "
                f"tokens: {usage.total_input_tokens:,} in / {usage.total_output_tokens:,} out[/dim]"
            )

        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise typer.Exit(code=1)
        finally:
            await agent.close()

    asyncio.run(_batch())


@app.command(name="tools")
def list_tools():
    """List the built-in tools."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name", style="yellow")
    table.add_column("Description")
    table.add_column("Parameters", style="dim")

    for t in default_tools():
        params = ", ".join(t.parameters_schema.get("properties", {}))
        table.add_row(t.name, t.description, params or "-")

    console.print(table)


@app.command()
def health():
    """Check which LLM credentials are configured."""
    provider = os.getenv("LLM_PROVIDER", "openai").lower()
    console.print(f"[dim]LLM_PROVIDER: {provider}[/dim]")

    keys = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
    }
    active = keys.get("anthropic" if provider == "claude" else provider)

    for name, env_var in keys.items():
        if os.getenv(env_var):
            console.print(f"[green]+[/green] {name} API key: SET")
        else:
            console.print(f"[yellow]![/yellow] {name} API key: NOT SET")

    if active is None or not os.getenv(active):
        console.print("[red]x[/red] Active provider is not usable")
        raise typer.Exit(code=1)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
