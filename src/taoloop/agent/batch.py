"""Batch execution helpers.

Two patterns:
- map a tool over many argument sets on a fixed-size thread pool
- answer many user messages concurrently on a single event loop
"""

import asyncio
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from ..config import DEFAULT_MAX_WORKERS
from .data_structures import ToolCallResult
from .tools import BaseTool

if TYPE_CHECKING:
    from .reasoning_agent import ReasoningAgent


def map_tool(
    tool: BaseTool,
    argument_sets: Iterable[dict[str, Any]],
    max_workers: int = DEFAULT_MAX_WORKERS
) -> list[ToolCallResult]:
    """Invoke a tool once per argument set using a worker pool.

    Each worker runs the tool on its own event loop, so this must be called
    from synchronous code (or via ``asyncio.to_thread``).

    Args:
        tool: Tool to invoke
        argument_sets: One arguments dict per invocation
        max_workers: Size of the thread pool

    Returns:
        Results in the same order as ``argument_sets``
    """
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(tool.invoke, argument_sets))


async def gather_responses(
    agent: "ReasoningAgent",
    inputs: Iterable[str],
    concurrency: int = DEFAULT_MAX_WORKERS
) -> list[str]:
    """Answer several user messages concurrently.

    Each input runs in its own memory session so histories never interleave.
    At most ``concurrency`` turns are in flight at once.

    Returns:
        Responses in the same order as ``inputs``
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    semaphore = asyncio.Semaphore(concurrency)
    batch_id = uuid4().hex[:8]

    async def _respond(index: int, text: str) -> str:
        async with semaphore:
            return await agent.respond(text, session_id=f"batch-{batch_id}-{index}")

    return await asyncio.gather(*(
        _respond(i, text) for i, text in enumerate(inputs)
    ))
