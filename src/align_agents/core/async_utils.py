"""Bridge from async MCP handlers to the synchronous engine."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Await ``func(*args, **kwargs)`` on a worker thread.

    Engine and store calls block on disk and SQLite; handlers use this so
    the stdio event loop keeps serving while a fleet sync runs.

    Example:
        results = await run_sync(engine.sync_fleet_mcp, set_id, None, "append")
    """
    return await asyncio.to_thread(func, *args, **kwargs)
