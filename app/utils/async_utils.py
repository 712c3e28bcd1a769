"""
Async helpers for background work and bounded waits.

A bare asyncio.create_task() drops exceptions unless someone awaits the task;
the startup Census load runs unawaited, so its failures are logged here.
"""

import asyncio
import logging
from typing import Coroutine, Any

logger = logging.getLogger(__name__)


def create_task_with_error_handling(
    coro: Coroutine[Any, Any, Any],
    task_name: str = "background_task",
) -> asyncio.Task:
    """
    Schedule coro as a task whose failure is logged instead of lost.

    Args:
        coro: The coroutine to run
        task_name: Name used in log messages

    Returns:
        The created asyncio.Task
    """
    task = asyncio.create_task(coro, name=task_name)

    def callback(t: asyncio.Task) -> None:
        try:
            t.result()
        except asyncio.CancelledError:
            logger.debug(f"Task '{task_name}' was cancelled")
        except Exception as e:
            logger.error(f"Exception in task '{task_name}': {e}", exc_info=True)

    task.add_done_callback(callback)
    return task


async def run_with_timeout(
    coro: Coroutine[Any, Any, Any],
    timeout: float,
    task_name: str = "timed_task",
) -> Any:
    """
    Await coro for at most timeout seconds.

    Raises:
        asyncio.TimeoutError: If the deadline passes first
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Task '{task_name}' timed out after {timeout}s")
        raise
