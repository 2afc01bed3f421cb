"""Graceful degradation for background pipeline work.

The save path must never wait on, or fail because of, classification and
embedding. Work that runs after the acknowledgment is spawned as a detached
task: the caller gets no handle, and any failure ends in the
``pocket.detached`` logger.

Strong references to running tasks are kept in a module-level set so the
event loop cannot garbage-collect them mid-flight.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Coroutine

from .classifier.metrics import record_detached_failure

logger = logging.getLogger("pocket.detached")

__all__ = ["drain_detached", "graceful_task", "pending_detached", "spawn_detached"]

_detached_tasks: set[asyncio.Task] = set()


def _on_task_done(task: asyncio.Task) -> None:
    _detached_tasks.discard(task)
    if task.cancelled():
        logger.debug("detached_task_cancelled", extra={"task": task.get_name()})
        return
    error = task.exception()
    if error is not None:
        record_detached_failure(task.get_name())
        logger.error(
            "detached_task_failed",
            extra={
                "task": task.get_name(),
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )


def spawn_detached(coro: Coroutine[Any, Any, Any], name: str) -> None:
    """Run a coroutine in the background without returning a handle.

    Must be called from code running inside an event loop. Outside a loop
    the coroutine is closed and the event logged; nothing is raised.

    Args:
        coro: Coroutine to run
        name: Task name used in logs
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        logger.error("detached_task_no_event_loop", extra={"task": name})
        return

    task = loop.create_task(coro, name=name)
    _detached_tasks.add(task)
    task.add_done_callback(_on_task_done)


def pending_detached() -> int:
    """Number of detached tasks still running."""
    return len(_detached_tasks)


async def drain_detached(timeout: float = 10.0) -> int:
    """Wait for running detached tasks, for shutdown and tests.

    Args:
        timeout: Max seconds to wait

    Returns:
        Number of tasks still running when the wait ended
    """
    if not _detached_tasks:
        return 0
    _, pending = await asyncio.wait(set(_detached_tasks), timeout=timeout)
    if pending:
        logger.warning("detached_drain_timeout", extra={"pending": len(pending)})
    return len(pending)


def graceful_task(event: str) -> Callable:
    """Decorator for async entry points whose failures must stay internal.

    Catches every exception, logs it under ``event`` and returns None.
    Cancellation still propagates.

    Example:
        @graceful_task("batch_expiry_failed")
        async def _expire(self, session): ...
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    event,
                    extra={
                        "function": func.__name__,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                return None

        return wrapper

    return decorator
