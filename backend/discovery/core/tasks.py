"""Fire-and-forget background work.

The request path hands long-running LLM work to a TaskSpawner and returns
without awaiting it. Production uses AsyncioTaskSpawner; tests swap in
InlineTaskSpawner, which runs the work to completion before returning but
keeps the same failure contract: a failing task is logged, never raised
to the caller.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

TaskFactory = Callable[..., Awaitable[Any]]


@runtime_checkable
class TaskSpawner(Protocol):
    async def spawn(self, name: str, func: TaskFactory, *args: Any) -> None:
        """Schedule ``func(*args)`` to run detached from the caller."""
        ...


class AsyncioTaskSpawner:
    """Detached asyncio tasks with strong references until completion."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    async def spawn(self, name: str, func: TaskFactory, *args: Any) -> None:
        task = asyncio.create_task(func(*args), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug("background_task_spawned", task=name)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("background_task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float = 30.0) -> None:
        """Wait for in-flight tasks on shutdown; cancel whatever outlives ``timeout``."""
        if not self._tasks:
            return
        logger.info("background_tasks_draining", pending=len(self._tasks))
        done, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("background_tasks_abandoned", count=len(still_running))


class InlineTaskSpawner:
    """Runs spawned work immediately. Used in tests for deterministic ordering."""

    def __init__(self) -> None:
        self.spawned: list[str] = []
        self.failures: list[BaseException] = []

    async def spawn(self, name: str, func: TaskFactory, *args: Any) -> None:
        self.spawned.append(name)
        try:
            await func(*args)
        except Exception as exc:
            self.failures.append(exc)
            logger.error(
                "background_task_failed",
                task=name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
