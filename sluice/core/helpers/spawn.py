import asyncio
import logging
from typing import Any, Coroutine


class TaskSpawner:
    """
    Spawns and tracks the background tasks owned by a sink or source.

    Every spawned task is kept referenced until it completes, so it cannot be
    garbage collected mid-flight. Unhandled exceptions are logged when a task
    finishes, and `cancel_all()` lets the owner tear everything down when it
    is aborted.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, name: str = "sluice"):
        self._loop = loop
        self._name = name
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = logging.getLogger("core.helpers.spawn")

    @property
    def remaining_tasks(self) -> int:
        """Number of spawned tasks that have not completed yet."""
        return len(self._tasks)

    def on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            return

        if ex := task.exception():
            self._logger.error(
                f"Error occurred in task {task.get_name()}: {str(ex)}",
                exc_info=ex
            )

    def spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[Any]:
        task = self._loop.create_task(coro, name=f"{self._name}-{len(self._tasks)}")
        task.add_done_callback(self.on_done)
        self._tasks.add(task)
        return task

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
