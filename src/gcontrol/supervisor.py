"""Supervision of background permission synchronizations."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from structlog.stdlib import BoundLogger

from .exceptions import SupervisorClosedError, SyncCapacityError

__all__ = ["SyncSupervisor"]


class SyncSupervisor:
    """Run permission synchronizations as background tasks.

    Owns every background task started for a login so that they can be
    bounded and, on shutdown, cancelled. At most ``max_running`` tasks do
    work at once; the rest wait their turn. Once ``max_pending`` tasks have
    been accepted but not yet finished, further submissions are rejected.

    Parameters
    ----------
    max_running
        Maximum number of tasks doing work at the same time.
    max_pending
        Maximum number of accepted tasks that have not yet finished,
        including the running ones.
    logger
        Logger to use.
    """

    def __init__(
        self, *, max_running: int, max_pending: int, logger: BoundLogger
    ) -> None:
        self._max_pending = max_pending
        self._semaphore = asyncio.Semaphore(max_running)
        self._tasks: set[asyncio.Task[object]] = set()
        self._closed = False
        self._logger = logger

    @property
    def pending(self) -> int:
        """Number of accepted tasks that have not yet finished."""
        return len(self._tasks)

    def submit(
        self, name: str, work: Callable[[], Awaitable[object]]
    ) -> asyncio.Task[object]:
        """Start a background task.

        Parameters
        ----------
        name
            Name of the task, used for logging.
        work
            Function returning the awaitable to run. It is only called once
            the task is allowed to run.

        Returns
        -------
        asyncio.Task
            The task, which the caller need not await.

        Raises
        ------
        SupervisorClosedError
            Raised if the supervisor has been shut down.
        SyncCapacityError
            Raised if too many tasks are already pending.
        """
        if self._closed:
            raise SupervisorClosedError("Supervisor has been shut down")
        if len(self._tasks) >= self._max_pending:
            self._logger.warning(
                "Rejecting background task", task=name, pending=self.pending
            )
            msg = "Too many permission synchronizations pending"
            raise SyncCapacityError(msg)
        task = asyncio.create_task(self._run(work), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def wait(self) -> None:
        """Wait for all currently accepted tasks to finish."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    async def aclose(self) -> None:
        """Stop accepting work and cancel all unfinished tasks.

        Tasks release their own resources as they are cancelled.
        """
        self._closed = True
        tasks = set(self._tasks)
        if tasks:
            self._logger.info("Cancelling background tasks", count=len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, work: Callable[[], Awaitable[object]]) -> object:
        async with self._semaphore:
            return await work()

    def _task_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            self._logger.error(
                "Background task failed",
                task=task.get_name(),
                error=f"{type(exc).__name__}: {exc!s}",
                exc_info=exc,
            )
