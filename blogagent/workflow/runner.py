"""Per-job background task queue.

Work for one job id runs strictly one unit at a time: a unit launched while
another is still active for the same job waits for it to finish first.
Different jobs run concurrently on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class JobRunner:
    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task] = {}

    def launch(self, job_id: str, work: Callable[[], Awaitable[Any]], label: str = "work") -> asyncio.Task:
        """Queue ``work`` for ``job_id`` and return its task handle immediately."""
        previous = self._tasks.get(job_id)
        task = asyncio.get_running_loop().create_task(
            self._run(job_id, previous, work, label), name=f"{label}:{job_id}"
        )
        self._tasks[job_id] = task
        task.add_done_callback(lambda t: self._forget(job_id, t))
        logger.info("Queued %s for job %s", label, job_id)
        return task

    async def _run(
        self,
        job_id: str,
        previous: asyncio.Task | None,
        work: Callable[[], Awaitable[Any]],
        label: str,
    ) -> Any:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            return await work()
        except asyncio.CancelledError:
            raise
        except Exception:
            # Detached from any request: the executor has already persisted
            # failures, this makes them visible to operators.
            logger.exception("Background %s for job %s failed", label, job_id)
            return None

    def _forget(self, job_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]

    @property
    def active_jobs(self) -> list[str]:
        return [job_id for job_id, t in self._tasks.items() if not t.done()]

    async def join(self, job_id: str | None = None) -> None:
        """Wait until no work is queued for ``job_id`` (or for any job)."""
        while True:
            pending = [
                t for jid, t in self._tasks.items()
                if (job_id is None or jid == job_id) and not t.done()
            ]
            if not pending:
                return
            await asyncio.wait(pending)

    async def shutdown(self) -> None:
        tasks = [t for t in self._tasks.values() if not t.done()]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
