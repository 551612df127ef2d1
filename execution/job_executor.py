"""
Background execution of generation jobs.

Jobs run detached from whoever started them. The runner is the error
boundary: any exception a job raises is logged and written to the job
record as a failure, never re-raised to the caller.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from utils.logger import setup_logger

logger = setup_logger(__name__)

FailureRecorder = Callable[[str, str], None]


def describe_error(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class BackgroundJobRunner:
    """Spawns one asyncio task per job and keeps a reference until it ends."""

    def __init__(self, record_failure: FailureRecorder):
        """
        Args:
            record_failure: Called with (job_id, message) when a job raises
        """
        self.record_failure = record_failure
        self._tasks: Dict[str, asyncio.Task] = {}

    def submit(self, job_id: str, job: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Start `job` in the running event loop and return its task."""
        task = asyncio.get_running_loop().create_task(self._run(job_id, job), name=f"generation-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        return task

    async def _run(self, job_id: str, job: Callable[[], Awaitable[None]]) -> None:
        try:
            await job()
        except asyncio.CancelledError:
            self._record(job_id, "Job was cancelled before completing")
            raise
        except Exception as e:
            logger.exception(f"Job {job_id} failed")
            self._record(job_id, describe_error(e))

    def _record(self, job_id: str, message: str) -> None:
        try:
            self.record_failure(job_id, message)
        except Exception:
            logger.exception(f"Could not record failure for job {job_id}")

    def is_running(self, job_id: str) -> bool:
        return job_id in self._tasks

    async def wait(self, job_id: Optional[str] = None) -> None:
        """Wait for one job, or for every job currently running."""
        tasks = [self._tasks[job_id]] if job_id in self._tasks else (
            [] if job_id else list(self._tasks.values())
        )
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
