"""Background job runner using asyncio."""
import asyncio
import json
import logging
import traceback
from datetime import datetime
from typing import Callable, Dict, Optional

from spotlight.db.database import async_session_maker
from spotlight.models.job import Job, JobStatus

logger = logging.getLogger(__name__)


class JobRunner:
    """Async background job runner.

    Each job row is driven through running -> completed / failed / cancelled
    by a task keyed on the job id.
    """

    def __init__(self, session_factory: Callable = async_session_maker):
        self.session_factory = session_factory
        self._running_jobs: Dict[int, asyncio.Task] = {}
        self._job_handlers: Dict[str, Callable] = {}

    def register_handler(self, job_type: str, handler: Callable):
        """Register a handler for a job type."""
        self._job_handlers[job_type] = handler

    async def start_job(
        self,
        job_id: int,
        job_type: str,
        **kwargs
    ) -> bool:
        """
        Start a background job.

        Args:
            job_id: Database ID of the job
            job_type: Type of job to run
            **kwargs: Arguments to pass to the job handler

        Returns:
            True if job started successfully
        """
        if job_id in self._running_jobs:
            logger.warning(f"Job {job_id} is already running")
            return False

        handler = self._job_handlers.get(job_type)
        if not handler:
            logger.error(f"No handler registered for job type: {job_type}")
            return False

        task = asyncio.create_task(
            self._run_job(job_id, handler, **kwargs)
        )
        self._running_jobs[job_id] = task

        return True

    async def _set_job_fields(self, job_id: int, **fields):
        async with self.session_factory() as session:
            job = await session.get(Job, job_id)
            if not job:
                return False
            for key, value in fields.items():
                setattr(job, key, value)
            await session.commit()
            return True

    async def _run_job(
        self,
        job_id: int,
        handler: Callable,
        **kwargs
    ):
        """Run a job with error handling and status updates."""
        try:
            found = await self._set_job_fields(
                job_id,
                status=JobStatus.RUNNING,
                started_at=datetime.utcnow(),
                message="Starting...",
            )
            if not found:
                logger.error(f"Job {job_id} not found")
                return

            async def update_progress(progress: float, message: Optional[str] = None):
                fields = {"progress": min(100, max(0, progress))}
                if message:
                    fields["message"] = message
                await self._set_job_fields(job_id, **fields)

            result = await handler(
                job_id=job_id,
                progress_callback=update_progress,
                **kwargs
            )

            fields = {
                "status": JobStatus.COMPLETED,
                "progress": 100,
                "message": "Completed successfully",
                "completed_at": datetime.utcnow(),
            }
            if result:
                fields["result"] = json.dumps(result) if isinstance(result, (dict, list)) else str(result)
            await self._set_job_fields(job_id, **fields)

            logger.info(f"Job {job_id} completed successfully")

        except asyncio.CancelledError:
            await self._set_job_fields(
                job_id,
                status=JobStatus.CANCELLED,
                message="Job cancelled",
                completed_at=datetime.utcnow(),
            )
            logger.info(f"Job {job_id} was cancelled")

        except Exception as e:
            error_msg = str(e)
            error_trace = traceback.format_exc()
            logger.error(f"Job {job_id} failed: {error_msg}\n{error_trace}")

            await self._set_job_fields(
                job_id,
                status=JobStatus.FAILED,
                message=f"Failed: {error_msg}",
                error=error_trace,
                completed_at=datetime.utcnow(),
            )

        finally:
            self._running_jobs.pop(job_id, None)

    async def cancel_job(self, job_id: int) -> bool:
        """Cancel a running job."""
        task = self._running_jobs.get(job_id)
        if task:
            task.cancel()
            return True
        return False

    def is_job_running(self, job_id: int) -> bool:
        """Check if a job is currently running."""
        return job_id in self._running_jobs

    async def wait_for(self, job_id: int):
        """Wait until a running job's task finishes."""
        task = self._running_jobs.get(job_id)
        if task:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self):
        """Cancel all running jobs."""
        tasks = list(self._running_jobs.values())
        for task in tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._running_jobs.clear()


# Global job runner instance
job_runner = JobRunner()
