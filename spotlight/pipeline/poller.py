"""Job poller for externally submitted asynchronous analysis jobs.

Detection and person-tracking run as remote jobs with a start/poll/result
contract. The poller drives one job to a terminal state at a fixed interval,
bounded by a maximum wait and an optional attempt limit.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class AnalysisJobStatus(str, enum.Enum):
    """Remote analysis job status."""
    SUBMITTED = "SUBMITTED"
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisJobStatus.SUCCEEDED, AnalysisJobStatus.FAILED)

    @classmethod
    def parse(cls, value: str) -> "AnalysisJobStatus":
        """Parse a collaborator status string; unknown values count as in progress."""
        normalized = (value or "").strip().upper()
        if normalized in ("ERROR", "FAILURE"):
            return cls.FAILED
        if normalized in ("COMPLETE", "COMPLETED", "SUCCESS"):
            return cls.SUCCEEDED
        try:
            return cls(normalized)
        except ValueError:
            return cls.IN_PROGRESS


@dataclass
class JobPollResult:
    """One observation of a remote job."""
    status: AnalysisJobStatus
    result: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None


class JobFailedError(RuntimeError):
    """Raised when a remote job reaches the FAILED state."""

    def __init__(self, job_id: str, message: Optional[str] = None):
        self.job_id = job_id
        super().__init__(f"Job {job_id} failed" + (f": {message}" if message else ""))


class JobTimeoutError(RuntimeError):
    """Raised when a remote job does not finish within the allowed wait."""

    def __init__(self, job_id: str, waited_sec: float, attempts: int):
        self.job_id = job_id
        self.waited_sec = waited_sec
        self.attempts = attempts
        super().__init__(
            f"Timed out waiting for job {job_id} ({waited_sec:.0f}s, {attempts} polls)"
        )


PollFn = Callable[[str], Awaitable[JobPollResult]]


async def wait_for_job(
    poll: PollFn,
    job_id: str,
    poll_interval_sec: float = 5.0,
    max_wait_sec: Optional[float] = 3600.0,
    max_attempts: Optional[int] = None,
    job_label: str = "analysis",
) -> JobPollResult:
    """
    Poll a remote job until it succeeds or fails.

    Args:
        poll: Async callable returning the current JobPollResult for job_id
        job_id: Remote job identifier
        poll_interval_sec: Delay between polls
        max_wait_sec: Give up after this many seconds (None for no limit)
        max_attempts: Give up after this many polls (None for no limit)
        job_label: Name used in log messages

    Returns:
        The terminal JobPollResult (status SUCCEEDED)

    Raises:
        JobFailedError: If the job reports FAILED
        JobTimeoutError: If the wait or attempt limit is exceeded
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    attempts = 0
    last_status = None

    while True:
        observation = await poll(job_id)
        attempts += 1

        if observation.status != last_status:
            logger.info(f"{job_label} job {job_id}: {observation.status.value}")
            last_status = observation.status

        if observation.status == AnalysisJobStatus.SUCCEEDED:
            return observation
        if observation.status == AnalysisJobStatus.FAILED:
            raise JobFailedError(job_id, observation.message)

        waited = loop.time() - started
        if max_attempts is not None and attempts >= max_attempts:
            raise JobTimeoutError(job_id, waited, attempts)
        if max_wait_sec is not None and waited + poll_interval_sec > max_wait_sec:
            raise JobTimeoutError(job_id, waited, attempts)

        await asyncio.sleep(poll_interval_sec)


class JobPoller:
    """Submit-and-wait helper bound to a poll interval and limits."""

    def __init__(
        self,
        poll_interval_sec: float = 5.0,
        max_wait_sec: Optional[float] = 3600.0,
        max_attempts: Optional[int] = None,
    ):
        self.poll_interval_sec = poll_interval_sec
        self.max_wait_sec = max_wait_sec
        self.max_attempts = max_attempts

    async def run(
        self,
        submit: Callable[[], Awaitable[str]],
        poll: PollFn,
        job_label: str = "analysis",
    ) -> JobPollResult:
        """Submit a job and wait for its terminal state."""
        job_id = await submit()
        logger.info(f"Submitted {job_label} job {job_id}")
        return await wait_for_job(
            poll,
            job_id,
            poll_interval_sec=self.poll_interval_sec,
            max_wait_sec=self.max_wait_sec,
            max_attempts=self.max_attempts,
            job_label=job_label,
        )
