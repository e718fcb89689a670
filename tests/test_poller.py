"""Tests for the remote job poller."""
import asyncio

import pytest

from spotlight.pipeline.poller import (
    AnalysisJobStatus,
    JobFailedError,
    JobPollResult,
    JobPoller,
    JobTimeoutError,
    wait_for_job,
)


class _ScriptedJob:
    """Returns a fixed sequence of statuses, repeating the last one."""

    def __init__(self, *statuses, result=None, message=None):
        self.statuses = list(statuses)
        self.result = result or {}
        self.message = message
        self.polls = 0
        self.submitted = 0

    async def submit(self):
        self.submitted += 1
        return "job-1"

    async def poll(self, job_id):
        assert job_id == "job-1"
        status = self.statuses[min(self.polls, len(self.statuses) - 1)]
        self.polls += 1
        return JobPollResult(status=status, result=self.result, message=self.message)


class TestAnalysisJobStatus:
    """Tests for status parsing."""

    def test_known_values(self):
        assert AnalysisJobStatus.parse("SUCCEEDED") == AnalysisJobStatus.SUCCEEDED
        assert AnalysisJobStatus.parse("in_progress") == AnalysisJobStatus.IN_PROGRESS

    def test_aliases(self):
        assert AnalysisJobStatus.parse("COMPLETE") == AnalysisJobStatus.SUCCEEDED
        assert AnalysisJobStatus.parse("error") == AnalysisJobStatus.FAILED

    def test_unknown_is_in_progress(self):
        assert AnalysisJobStatus.parse("QUEUED") == AnalysisJobStatus.IN_PROGRESS
        assert AnalysisJobStatus.parse("") == AnalysisJobStatus.IN_PROGRESS

    def test_terminal(self):
        assert AnalysisJobStatus.SUCCEEDED.is_terminal
        assert AnalysisJobStatus.FAILED.is_terminal
        assert not AnalysisJobStatus.PENDING.is_terminal


class TestWaitForJob:
    """Tests for wait_for_job."""

    @pytest.mark.asyncio
    async def test_polls_until_succeeded(self):
        job = _ScriptedJob(
            AnalysisJobStatus.PENDING,
            AnalysisJobStatus.IN_PROGRESS,
            AnalysisJobStatus.SUCCEEDED,
            result={"labels": []},
        )
        observation = await wait_for_job(job.poll, "job-1", poll_interval_sec=0)
        assert observation.status == AnalysisJobStatus.SUCCEEDED
        assert observation.result == {"labels": []}
        assert job.polls == 3

    @pytest.mark.asyncio
    async def test_failed_raises(self):
        job = _ScriptedJob(AnalysisJobStatus.IN_PROGRESS, AnalysisJobStatus.FAILED, message="bad video")
        with pytest.raises(JobFailedError) as exc_info:
            await wait_for_job(job.poll, "job-1", poll_interval_sec=0)
        assert exc_info.value.job_id == "job-1"
        assert "bad video" in str(exc_info.value)
        assert job.polls == 2

    @pytest.mark.asyncio
    async def test_max_attempts(self):
        job = _ScriptedJob(AnalysisJobStatus.IN_PROGRESS)
        with pytest.raises(JobTimeoutError) as exc_info:
            await wait_for_job(job.poll, "job-1", poll_interval_sec=0, max_attempts=4)
        assert exc_info.value.attempts == 4
        assert job.polls == 4

    @pytest.mark.asyncio
    async def test_max_wait(self):
        job = _ScriptedJob(AnalysisJobStatus.IN_PROGRESS)
        with pytest.raises(JobTimeoutError):
            await wait_for_job(job.poll, "job-1", poll_interval_sec=0.01, max_wait_sec=0)
        assert job.polls == 1

    @pytest.mark.asyncio
    async def test_sleeps_between_polls(self, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        job = _ScriptedJob(AnalysisJobStatus.PENDING, AnalysisJobStatus.PENDING, AnalysisJobStatus.SUCCEEDED)
        await wait_for_job(job.poll, "job-1", poll_interval_sec=5)
        assert sleeps == [5, 5]

    @pytest.mark.asyncio
    async def test_cancellation(self):
        job = _ScriptedJob(AnalysisJobStatus.IN_PROGRESS)
        task = asyncio.create_task(wait_for_job(job.poll, "job-1", poll_interval_sec=10, max_wait_sec=None))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestJobPoller:
    """Tests for the submit-and-wait helper."""

    @pytest.mark.asyncio
    async def test_run_submits_once(self):
        job = _ScriptedJob(AnalysisJobStatus.SUBMITTED, AnalysisJobStatus.SUCCEEDED)
        poller = JobPoller(poll_interval_sec=0)
        observation = await poller.run(job.submit, job.poll, job_label="label detection")
        assert observation.status == AnalysisJobStatus.SUCCEEDED
        assert job.submitted == 1

    @pytest.mark.asyncio
    async def test_run_respects_attempt_limit(self):
        job = _ScriptedJob(AnalysisJobStatus.IN_PROGRESS)
        poller = JobPoller(poll_interval_sec=0, max_attempts=2)
        with pytest.raises(JobTimeoutError):
            await poller.run(job.submit, job.poll)
