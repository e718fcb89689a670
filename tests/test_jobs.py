"""Tests for the background job runner and collaborator HTTP helpers."""
import asyncio
import json

import httpx
import pytest

from spotlight.models.job import Job, JobStatus, JobType
from spotlight.utils import http as http_module
from spotlight.utils.http import CollaboratorError, CollaboratorUnavailableError, request_json
from spotlight.utils.recommender import RecommenderClient
from spotlight.workers.job_runner import JobRunner


async def _create_job(session_factory, job_type=JobType.CLIP_SCAN):
    async with session_factory() as session:
        job = Job(job_type=job_type, status=JobStatus.PENDING)
        session.add(job)
        await session.commit()
        return job.id


async def _load_job(session_factory, job_id):
    async with session_factory() as session:
        return await session.get(Job, job_id)


class TestJobRunner:
    """Tests for JobRunner state transitions."""

    @pytest.mark.asyncio
    async def test_completed_job_stores_result(self, session_factory):
        runner = JobRunner(session_factory)
        seen = {}

        async def handler(job_id, progress_callback, source_id=None):
            seen["source_id"] = source_id
            await progress_callback(40, "Halfway")
            return {"submitted": 2}

        runner.register_handler(JobType.CLIP_SCAN.value, handler)
        job_id = await _create_job(session_factory)

        assert await runner.start_job(job_id, JobType.CLIP_SCAN.value, source_id="G1") is True
        await runner.wait_for(job_id)

        job = await _load_job(session_factory, job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100
        assert json.loads(job.result) == {"submitted": 2}
        assert seen["source_id"] == "G1"
        assert not runner.is_job_running(job_id)

    @pytest.mark.asyncio
    async def test_failed_job_records_error(self, session_factory):
        runner = JobRunner(session_factory)

        async def handler(job_id, progress_callback):
            raise RuntimeError("detection unavailable")

        runner.register_handler(JobType.ANALYZE.value, handler)
        job_id = await _create_job(session_factory, JobType.ANALYZE)
        await runner.start_job(job_id, JobType.ANALYZE.value)
        await runner.wait_for(job_id)

        job = await _load_job(session_factory, job_id)
        assert job.status == JobStatus.FAILED
        assert job.message == "Failed: detection unavailable"
        assert "RuntimeError" in job.error

    @pytest.mark.asyncio
    async def test_unknown_job_type(self, session_factory):
        runner = JobRunner(session_factory)
        assert await runner.start_job(1, "missing") is False

    @pytest.mark.asyncio
    async def test_cancel(self, session_factory):
        runner = JobRunner(session_factory)
        started = asyncio.Event()

        async def handler(job_id, progress_callback):
            started.set()
            await asyncio.sleep(60)

        runner.register_handler(JobType.CLIP_SCAN.value, handler)
        job_id = await _create_job(session_factory)
        await runner.start_job(job_id, JobType.CLIP_SCAN.value)
        await started.wait()

        assert await runner.cancel_job(job_id) is True
        await runner.wait_for(job_id)

        job = await _load_job(session_factory, job_id)
        assert job.status == JobStatus.CANCELLED


def _mock_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(http_module.httpx, "AsyncClient", factory)


class TestRequestJson:
    """Tests for request_json error mapping."""

    @pytest.mark.asyncio
    async def test_success(self, monkeypatch):
        def handler(request):
            assert request.url.params["userId"] == "u1"
            return httpx.Response(200, json={"itemList": [{"itemId": "h2"}, {"itemId": "h1"}]})

        _mock_transport(monkeypatch, handler)
        ids = await RecommenderClient("http://recommender").get_recommendations("u1")
        assert ids == ["h2", "h1"]

    @pytest.mark.asyncio
    async def test_error_status(self, monkeypatch):
        _mock_transport(monkeypatch, lambda request: httpx.Response(503, json={"error": "overloaded"}))
        with pytest.raises(CollaboratorError, match="overloaded"):
            await request_json("GET", "http://svc/x", "detection")

    @pytest.mark.asyncio
    async def test_connection_error(self, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        _mock_transport(monkeypatch, handler)
        with pytest.raises(CollaboratorUnavailableError):
            await request_json("GET", "http://svc/x", "detection")

    @pytest.mark.asyncio
    async def test_invalid_json(self, monkeypatch):
        _mock_transport(monkeypatch, lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(CollaboratorError, match="invalid response"):
            await request_json("GET", "http://svc/x", "detection")
