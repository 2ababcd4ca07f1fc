"""Tests for idempotent job execution."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from rotation_app.services.jobs import JobInProgress, JobRunner, idempotency_key
from rotation_app.storage import JobRun
from rotation_app.storage.job_repo import STATUS_DONE, STATUS_FAILED, STATUS_RUNNING


def make_repo(existing=None, claimed=True):
    repo = MagicMock()
    repo.get = AsyncMock(return_value=existing)
    repo.start = AsyncMock(return_value=claimed)
    repo.finish = AsyncMock()
    repo.fail = AsyncMock()
    return repo


class TestIdempotencyKey:
    def test_deterministic(self):
        payload = {"asOfDate": "2024-06-03", "symbols": ["NVDA"]}
        assert idempotency_key("daily-ingest", payload) == idempotency_key("daily-ingest", dict(payload))

    def test_key_order_does_not_matter(self):
        assert idempotency_key("job", {"a": 1, "b": 2}) == idempotency_key("job", {"b": 2, "a": 1})

    def test_job_name_matters(self):
        assert idempotency_key("a", {}) != idempotency_key("b", {})


class TestJobRunner:
    @pytest.mark.asyncio
    async def test_runs_new_job(self):
        repo = make_repo()
        handler = AsyncMock(return_value={"inserted": 3})

        result, replayed = await JobRunner(repo).run("daily-ingest", {"x": 1}, handler)

        assert result == {"inserted": 3}
        assert replayed is False
        handler.assert_awaited_once()
        repo.finish.assert_awaited_once_with(idempotency_key("daily-ingest", {"x": 1}), {"inserted": 3})

    @pytest.mark.asyncio
    async def test_replays_completed_job(self):
        done = JobRun("k", "daily-ingest", STATUS_DONE, {"inserted": 3})
        repo = make_repo(existing=done)
        handler = AsyncMock()

        result, replayed = await JobRunner(repo).run("daily-ingest", {}, handler, key="k")

        assert result == {"inserted": 3}
        assert replayed is True
        handler.assert_not_awaited()
        repo.start.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_running_job_conflicts(self):
        repo = make_repo(existing=JobRun("k", "daily-ingest", STATUS_RUNNING))
        with pytest.raises(JobInProgress):
            await JobRunner(repo).run("daily-ingest", {}, AsyncMock(), key="k")

    @pytest.mark.asyncio
    async def test_lost_claim_conflicts(self):
        repo = make_repo(claimed=False)
        with pytest.raises(JobInProgress):
            await JobRunner(repo).run("daily-ingest", {}, AsyncMock(), key="k")

    @pytest.mark.asyncio
    async def test_failed_job_can_retry(self):
        repo = make_repo(existing=JobRun("k", "daily-ingest", STATUS_FAILED, error="boom"))
        handler = AsyncMock(return_value={"ok": 1})

        result, replayed = await JobRunner(repo).run("daily-ingest", {}, handler, key="k")

        assert result == {"ok": 1}
        assert replayed is False

    @pytest.mark.asyncio
    async def test_failure_recorded_and_reraised(self):
        repo = make_repo()
        handler = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await JobRunner(repo).run("daily-ingest", {}, handler, key="k")

        repo.fail.assert_awaited_once_with("k", "boom")
        repo.finish.assert_not_awaited()
