"""Tests for the job scheduler CLI."""

import hashlib
from datetime import date, datetime
from unittest.mock import AsyncMock

import httpx
import orjson
import pytest

from rotation_core.errors import ConfigurationError
from rotation_app.scheduler import (
    CronLoop,
    JobConfig,
    JobDispatcher,
    SchedulerSettings,
    build_daily_flow,
    build_idempotency_key,
    build_weekly_flow,
    cron_matches,
    parse_args,
    parse_cron,
    parse_run_job,
)

TODAY = date(2024, 6, 3)


def settings(**overrides):
    values = dict(
        market_data_base_url="http://market.test",
        research_ai_base_url="http://ai.test",
        signal_engine_base_url="http://signals.test",
        scheduler_auth_token="",
    )
    values.update(overrides)
    return SchedulerSettings(**values)


class TestCron:
    def test_parse_requires_five_fields(self):
        with pytest.raises(ValueError):
            parse_cron("10 16 * *")

    def test_daily_match(self):
        assert cron_matches("10 16 * * *", datetime(2024, 6, 3, 16, 10))
        assert not cron_matches("10 16 * * *", datetime(2024, 6, 3, 16, 11))

    def test_weekday_sunday_is_zero(self):
        assert cron_matches("10 16 * * 0", datetime(2024, 6, 9, 16, 10))
        assert not cron_matches("10 16 * * 0", datetime(2024, 6, 10, 16, 10))

    def test_unsupported_field_never_matches(self):
        assert not cron_matches("*/5 * * * *", datetime(2024, 6, 3, 16, 10))


class TestFlows:
    def test_daily_flow(self):
        args = parse_args(["--flow", "daily", "--symbols", "nvda, AMD,nvda", "--lookback-days", "300"])
        jobs = build_daily_flow(args, TODAY)

        assert [j.path for j in jobs] == [
            "/api/jobs/daily-ingest",
            "/api/jobs/compute-indicators",
            "/api/jobs/evaluate-signals",
        ]
        assert jobs[0].payload == {"asOfDate": "2024-06-03", "symbols": ["NVDA", "AMD"], "force": False}
        assert jobs[1].payload["lookbackDays"] == 300
        assert jobs[2].service == "signal-engine"

    def test_weekly_flow(self):
        args = parse_args(["--flow", "weekly", "--week-end-date", "2024-06-07", "--top-n", "3"])
        (job,) = build_weekly_flow(args, TODAY)

        assert job.path == "/api/jobs/weekly-sector-rank"
        assert job.payload == {"weekEndDate": "2024-06-07", "benchmark": "QQQ", "topN": 3}

    def test_parse_run_job(self):
        job = parse_run_job("research-ai:/api/jobs/score-document", '{"symbol": "NVDA"}')
        assert job.service == "research-ai"
        assert job.path == "/api/jobs/score-document"
        assert job.payload == {"symbol": "NVDA"}

    def test_parse_run_job_errors(self):
        with pytest.raises(ValueError):
            parse_run_job("market-data", "{}")
        with pytest.raises(ValueError):
            parse_run_job("billing:/api/x", "{}")
        with pytest.raises(ValueError):
            parse_run_job("market-data:/api/x", "{not json")


class TestDispatcher:
    def test_idempotency_key(self):
        payload = {"asOfDate": "2024-06-03", "symbols": []}
        expected = hashlib.sha256(
            b'market-data:/api/jobs/daily-ingest:{"asOfDate":"2024-06-03","symbols":[]}'
        ).hexdigest()
        assert build_idempotency_key("market-data:/api/jobs/daily-ingest", payload) == expected

    def test_missing_base_url(self):
        with pytest.raises(ConfigurationError):
            settings(research_ai_base_url=None).base_url("research-ai")

    @pytest.mark.asyncio
    async def test_run_job_sends_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = orjson.loads(request.content)
            return httpx.Response(200, json={"ok": True, "data": {"inserted": 1}})

        dispatcher = JobDispatcher(
            settings(scheduler_auth_token="token"),
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        job = JobConfig("market-data", "/api/jobs/daily-ingest", {"asOfDate": "2024-06-03"})

        result = await dispatcher.run_job(job)
        await dispatcher.close()

        assert result["data"] == {"inserted": 1}
        assert seen["url"] == "http://market.test/api/jobs/daily-ingest"
        assert seen["headers"]["Authorization"] == "Bearer token"
        assert seen["headers"]["Idempotency-Key"] == build_idempotency_key(job.name, job.payload)
        assert seen["body"] == {"asOfDate": "2024-06-03"}

    @pytest.mark.asyncio
    async def test_explicit_key_and_error_status(self):
        dispatcher = JobDispatcher(
            settings(),
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(409, json={"ok": False}))
            ),
        )
        job = JobConfig("market-data", "/api/jobs/daily-ingest", {}, idempotency_key="fixed")

        assert dispatcher.headers_for(job)["Idempotency-Key"] == "fixed"
        assert "Authorization" not in dispatcher.headers_for(job)
        with pytest.raises(httpx.HTTPStatusError):
            await dispatcher.run_job(job)
        await dispatcher.close()


class TestCronLoop:
    @pytest.mark.asyncio
    async def test_each_flow_once_per_day(self):
        dispatcher = JobDispatcher(settings())
        dispatcher.run_flow = AsyncMock(return_value=[])
        args = parse_args(["--schedule"])
        loop = CronLoop(dispatcher, args, "10 16 * * *", "10 16 * * 0")

        sunday = datetime(2024, 6, 9, 16, 10)
        assert await loop.tick(sunday) == ["daily", "weekly"]
        assert await loop.tick(sunday) == []
        assert await loop.tick(datetime(2024, 6, 10, 16, 10)) == ["daily"]
        assert dispatcher.run_flow.await_count == 3

    @pytest.mark.asyncio
    async def test_failed_flow_does_not_stop_loop(self):
        dispatcher = JobDispatcher(settings())
        dispatcher.run_flow = AsyncMock(side_effect=httpx.ConnectError("down"))
        loop = CronLoop(dispatcher, parse_args(["--schedule"]), "* * * * *", "0 0 1 1 0")

        assert await loop.tick(datetime(2024, 6, 3, 9, 0)) == ["daily"]
