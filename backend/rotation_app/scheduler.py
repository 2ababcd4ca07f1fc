"""Job scheduler CLI.

Triggers the job endpoints over HTTP, either once or on a cron-like minute
tick.

Usage:
    python -m rotation_app.scheduler --flow daily --as-of-date 2024-06-03
    python -m rotation_app.scheduler --flow weekly --week-end-date 2024-06-07 --top-n 2
    python -m rotation_app.scheduler --schedule
    python -m rotation_app.scheduler --run-job research-ai:/api/jobs/score-document \\
        --payload-json '{"symbol": "NVDA", "text": "..."}'
"""

import argparse
import asyncio
import hashlib
import logging
import sys
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Optional

import httpx
import orjson
from pydantic_settings import BaseSettings, SettingsConfigDict

from rotation_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

SERVICES = ("market-data", "research-ai", "signal-engine")
DEFAULT_DAILY_CRON = "10 16 * * *"
DEFAULT_WEEKLY_CRON = "10 16 * * 0"
TICK_SECONDS = 60


class SchedulerSettings(BaseSettings):
    """Scheduler configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    market_data_base_url: Optional[str] = None
    research_ai_base_url: Optional[str] = None
    signal_engine_base_url: Optional[str] = None

    scheduler_auth_token: str = ""
    scheduler_daily_cron: str = DEFAULT_DAILY_CRON
    scheduler_weekly_cron: str = DEFAULT_WEEKLY_CRON
    scheduler_timeout_seconds: float = 120.0

    def base_url(self, service: str) -> str:
        urls = {
            "market-data": self.market_data_base_url,
            "research-ai": self.research_ai_base_url,
            "signal-engine": self.signal_engine_base_url,
        }
        if service not in urls:
            raise ConfigurationError(f"Unknown service {service}")
        url = urls[service]
        if not url:
            env_name = service.upper().replace("-", "_") + "_BASE_URL"
            raise ConfigurationError(f"Missing required env var {env_name}")
        return url


@lru_cache
def get_scheduler_settings() -> SchedulerSettings:
    """Get cached scheduler settings instance."""
    return SchedulerSettings()


@dataclass
class JobConfig:
    service: str
    path: str
    payload: dict[str, Any] = field(default_factory=dict)
    idempotency_key: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.service}:{self.path}"


def build_idempotency_key(job_name: str, payload: dict[str, Any]) -> str:
    """sha256 of ``job_name:`` followed by the compact JSON payload."""
    body = orjson.dumps(payload).decode()
    return hashlib.sha256(f"{job_name}:{body}".encode()).hexdigest()


# =============================================================================
# Cron matching
# =============================================================================


def parse_cron(expression: str) -> tuple[str, str, str, str, str]:
    parts = expression.split()
    if len(parts) != 5:
        raise ValueError(f'Cron expression must have 5 fields, got "{expression}"')
    return tuple(parts)  # type: ignore[return-value]


def _match_field(expr: str, value: int) -> bool:
    if expr == "*":
        return True
    try:
        return int(expr) == value
    except ValueError:
        return False


def cron_matches(expression: str, now: datetime) -> bool:
    """Match literal or ``*`` fields; day-of-week counts Sunday as 0."""
    minute, hour, day, month, weekday = parse_cron(expression)
    return (
        _match_field(minute, now.minute)
        and _match_field(hour, now.hour)
        and _match_field(day, now.day)
        and _match_field(month, now.month)
        and _match_field(weekday, now.isoweekday() % 7)
    )


# =============================================================================
# Flows
# =============================================================================


def parse_symbols(value: Optional[str]) -> list[str]:
    if not value:
        return []
    seen: dict[str, None] = {}
    for item in value.split(","):
        symbol = item.strip().upper()
        if symbol:
            seen.setdefault(symbol, None)
    return list(seen)


def build_daily_flow(args: argparse.Namespace, today: Optional[date] = None) -> list[JobConfig]:
    """ingest -> indicators -> signals for one session.

    An empty symbol list lets the service fall back to its configured universe.
    """
    as_of = args.as_of_date or (today or date.today()).isoformat()
    symbols = parse_symbols(args.symbols)

    indicator_payload: dict[str, Any] = {"asOfDate": as_of, "symbols": symbols}
    if args.lookback_days is not None:
        indicator_payload["lookbackDays"] = args.lookback_days

    return [
        JobConfig(
            "market-data",
            "/api/jobs/daily-ingest",
            {"asOfDate": as_of, "symbols": symbols, "force": args.force},
        ),
        JobConfig("market-data", "/api/jobs/compute-indicators", indicator_payload),
        JobConfig(
            "signal-engine",
            "/api/jobs/evaluate-signals",
            {"asOfDate": as_of, "symbols": symbols},
        ),
    ]


def build_weekly_flow(args: argparse.Namespace, today: Optional[date] = None) -> list[JobConfig]:
    week_end = args.week_end_date or (today or date.today()).isoformat()
    payload: dict[str, Any] = {"weekEndDate": week_end, "benchmark": args.benchmark}
    if args.top_n is not None:
        payload["topN"] = args.top_n
    return [JobConfig("market-data", "/api/jobs/weekly-sector-rank", payload)]


def parse_run_job(value: str, payload_json: str, idempotency_key: Optional[str] = None) -> JobConfig:
    service, sep, path = value.partition(":")
    if not sep or not service or not path:
        raise ValueError("--run-job format must be <service:/api/path>")
    if service not in SERVICES:
        raise ValueError(f"Unknown service {service}")
    try:
        payload = orjson.loads(payload_json)
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Invalid --payload-json: {e}") from e
    if not isinstance(payload, dict):
        raise ValueError("--payload-json must be a JSON object")
    return JobConfig(service, path, payload, idempotency_key)


# =============================================================================
# Execution
# =============================================================================


class JobDispatcher:
    """POSTs jobs to their services with idempotency and auth headers."""

    def __init__(
        self,
        settings: SchedulerSettings,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.scheduler_timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def headers_for(self, job: JobConfig) -> dict[str, str]:
        headers = {
            "Idempotency-Key": job.idempotency_key
            or build_idempotency_key(job.name, job.payload),
        }
        if self._settings.scheduler_auth_token:
            headers["Authorization"] = f"Bearer {self._settings.scheduler_auth_token}"
        return headers

    async def run_job(self, job: JobConfig) -> Any:
        url = self._settings.base_url(job.service).rstrip("/") + job.path
        client = await self._get_client()
        response = await client.post(
            url,
            content=orjson.dumps(job.payload),
            headers={"Content-Type": "application/json", **self.headers_for(job)},
        )
        response.raise_for_status()
        result = response.json() if response.content else {}
        logger.info(f"{job.service}{job.path}: {orjson.dumps(result).decode()}")
        return result

    async def run_flow(self, jobs: list[JobConfig]) -> list[Any]:
        """Run jobs in order; the first failure stops the flow."""
        results = []
        for job in jobs:
            results.append(await self.run_job(job))
        return results


class CronLoop:
    """Minute tick loop; each flow fires at most once per calendar day."""

    def __init__(self, dispatcher: JobDispatcher, args: argparse.Namespace, daily_cron: str, weekly_cron: str):
        self._dispatcher = dispatcher
        self._args = args
        self._daily_cron = daily_cron
        self._weekly_cron = weekly_cron
        self._last_daily: Optional[date] = None
        self._last_weekly: Optional[date] = None

    async def tick(self, now: datetime) -> list[str]:
        fired = []
        today = now.date()
        if cron_matches(self._daily_cron, now) and self._last_daily != today:
            self._last_daily = today
            fired.append("daily")
            await self._safe_run("daily", build_daily_flow(self._args, today))
        if cron_matches(self._weekly_cron, now) and self._last_weekly != today:
            self._last_weekly = today
            fired.append("weekly")
            await self._safe_run("weekly", build_weekly_flow(self._args, today))
        return fired

    async def _safe_run(self, flow: str, jobs: list[JobConfig]) -> None:
        try:
            await self._dispatcher.run_flow(jobs)
        except (httpx.HTTPError, ConfigurationError) as e:
            logger.error(f"{flow} flow failed: {e}")

    async def run_forever(self) -> None:
        logger.info(f"Scheduler started (daily='{self._daily_cron}', weekly='{self._weekly_cron}')")
        while True:
            await self.tick(datetime.now())
            await asyncio.sleep(TICK_SECONDS)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Trigger sector rotation jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--flow", choices=("daily", "weekly"), help="Run one flow and exit")
    mode.add_argument("--schedule", action="store_true", help="Run flows on cron schedule")
    mode.add_argument("--run-job", type=str, default=None, help="Run a single job <service:/api/path>")

    parser.add_argument("--payload-json", type=str, default="{}")
    parser.add_argument("--idempotency-key", type=str, default=None)
    parser.add_argument("--as-of-date", type=str, default=None, help="YYYY-MM-DD (default: today)")
    parser.add_argument("--week-end-date", type=str, default=None, help="YYYY-MM-DD (default: today)")
    parser.add_argument("--symbols", type=str, default=None, help="Comma-separated symbols")
    parser.add_argument("--force", action="store_true", help="Re-ingest existing bars")
    parser.add_argument("--lookback-days", type=int, default=None)
    parser.add_argument("--benchmark", type=str, default="QQQ")
    parser.add_argument("--top-n", type=int, default=None)
    parser.add_argument("--daily-cron", type=str, default=None)
    parser.add_argument("--weekly-cron", type=str, default=None)
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


async def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    settings = get_scheduler_settings()
    dispatcher = JobDispatcher(settings)

    try:
        if args.schedule:
            loop = CronLoop(
                dispatcher,
                args,
                args.daily_cron or settings.scheduler_daily_cron,
                args.weekly_cron or settings.scheduler_weekly_cron,
            )
            await loop.run_forever()
        elif args.run_job:
            job = parse_run_job(args.run_job, args.payload_json, args.idempotency_key)
            await dispatcher.run_job(job)
        else:
            builder = build_daily_flow if args.flow == "daily" else build_weekly_flow
            await dispatcher.run_flow(builder(args))
    except (ValueError, ConfigurationError, httpx.HTTPError) as e:
        logger.error(str(e))
        return 1
    finally:
        await dispatcher.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
