"""Job run repository for idempotent job execution."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert

from rotation_app.storage.database import JobRunTable, get_database

STATUS_RUNNING = "running"
STATUS_DONE = "done"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class JobRun:
    idempotency_key: str
    job_name: str
    status: str
    result: Any = None
    error: str | None = None


class JobRepository:
    """Tracks job invocations by idempotency key."""

    async def get(self, key: str) -> JobRun | None:
        async with get_database().session() as session:
            row = await session.get(JobRunTable, key)
            if row is None:
                return None
            return JobRun(row.idempotency_key, row.job_name, row.status, row.result_json, row.error)

    async def start(self, key: str, job_name: str, payload: dict) -> bool:
        """Claim the key. Returns False if another run already holds it.

        A failed run may be claimed again.
        """
        async with get_database().session() as session:
            stmt = insert(JobRunTable).values(
                idempotency_key=key,
                job_name=job_name,
                payload_json=payload,
                status=STATUS_RUNNING,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["idempotency_key"],
                set_={"status": STATUS_RUNNING, "error": None, "finished_at": None},
                where=JobRunTable.status == STATUS_FAILED,
            ).returning(JobRunTable.idempotency_key)
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def finish(self, key: str, result: Any) -> None:
        async with get_database().session() as session:
            await session.execute(
                update(JobRunTable)
                .where(JobRunTable.idempotency_key == key)
                .values(
                    status=STATUS_DONE,
                    result_json=result,
                    finished_at=datetime.now(timezone.utc),
                )
            )

    async def fail(self, key: str, error: str) -> None:
        async with get_database().session() as session:
            await session.execute(
                update(JobRunTable)
                .where(JobRunTable.idempotency_key == key)
                .values(
                    status=STATUS_FAILED,
                    error=error,
                    finished_at=datetime.now(timezone.utc),
                )
            )

    async def list_recent(self, limit: int = 20) -> list[JobRun]:
        async with get_database().session() as session:
            result = await session.execute(
                select(JobRunTable).order_by(JobRunTable.created_at.desc()).limit(limit)
            )
            return [
                JobRun(r.idempotency_key, r.job_name, r.status, r.result_json, r.error)
                for r in result.scalars().all()
            ]
