"""Idempotent job execution.

Every job invocation is keyed by sha256("{job_name}:{payload json}"). A
key that already completed returns its stored result instead of running
again; a key that failed may be retried.
"""

import hashlib
import logging
from typing import Any, Awaitable, Callable

import orjson

from rotation_app.storage import JobRepository
from rotation_app.storage.job_repo import STATUS_DONE, STATUS_RUNNING

logger = logging.getLogger(__name__)

JobHandler = Callable[[], Awaitable[dict]]


class JobInProgress(Exception):
    """Another invocation with the same idempotency key is still running."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Job {key[:12]} is already running")


def canonical_json(payload: Any) -> bytes:
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)


def idempotency_key(job_name: str, payload: Any) -> str:
    """Deterministic key for (job name, payload)."""
    raw = job_name.encode("utf-8") + b":" + canonical_json(payload)
    return hashlib.sha256(raw).hexdigest()


class JobRunner:
    """Runs job handlers at most once per idempotency key."""

    def __init__(self, job_repo: JobRepository | None = None):
        self.job_repo = job_repo or JobRepository()

    async def run(
        self,
        job_name: str,
        payload: dict,
        handler: JobHandler,
        key: str | None = None,
    ) -> tuple[dict, bool]:
        """Run `handler` unless this key already completed.

        Returns:
            (result, replayed) where replayed is True when the stored result
            of an earlier run was returned

        Raises:
            JobInProgress: the key is claimed by a running invocation
        """
        key = key or idempotency_key(job_name, payload)

        existing = await self.job_repo.get(key)
        if existing is not None and existing.status == STATUS_DONE:
            logger.info("Job %s (%s) already done, returning stored result", job_name, key[:12])
            return existing.result, True
        if existing is not None and existing.status == STATUS_RUNNING:
            raise JobInProgress(key)

        if not await self.job_repo.start(key, job_name, payload):
            raise JobInProgress(key)

        try:
            result = await handler()
        except Exception as e:
            await self.job_repo.fail(key, str(e))
            raise

        await self.job_repo.finish(key, result)
        return result, False
