"""Research AI scoring client.

The provider is a black box that takes document text and returns an
acceleration score as JSON. Anything that does not validate against
AccelerationScore is rejected with InvalidAiScore and never cached.
"""

import logging
from typing import Any

import httpx
import orjson
from pydantic import ValidationError

from rotation_core.errors import InvalidAiScore
from rotation_core.models import AccelerationScore, DocType
from rotation_app.config import get_settings

logger = logging.getLogger(__name__)


def parse_acceleration_score(payload: Any) -> AccelerationScore:
    """Validate a provider response.

    Accepts either the score object itself or an envelope of the form
    {"ok": true, "data": {...}}.

    Raises:
        InvalidAiScore: the payload violates the schema
    """
    if isinstance(payload, (bytes, str)):
        try:
            payload = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            raise InvalidAiScore(f"Score response is not JSON: {e}") from e

    if isinstance(payload, dict) and "data" in payload and "growth_phase" not in payload:
        payload = payload["data"]

    if not isinstance(payload, dict):
        raise InvalidAiScore(f"Score response must be an object, got {type(payload).__name__}")

    try:
        return AccelerationScore.model_validate(payload)
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise InvalidAiScore("Score failed validation", errors) from e


class ResearchAiClient:
    """HTTP client for the scoring provider. Single attempt per call."""

    SCORE_PATH = "/api/score/acceleration"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.research_ai_base_url
        self.api_key = api_key if api_key is not None else settings.research_ai_api_key
        self.timeout = timeout or settings.research_ai_timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def score_text(self, symbol: str, doc_type: DocType, text: str) -> AccelerationScore:
        """Score one document.

        Raises:
            httpx.HTTPError: transport failure or error status
            InvalidAiScore: response fails validation
        """
        client = await self._get_client()
        response = await client.post(
            self.SCORE_PATH,
            content=orjson.dumps({"symbol": symbol, "docType": doc_type.value, "text": text}),
        )
        response.raise_for_status()
        score = parse_acceleration_score(response.content)
        logger.info(
            "Scored %s %s: %s conviction=%d hype=%s",
            symbol, doc_type.value, score.growth_phase.value, score.conviction, score.hype_risk.value,
        )
        return score
