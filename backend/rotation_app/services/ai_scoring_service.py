"""AI document scoring with content-hash caching."""

import hashlib
import logging
import re
from datetime import datetime

from rotation_core.models import AccelerationScore, DocType, ScoreType
from rotation_app.clients.research_ai import ResearchAiClient
from rotation_app.storage import AiScoreRepository

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse whitespace runs and trim, so trivial reformatting hashes the same."""
    return _WHITESPACE.sub(" ", text).strip()


def text_hash(text: str) -> str:
    """SHA-256 hex digest of the normalized text."""
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


class AiScoringService:
    """Scores documents once per distinct text.

    Lookup and population are separate steps: a failure after scoring but
    before storing just means the next call scores again.
    """

    def __init__(
        self,
        repo: AiScoreRepository | None = None,
        client: ResearchAiClient | None = None,
    ):
        self.repo = repo or AiScoreRepository()
        self.client = client or ResearchAiClient()

    async def score_document(
        self,
        symbol: str,
        doc_type: DocType,
        text: str,
        published_at: datetime | None = None,
        force: bool = False,
        source_meta: dict | None = None,
        score_type: ScoreType = ScoreType.ACCELERATION,
    ) -> dict:
        """Return the score for `text`, calling the provider only on a cache miss.

        Raises:
            InvalidAiScore: provider output failed validation (nothing stored)
        """
        symbol = symbol.strip().upper()
        digest = text_hash(text)

        if not force:
            cached = await self.repo.get_score(digest, score_type)
            if cached is not None:
                logger.info("AI score cache hit for %s (%s)", symbol, digest[:12])
                return self._result(symbol, digest, cached.id, cached.score, cached=True)

        score = await self.client.score_text(symbol, doc_type, normalize_text(text))

        document_id = await self.repo.save_document(
            symbol, doc_type, digest, text, published_at, source_meta
        )
        stored = await self.repo.save_score(
            document_id, symbol, digest, score, score_type, overwrite=force
        )
        return self._result(symbol, digest, stored.id, stored.score, cached=False)

    @staticmethod
    def _result(
        symbol: str, digest: str, score_id: str, score: AccelerationScore, cached: bool
    ) -> dict:
        return {
            "symbol": symbol,
            "rawTextHash": digest,
            "scoreId": score_id,
            "cached": cached,
            "score": score.model_dump(mode="json"),
        }
