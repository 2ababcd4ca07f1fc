"""AI document and score repository.

Scores are content-addressed: at most one row per (raw_text_hash,
score_type). Lookup and population are separate calls so either can be
retried on its own.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from rotation_core.models import AccelerationScore, DocType, ScoreType
from rotation_app.storage.database import AiDocumentTable, AiScoreTable, get_database


@dataclass(frozen=True)
class StoredScore:
    """A persisted score with its identity."""

    id: str
    symbol: str
    raw_text_hash: str
    score: AccelerationScore
    created_at: datetime | None = None


def _row_to_stored(row: AiScoreTable) -> StoredScore:
    return StoredScore(
        id=row.id,
        symbol=row.symbol,
        raw_text_hash=row.raw_text_hash,
        score=AccelerationScore.model_validate(row.json_result),
        created_at=row.created_at,
    )


class AiScoreRepository:
    """Repository for AI documents and their scores."""

    async def get_score(
        self, raw_text_hash: str, score_type: ScoreType = ScoreType.ACCELERATION
    ) -> StoredScore | None:
        async with get_database().session() as session:
            stmt = select(AiScoreTable).where(
                AiScoreTable.raw_text_hash == raw_text_hash,
                AiScoreTable.score_type == score_type.value,
            )
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_stored(row) if row else None

    async def save_document(
        self,
        symbol: str,
        doc_type: DocType,
        raw_text_hash: str,
        raw_text: str,
        published_at: datetime | None = None,
        source_meta: dict | None = None,
    ) -> str:
        """Insert the document if new; return its id either way."""
        async with get_database().session() as session:
            stmt = insert(AiDocumentTable).values(
                symbol=symbol,
                doc_type=doc_type.value,
                raw_text_hash=raw_text_hash,
                raw_text=raw_text,
                published_at=published_at,
                source_meta_json=source_meta or {},
            )
            stmt = stmt.on_conflict_do_nothing(index_elements=["raw_text_hash"])
            await session.execute(stmt)

            result = await session.execute(
                select(AiDocumentTable.id).where(AiDocumentTable.raw_text_hash == raw_text_hash)
            )
            return result.scalar_one()

    async def save_score(
        self,
        document_id: str,
        symbol: str,
        raw_text_hash: str,
        score: AccelerationScore,
        score_type: ScoreType = ScoreType.ACCELERATION,
        overwrite: bool = False,
    ) -> StoredScore:
        """Store a validated score.

        An existing score for the same hash is kept unless `overwrite`.
        """
        values = {
            "ai_document_id": document_id,
            "symbol": symbol,
            "raw_text_hash": raw_text_hash,
            "score_type": score_type.value,
            "json_result": score.model_dump(mode="json"),
            "growth_phase": score.growth_phase.value,
            "conviction": score.conviction,
            "hype_risk": score.hype_risk.value,
        }
        async with get_database().session() as session:
            stmt = insert(AiScoreTable).values(**values)
            if overwrite:
                stmt = stmt.on_conflict_do_update(
                    index_elements=["raw_text_hash", "score_type"],
                    set_={
                        "json_result": stmt.excluded.json_result,
                        "growth_phase": stmt.excluded.growth_phase,
                        "conviction": stmt.excluded.conviction,
                        "hype_risk": stmt.excluded.hype_risk,
                        "created_at": datetime.now(timezone.utc),
                    },
                )
            else:
                stmt = stmt.on_conflict_do_nothing(
                    index_elements=["raw_text_hash", "score_type"]
                )
            await session.execute(stmt)

            row = (
                await session.execute(
                    select(AiScoreTable).where(
                        AiScoreTable.raw_text_hash == raw_text_hash,
                        AiScoreTable.score_type == score_type.value,
                    )
                )
            ).scalar_one()
            return _row_to_stored(row)

    async def latest_for_symbols(
        self,
        symbols: list[str],
        as_of: date,
        score_type: ScoreType = ScoreType.ACCELERATION,
    ) -> dict[str, StoredScore]:
        """Most recent score per symbol created on or before `as_of`."""
        if not symbols:
            return {}
        cutoff = datetime.combine(as_of, time.max, tzinfo=timezone.utc)
        async with get_database().session() as session:
            stmt = (
                select(AiScoreTable)
                .distinct(AiScoreTable.symbol)
                .where(
                    AiScoreTable.symbol.in_(symbols),
                    AiScoreTable.score_type == score_type.value,
                    AiScoreTable.created_at <= cutoff,
                )
                .order_by(AiScoreTable.symbol, AiScoreTable.created_at.desc())
            )
            rows = (await session.execute(stmt)).scalars().all()
            return {row.symbol: _row_to_stored(row) for row in rows}
