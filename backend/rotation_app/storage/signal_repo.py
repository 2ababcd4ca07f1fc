"""Signal repository (append-only)."""

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert

from rotation_core.models import SignalRecord, SignalType
from rotation_core.state import LastEmission
from rotation_app.storage.database import SignalTable, get_database

_ALERT_TYPES = [t.value for t in SignalType if t != SignalType.WATCH]


def _row_to_signal(row: SignalTable) -> SignalRecord:
    return SignalRecord(
        id=row.id,
        symbol=row.symbol,
        signal_type=SignalType(row.signal_type),
        as_of_date=row.as_of_date,
        reason=row.reason_json or {},
        confidence=row.confidence,
        shares=row.shares,
        created_at=row.created_at,
        sent_at=row.sent_at,
    )


class SignalRepository:
    """Repository for signal records."""

    async def insert_batch(self, signals: list[SignalRecord]) -> list[str]:
        """Insert signals, ignoring ones already present.

        IDs are deterministic per (symbol, type, date), so re-running a day
        inserts nothing.

        Returns:
            IDs of newly inserted signals
        """
        if not signals:
            return []

        async with get_database().session() as session:
            values = [
                {
                    "id": s.id,
                    "symbol": s.symbol,
                    "signal_type": s.signal_type.value,
                    "as_of_date": s.as_of_date,
                    "reason_json": s.reason,
                    "confidence": s.confidence,
                    "shares": s.shares,
                    "created_at": s.created_at,
                }
                for s in signals
            ]
            stmt = (
                insert(SignalTable)
                .values(values)
                .on_conflict_do_nothing(index_elements=["id"])
                .returning(SignalTable.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_recent(
        self,
        limit: int = 50,
        symbol: str | None = None,
        signal_type: SignalType | None = None,
    ) -> list[SignalRecord]:
        async with get_database().session() as session:
            stmt = select(SignalTable).order_by(
                SignalTable.as_of_date.desc(), SignalTable.created_at.desc()
            )
            if symbol:
                stmt = stmt.where(SignalTable.symbol == symbol)
            if signal_type:
                stmt = stmt.where(SignalTable.signal_type == signal_type.value)
            result = await session.execute(stmt.limit(limit))
            return [_row_to_signal(row) for row in result.scalars().all()]

    async def last_alerted(self, symbols: list[str]) -> dict[str, LastEmission]:
        """Latest alert-worthy signal per symbol, as the alert machine's previous state."""
        if not symbols:
            return {}
        async with get_database().session() as session:
            stmt = (
                select(SignalTable.symbol, SignalTable.signal_type, SignalTable.as_of_date)
                .distinct(SignalTable.symbol)
                .where(
                    SignalTable.symbol.in_(symbols),
                    SignalTable.signal_type.in_(_ALERT_TYPES),
                )
                .order_by(SignalTable.symbol, SignalTable.as_of_date.desc(), SignalTable.created_at.desc())
            )
            result = await session.execute(stmt)
            return {
                symbol: LastEmission(signal_type, as_of)
                for symbol, signal_type, as_of in result.all()
            }

    async def mark_sent(self, signal_ids: list[str]) -> None:
        if not signal_ids:
            return
        async with get_database().session() as session:
            await session.execute(
                update(SignalTable)
                .where(SignalTable.id.in_(signal_ids))
                .values(sent_at=datetime.now(timezone.utc))
            )

