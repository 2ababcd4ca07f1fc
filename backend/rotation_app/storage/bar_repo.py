"""Daily price bar repository."""

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert

from rotation_core.models import PriceBar
from rotation_app.storage.database import PriceBarTable, get_database


def _row_to_bar(row: PriceBarTable) -> PriceBar:
    return PriceBar(
        symbol=row.symbol,
        date=row.date,
        open=Decimal(str(row.open)),
        high=Decimal(str(row.high)),
        low=Decimal(str(row.low)),
        close=Decimal(str(row.close)),
        volume=int(row.volume),
    )


class BarRepository:
    """Repository for daily bars."""

    async def save_batch(self, bars: list[PriceBar], chunk_size: int = 2000) -> int:
        """Upsert bars keyed by (symbol, date) in one transaction.

        Args:
            bars: Bars to save
            chunk_size: Rows per INSERT (7 columns, keeps under the
                        PostgreSQL 32767 parameter limit)

        Returns:
            Number of bars written
        """
        if not bars:
            return 0

        async with get_database().session() as session:
            for i in range(0, len(bars), chunk_size):
                chunk = bars[i:i + chunk_size]
                values = [
                    {
                        "symbol": b.symbol,
                        "date": b.date,
                        "open": b.open,
                        "high": b.high,
                        "low": b.low,
                        "close": b.close,
                        "volume": b.volume,
                    }
                    for b in chunk
                ]
                stmt = insert(PriceBarTable).values(values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["symbol", "date"],
                    set_={
                        "open": stmt.excluded.open,
                        "high": stmt.excluded.high,
                        "low": stmt.excluded.low,
                        "close": stmt.excluded.close,
                        "volume": stmt.excluded.volume,
                    },
                )
                await session.execute(stmt)
        return len(bars)

    async def load_bars(self, symbol: str, as_of: date, max_count: int) -> list[PriceBar]:
        """The most recent `max_count` bars on or before `as_of`, ascending."""
        async with get_database().session() as session:
            stmt = (
                select(PriceBarTable)
                .where(PriceBarTable.symbol == symbol, PriceBarTable.date <= as_of)
                .order_by(PriceBarTable.date.desc())
                .limit(max_count)
            )
            result = await session.execute(stmt)
            rows = result.scalars().all()
            return [_row_to_bar(row) for row in reversed(rows)]

    async def get_closes_by_date(
        self, symbol: str, as_of: date, max_count: int
    ) -> dict[date, float]:
        """Close series keyed by date, for benchmark lookups."""
        bars = await self.load_bars(symbol, as_of, max_count)
        return {b.date: float(b.close) for b in bars}

    async def get_symbols_with_bar(self, on: date, symbols: list[str]) -> set[str]:
        """Which of `symbols` already have a bar dated `on`."""
        if not symbols:
            return set()
        async with get_database().session() as session:
            stmt = select(PriceBarTable.symbol).where(
                PriceBarTable.date == on,
                PriceBarTable.symbol.in_(symbols),
            )
            result = await session.execute(stmt)
            return set(result.scalars().all())

    async def get_closes_on(self, on: date, symbols: list[str]) -> dict[str, float]:
        """Close on `on` for each symbol that has a bar that day."""
        if not symbols:
            return {}
        async with get_database().session() as session:
            stmt = select(PriceBarTable.symbol, PriceBarTable.close).where(
                PriceBarTable.date == on,
                PriceBarTable.symbol.in_(symbols),
            )
            result = await session.execute(stmt)
            return {symbol: float(close) for symbol, close in result.all()}

    async def count_sessions(self, symbol: str, after: date, through: date) -> int:
        """Number of bars dated in (after, through]."""
        async with get_database().session() as session:
            stmt = select(func.count()).select_from(PriceBarTable).where(
                PriceBarTable.symbol == symbol,
                PriceBarTable.date > after,
                PriceBarTable.date <= through,
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())
