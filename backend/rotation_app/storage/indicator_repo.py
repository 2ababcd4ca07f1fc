"""Daily indicator repository."""

from datetime import date

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from rotation_core.models import IndicatorRow
from rotation_app.storage.database import IndicatorTable, get_database

_VALUE_COLUMNS = (
    "ema21",
    "ema50",
    "ema200",
    "atr_pct",
    "rs_vs_spy",
    "rs_slope_10d",
    "volume_z",
    "dollar_vol",
)


def _row_to_indicator(row: IndicatorTable) -> IndicatorRow:
    return IndicatorRow(
        symbol=row.symbol,
        date=row.date,
        **{name: getattr(row, name) for name in _VALUE_COLUMNS},
    )


class IndicatorRepository:
    """Repository for indicator rows."""

    async def save_batch(self, rows: list[IndicatorRow]) -> int:
        """Upsert whole rows keyed by (symbol, date) in one transaction.

        Every value column is overwritten; rows are never partially updated.
        """
        if not rows:
            return 0

        async with get_database().session() as session:
            values = [
                {"symbol": r.symbol, "date": r.date, **{c: getattr(r, c) for c in _VALUE_COLUMNS}}
                for r in rows
            ]
            stmt = insert(IndicatorTable).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["symbol", "date"],
                set_={c: getattr(stmt.excluded, c) for c in _VALUE_COLUMNS},
            )
            await session.execute(stmt)
        return len(rows)

    async def get(self, symbol: str, on: date) -> IndicatorRow | None:
        async with get_database().session() as session:
            stmt = select(IndicatorTable).where(
                IndicatorTable.symbol == symbol,
                IndicatorTable.date == on,
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return _row_to_indicator(row) if row else None

    async def get_for_date(self, on: date, symbols: list[str]) -> dict[str, IndicatorRow]:
        """Indicator rows dated `on` for the given symbols."""
        if not symbols:
            return {}
        async with get_database().session() as session:
            stmt = select(IndicatorTable).where(
                IndicatorTable.date == on,
                IndicatorTable.symbol.in_(symbols),
            )
            result = await session.execute(stmt)
            return {row.symbol: _row_to_indicator(row) for row in result.scalars().all()}
