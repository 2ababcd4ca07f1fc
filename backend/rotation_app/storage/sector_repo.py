"""Sector catalogue and weekly metric repository."""

import logging
from datetime import date

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert

from rotation_core.models import SectorDefinition, SectorMetric
from rotation_app.storage.database import (
    SectorMemberTable,
    SectorMetricTable,
    SectorTable,
    UniverseTable,
    get_database,
)

logger = logging.getLogger(__name__)

_METRIC_COLUMNS = (
    "etf_symbol",
    "bench_symbol",
    "etf_5d_return",
    "bench_5d_return",
    "rel_strength_5d",
    "etf_dollar_vol_z",
    "breadth_above_ema21",
    "score",
    "rank",
)


class SectorRepository:
    """Repository for sectors, members and weekly ranks."""

    async def sync_catalogue(
        self, sectors: list[SectorDefinition], etf_symbols: list[str]
    ) -> int:
        """Upsert sectors by name, their members, and the tracked universe.

        Members missing from the catalogue are disabled, not deleted.
        """
        async with get_database().session() as session:
            for sector in sectors:
                stmt = insert(SectorTable).values(
                    name=sector.name,
                    benchmark_etf=sector.benchmark_etf,
                    enabled=sector.enabled,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["name"],
                    set_={
                        "benchmark_etf": stmt.excluded.benchmark_etf,
                        "enabled": stmt.excluded.enabled,
                    },
                ).returning(SectorTable.id)
                sector_id = (await session.execute(stmt)).scalar_one()

                await session.execute(
                    update(SectorMemberTable)
                    .where(SectorMemberTable.sector_id == sector_id)
                    .values(enabled=False)
                )
                if sector.symbols:
                    members = insert(SectorMemberTable).values([
                        {"sector_id": sector_id, "symbol": s, "source": "manual", "enabled": True}
                        for s in sector.symbols
                    ])
                    members = members.on_conflict_do_update(
                        index_elements=["sector_id", "symbol"],
                        set_={"enabled": True},
                    )
                    await session.execute(members)

            stocks = {s for sector in sectors for s in sector.symbols}
            universe = [{"symbol": s, "type": "etf", "enabled": True} for s in etf_symbols]
            universe += [
                {"symbol": s, "type": "stock", "enabled": True}
                for s in sorted(stocks - set(etf_symbols))
            ]
            if universe:
                stmt = insert(UniverseTable).values(universe)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["symbol"],
                    set_={"type": stmt.excluded.type, "enabled": True},
                )
                await session.execute(stmt)

        logger.info("Synced %d sectors, %d universe symbols", len(sectors), len(universe))
        return len(sectors)

    async def list_enabled(self) -> list[SectorDefinition]:
        """Enabled sectors with their enabled members, in catalogue order."""
        async with get_database().session() as session:
            sectors = (
                await session.execute(
                    select(SectorTable)
                    .where(SectorTable.enabled.is_(True))
                    .order_by(SectorTable.created_at, SectorTable.name)
                )
            ).scalars().all()
            members = (
                await session.execute(
                    select(SectorMemberTable.sector_id, SectorMemberTable.symbol)
                    .where(SectorMemberTable.enabled.is_(True))
                    .order_by(SectorMemberTable.symbol)
                )
            ).all()

        by_sector: dict[str, list[str]] = {}
        for sector_id, symbol in members:
            by_sector.setdefault(sector_id, []).append(symbol)

        return [
            SectorDefinition(
                id=s.id,
                name=s.name,
                benchmark_etf=s.benchmark_etf,
                symbols=by_sector.get(s.id, []),
                enabled=s.enabled,
            )
            for s in sectors
            if s.benchmark_etf
        ]

    async def replace_week(self, week_end: date, metrics: list[SectorMetric]) -> int:
        """Replace the whole week's ranks in one transaction.

        Readers see either the previous complete rank set or the new one.
        """
        async with get_database().session() as session:
            await session.execute(
                delete(SectorMetricTable).where(SectorMetricTable.week_end_date == week_end)
            )
            if metrics:
                values = [
                    {
                        "sector_id": m.sector_id,
                        "week_end_date": m.week_end_date,
                        **{c: getattr(m, c) for c in _METRIC_COLUMNS},
                    }
                    for m in metrics
                ]
                stmt = insert(SectorMetricTable).values(values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["sector_id", "week_end_date"],
                    set_={c: getattr(stmt.excluded, c) for c in _METRIC_COLUMNS},
                )
                await session.execute(stmt)
        return len(metrics)

    async def get_week(self, week_end: date) -> list[SectorMetric]:
        """Ranked metrics for a week, best first."""
        async with get_database().session() as session:
            stmt = (
                select(SectorMetricTable, SectorTable.name)
                .join(SectorTable, SectorTable.id == SectorMetricTable.sector_id)
                .where(SectorMetricTable.week_end_date == week_end)
                .order_by(SectorMetricTable.rank)
            )
            result = await session.execute(stmt)
            return [
                SectorMetric(
                    sector_id=row.sector_id,
                    sector_name=name,
                    week_end_date=row.week_end_date,
                    **{c: getattr(row, c) for c in _METRIC_COLUMNS},
                )
                for row, name in result.all()
            ]

    async def latest_week_on_or_before(self, as_of: date) -> date | None:
        async with get_database().session() as session:
            stmt = select(func.max(SectorMetricTable.week_end_date)).where(
                SectorMetricTable.week_end_date <= as_of
            )
            return (await session.execute(stmt)).scalar_one_or_none()

    async def latest_ranks(self, as_of: date) -> list[SectorMetric]:
        """The most recent complete rank set at or before `as_of`."""
        week_end = await self.latest_week_on_or_before(as_of)
        if week_end is None:
            return []
        return await self.get_week(week_end)
