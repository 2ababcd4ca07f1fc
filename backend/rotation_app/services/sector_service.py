"""Weekly sector ranking job."""

import logging
from datetime import date

from rotation_core.sectors import SectorInputs, rank_week, top_sectors
from rotation_app.config import get_settings
from rotation_app.services.alerts import AlertNotifier
from rotation_app.storage import BarRepository, IndicatorRepository, SectorRepository, cache

logger = logging.getLogger(__name__)

SECTOR_BAR_WINDOW = 60


class SectorService:
    """Scores every enabled sector, ranks the cohort, replaces the week."""

    def __init__(
        self,
        sector_repo: SectorRepository | None = None,
        bar_repo: BarRepository | None = None,
        indicator_repo: IndicatorRepository | None = None,
        notifier: AlertNotifier | None = None,
    ):
        self.sector_repo = sector_repo or SectorRepository()
        self.bar_repo = bar_repo or BarRepository()
        self.indicator_repo = indicator_repo or IndicatorRepository()
        self.notifier = notifier or AlertNotifier()

    async def _load_inputs(self, week_end: date, benchmark: str) -> list[SectorInputs]:
        sectors = await self.sector_repo.list_enabled()
        bench_bars = await self.bar_repo.load_bars(benchmark, week_end, SECTOR_BAR_WINDOW)

        inputs = []
        for sector in sectors:
            etf_bars = await self.bar_repo.load_bars(sector.benchmark_etf, week_end, SECTOR_BAR_WINDOW)
            closes = await self.bar_repo.get_closes_on(week_end, sector.symbols)
            indicators = await self.indicator_repo.get_for_date(week_end, sector.symbols)
            members = {
                s: (closes.get(s), indicators[s].ema21 if s in indicators else None)
                for s in sector.symbols
            }
            inputs.append(SectorInputs(
                sector_id=sector.id,
                sector_name=sector.name,
                etf_symbol=sector.benchmark_etf,
                etf_bars=etf_bars,
                bench_symbol=benchmark,
                bench_bars=bench_bars,
                members=members,
            ))
        return inputs

    async def run(
        self,
        week_end: date,
        benchmark: str | None = None,
        top_n: int | None = None,
    ) -> dict:
        settings = get_settings()
        benchmark = (benchmark or settings.sector_benchmark).upper()
        top_n = top_n or settings.sector_top_n

        inputs = await self._load_inputs(week_end, benchmark)
        ranked = rank_week(inputs, week_end)
        await self.sector_repo.replace_week(week_end, ranked)

        top = [
            {"name": m.sector_name, "rank": m.rank, "relStrength5d": m.rel_strength_5d}
            for m in top_sectors(ranked, top_n)
        ]
        await cache.set_json(cache.KEY_SECTOR_RANKS, {
            "weekEndDate": week_end.isoformat(),
            "ranks": [m.model_dump(mode="json") for m in ranked],
        })
        await self.notifier.notify_digest(week_end, top)

        logger.info(
            "Sector rank %s vs %s: %d sectors, %d ranked, top=%s",
            week_end, benchmark, len(inputs), len(ranked), [t["name"] for t in top],
        )
        return {
            "weekEndDate": week_end.isoformat(),
            "sectorsProcessed": len(inputs),
            "sectorsRanked": len(ranked),
            "topSectors": top,
        }
