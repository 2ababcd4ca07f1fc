"""Indicator computation job."""

import asyncio
import logging
from collections import Counter
from datetime import date

from rotation_core.indicators import DEFAULT_LOOKBACK_DAYS, IndicatorCalculator, IndicatorResult
from rotation_app.config import get_settings
from rotation_app.storage import BarRepository, IndicatorRepository
from rotation_app.universe_config import normalize_symbols

logger = logging.getLogger(__name__)


class IndicatorService:
    """Computes indicator rows for a date and writes them in one batch."""

    def __init__(
        self,
        bar_repo: BarRepository | None = None,
        indicator_repo: IndicatorRepository | None = None,
        calculator: IndicatorCalculator | None = None,
        benchmark: str | None = None,
        max_concurrency: int | None = None,
    ):
        settings = get_settings()
        self.bar_repo = bar_repo or BarRepository()
        self.indicator_repo = indicator_repo or IndicatorRepository()
        self.calculator = calculator or IndicatorCalculator()
        self.benchmark = benchmark or settings.market_benchmark
        self.max_concurrency = max_concurrency or settings.max_concurrency

    async def run(
        self,
        as_of: date,
        symbols: list[str],
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> dict:
        unique = normalize_symbols(symbols)
        benchmark_closes = await self.bar_repo.get_closes_by_date(
            self.benchmark, as_of, lookback_days
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def compute(symbol: str) -> IndicatorResult:
            async with semaphore:
                bars = await self.bar_repo.load_bars(symbol, as_of, lookback_days)
            return self.calculator.calculate(symbol, bars, benchmark_closes, as_of)

        results = await asyncio.gather(*[compute(s) for s in unique])

        rows = [r.row for r in results if r.row is not None]
        skip_reasons = Counter(type(r.error).__name__ for r in results if r.skipped)
        for r in results:
            if r.skipped:
                logger.debug("Skipped %s: %s", r.symbol, r.error)

        upserted = await self.indicator_repo.save_batch(rows)
        logger.info(
            "Indicators %s: %d symbols, %d rows, %d skipped %s",
            as_of, len(unique), upserted, len(unique) - len(rows), dict(skip_reasons),
        )
        return {
            "asOfDate": as_of.isoformat(),
            "symbolsProcessed": len(unique),
            "rowsUpserted": upserted,
            "skipped": len(unique) - len(rows),
            "skipReasons": dict(skip_reasons),
        }
