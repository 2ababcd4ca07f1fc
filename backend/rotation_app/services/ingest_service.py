"""Daily bar ingest from Stooq."""

import asyncio
import logging
from datetime import date

import httpx

from rotation_core.models import PriceBar
from rotation_app.clients.stooq import StooqClient, pick_bar_for_date
from rotation_app.config import get_settings
from rotation_app.storage import BarRepository
from rotation_app.universe_config import normalize_symbols

logger = logging.getLogger(__name__)


class IngestService:
    """Fetches daily bars and upserts them.

    Symbols that already have a bar for the date are skipped unless
    `force` is set. With `backfill` every fetched bar up to the date is
    stored, not just the one for the date.
    """

    def __init__(
        self,
        bar_repo: BarRepository | None = None,
        client: StooqClient | None = None,
        max_concurrency: int | None = None,
    ):
        self.bar_repo = bar_repo or BarRepository()
        self.client = client or StooqClient()
        self.max_concurrency = max_concurrency or get_settings().max_concurrency

    async def _fetch(
        self, symbol: str, as_of: date, backfill: bool, semaphore: asyncio.Semaphore
    ) -> list[PriceBar]:
        async with semaphore:
            bars = await self.client.fetch_daily_bars(symbol)
        if backfill:
            return [b for b in bars if b.date <= as_of]
        bar = pick_bar_for_date(bars, as_of)
        return [bar] if bar else []

    async def run(
        self,
        as_of: date,
        symbols: list[str],
        force: bool = False,
        backfill: bool = False,
    ) -> dict:
        unique = normalize_symbols(symbols)
        existing = set() if force else await self.bar_repo.get_symbols_with_bar(as_of, unique)
        to_fetch = [s for s in unique if s not in existing]

        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(
            *[self._fetch(s, as_of, backfill, semaphore) for s in to_fetch],
            return_exceptions=True,
        )

        bars: list[PriceBar] = []
        failed: list[str] = []
        missing: list[str] = []
        for symbol, result in zip(to_fetch, results):
            if isinstance(result, httpx.HTTPError):
                logger.warning("Fetch failed for %s: %s", symbol, result)
                failed.append(symbol)
            elif isinstance(result, BaseException):
                raise result
            elif not result:
                missing.append(symbol)
            else:
                bars.extend(result)

        upserted = await self.bar_repo.save_batch(bars)
        logger.info(
            "Ingest %s: %d symbols, %d skipped, %d bars upserted, %d failed, %d without bar",
            as_of, len(unique), len(existing), upserted, len(failed), len(missing),
        )
        return {
            "asOfDate": as_of.isoformat(),
            "symbolsProcessed": len(unique),
            "symbolsSkipped": len(existing),
            "barsUpserted": upserted,
            "failed": failed,
            "missing": missing,
        }
