"""Tests for the daily bar ingest job."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from rotation_app.clients.stooq import parse_stooq_csv
from rotation_app.services.ingest_service import IngestService

AS_OF = date(2026, 2, 13)

CSV = """Date,Open,High,Low,Close,Volume
2026-02-12,10,12,9,11,100
2026-02-13,11,13,10,12,200
2026-02-17,12,14,11,13,300
"""


def make_service(existing=frozenset(), fail=()):
    bar_repo = MagicMock()
    bar_repo.get_symbols_with_bar = AsyncMock(return_value=set(existing))
    bar_repo.save_batch = AsyncMock(side_effect=lambda bars: len(bars))

    async def fetch(symbol):
        if symbol in fail:
            raise httpx.ConnectError("down")
        if symbol == "GONE":
            return []
        return parse_stooq_csv(symbol, CSV)

    client = MagicMock()
    client.fetch_daily_bars = AsyncMock(side_effect=fetch)
    return IngestService(bar_repo=bar_repo, client=client, max_concurrency=2), bar_repo, client


class TestIngestService:
    @pytest.mark.asyncio
    async def test_stores_bar_for_date_only(self):
        service, bar_repo, _ = make_service()

        result = await service.run(AS_OF, ["spy", "QQQ"])

        bars = bar_repo.save_batch.await_args.args[0]
        assert {(b.symbol, b.date) for b in bars} == {("SPY", AS_OF), ("QQQ", AS_OF)}
        assert result["barsUpserted"] == 2

    @pytest.mark.asyncio
    async def test_backfill_stores_history_up_to_date(self):
        service, bar_repo, _ = make_service()

        await service.run(AS_OF, ["SPY"], backfill=True)

        bars = bar_repo.save_batch.await_args.args[0]
        assert [b.date for b in bars] == [date(2026, 2, 12), AS_OF]

    @pytest.mark.asyncio
    async def test_existing_symbols_skipped_unless_forced(self):
        service, bar_repo, client = make_service(existing={"SPY"})

        result = await service.run(AS_OF, ["SPY", "QQQ"])
        assert result["symbolsSkipped"] == 1
        assert client.fetch_daily_bars.await_count == 1

        await service.run(AS_OF, ["SPY", "QQQ"], force=True)
        assert client.fetch_daily_bars.await_count == 3

    @pytest.mark.asyncio
    async def test_failures_and_missing_reported(self):
        service, _, _ = make_service(fail={"NVDA"})

        result = await service.run(AS_OF, ["SPY", "NVDA", "GONE"])

        assert result["failed"] == ["NVDA"]
        assert result["missing"] == ["GONE"]
        assert result["barsUpserted"] == 1
