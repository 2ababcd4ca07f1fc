"""Tests for the indicator computation job."""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from rotation_core.models import PriceBar
from rotation_app.services.indicator_service import IndicatorService

AS_OF = date(2024, 9, 30)


def bars_ending(symbol, as_of, count):
    start = as_of - timedelta(days=count - 1)
    return [
        PriceBar(
            symbol=symbol,
            date=start + timedelta(days=i),
            open=Decimal(100 + i),
            high=Decimal(101 + i),
            low=Decimal(99 + i),
            close=Decimal(100 + i),
            volume=1_000_000 + (i % 3) * 1000,
        )
        for i in range(count)
    ]


def make_service(history):
    bar_repo = MagicMock()
    bar_repo.load_bars = AsyncMock(side_effect=lambda symbol, as_of, n: history.get(symbol, []))
    spy = bars_ending("SPY", AS_OF, 260)
    bar_repo.get_closes_by_date = AsyncMock(return_value={b.date: float(b.close) for b in spy})
    indicator_repo = MagicMock()
    indicator_repo.save_batch = AsyncMock(side_effect=lambda rows: len(rows))
    service = IndicatorService(
        bar_repo=bar_repo, indicator_repo=indicator_repo, benchmark="SPY", max_concurrency=2
    )
    return service, bar_repo, indicator_repo


class TestIndicatorService:
    @pytest.mark.asyncio
    async def test_rows_written_and_skips_counted(self):
        history = {
            "NVDA": bars_ending("NVDA", AS_OF, 260),
            "ARM": bars_ending("ARM", AS_OF, 40),
        }
        service, _, indicator_repo = make_service(history)

        result = await service.run(AS_OF, ["nvda", "ARM", "NVDA"])

        assert result["symbolsProcessed"] == 2
        assert result["rowsUpserted"] == 1
        assert result["skipped"] == 1
        assert result["skipReasons"] == {"InsufficientHistory": 1}
        rows = indicator_repo.save_batch.await_args.args[0]
        assert [r.symbol for r in rows] == ["NVDA"]
        assert rows[0].date == AS_OF

    @pytest.mark.asyncio
    async def test_no_symbols(self):
        service, bar_repo, indicator_repo = make_service({})

        result = await service.run(AS_OF, [])

        assert result["rowsUpserted"] == 0
        bar_repo.load_bars.assert_not_awaited()
        indicator_repo.save_batch.assert_awaited_once_with([])

    @pytest.mark.asyncio
    async def test_rerun_writes_identical_rows(self):
        history = {"NVDA": bars_ending("NVDA", AS_OF, 260)}
        service, _, indicator_repo = make_service(history)

        await service.run(AS_OF, ["NVDA"])
        await service.run(AS_OF, ["NVDA"])

        first, second = (c.args[0] for c in indicator_repo.save_batch.await_args_list)
        assert first == second
        assert len(first) == 1
