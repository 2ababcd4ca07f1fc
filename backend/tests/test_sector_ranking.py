"""Tests for weekly sector scoring and ranking."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from rotation_core.models import PriceBar, SectorMetric
from rotation_core.sectors import (
    SectorInputs,
    breadth_above_ema21,
    composite_score,
    five_day_return,
    rank_sectors,
    rank_week,
    score_sector,
    top_sectors,
)

WEEK_END = date(2024, 6, 7)


def bars_for(symbol, closes, volumes=None):
    start = WEEK_END - timedelta(days=len(closes) - 1)
    return [
        PriceBar(
            symbol=symbol,
            date=start + timedelta(days=i),
            open=Decimal(str(c)),
            high=Decimal(str(c)),
            low=Decimal(str(c)),
            close=Decimal(str(c)),
            volume=volumes[i] if volumes else 1000 + i,
        )
        for i, c in enumerate(closes)
    ]


def metric(sector_id, score):
    return SectorMetric(
        sector_id=sector_id,
        sector_name=sector_id,
        week_end_date=WEEK_END,
        etf_symbol=sector_id.upper(),
        bench_symbol="QQQ",
        etf_5d_return=0.0,
        bench_5d_return=0.0,
        rel_strength_5d=0.0,
        etf_dollar_vol_z=0.0,
        breadth_above_ema21=0.0,
        score=score,
    )


class TestScoring:
    """Tests for the per-sector composite."""

    def test_five_day_return(self):
        bars = bars_for("SMH", [100, 101, 102, 103, 104, 110])
        assert five_day_return(bars) == pytest.approx(0.10)

    def test_five_day_return_needs_six_bars(self):
        assert five_day_return(bars_for("SMH", [100] * 5)) is None

    def test_breadth_ignores_incomplete_members(self):
        members = {
            "NVDA": (110.0, 100.0),
            "AMD": (90.0, 100.0),
            "AVGO": (None, 100.0),
            "MU": (50.0, None),
        }
        assert breadth_above_ema21(members) == pytest.approx(0.5)

    def test_breadth_empty(self):
        assert breadth_above_ema21({}) == 0.0

    def test_composite_weights(self):
        assert composite_score(0.02, 0.6, 1.5) == pytest.approx(0.5 * 0.02 + 0.3 * 0.6 + 0.2 * 1.5)

    def test_score_sector(self):
        inputs = SectorInputs(
            sector_id="semis",
            sector_name="Semiconductors",
            etf_symbol="SMH",
            etf_bars=bars_for("SMH", [100, 101, 102, 103, 104, 110]),
            bench_symbol="QQQ",
            bench_bars=bars_for("QQQ", [100, 100, 100, 100, 100, 105]),
            members={"NVDA": (110.0, 100.0)},
        )
        result = score_sector(inputs, WEEK_END)

        assert result is not None
        assert result.rel_strength_5d == pytest.approx(0.05)
        assert result.breadth_above_ema21 == 1.0
        assert result.rank is None

    def test_short_history_disqualifies(self):
        inputs = SectorInputs(
            sector_id="semis",
            sector_name="Semiconductors",
            etf_symbol="SMH",
            etf_bars=bars_for("SMH", [100] * 3),
            bench_symbol="QQQ",
            bench_bars=bars_for("QQQ", [100] * 10),
        )
        assert score_sector(inputs, WEEK_END) is None


class TestRanking:
    """Tests for cohort ranking."""

    def test_ranks_are_permutation(self):
        ranked = rank_sectors([metric(f"s{i}", score) for i, score in enumerate([0.3, -0.1, 0.9, 0.0, 0.5])])
        assert sorted(m.rank for m in ranked) == [1, 2, 3, 4, 5]
        assert [m.sector_id for m in ranked] == ["s2", "s4", "s0", "s3", "s1"]

    def test_ties_keep_input_order(self):
        ranked = rank_sectors([metric("a", 0.5), metric("b", 0.7), metric("c", 0.5)])
        assert [(m.sector_id, m.rank) for m in ranked] == [("b", 1), ("a", 2), ("c", 3)]

    def test_top_sectors(self):
        ranked = rank_sectors([metric("a", 0.1), metric("b", 0.2), metric("c", 0.3)])
        assert [m.sector_id for m in top_sectors(ranked, 2)] == ["c", "b"]

    def test_rank_week_skips_unqualified(self):
        bench = bars_for("QQQ", [100] * 10)
        good = SectorInputs("a", "A", "AAA", bars_for("AAA", [100] * 9 + [110]), "QQQ", bench)
        short = SectorInputs("b", "B", "BBB", bars_for("BBB", [100, 100]), "QQQ", bench)
        ranked = rank_week([short, good], WEEK_END)

        assert [(m.sector_id, m.rank) for m in ranked] == [("a", 1)]
