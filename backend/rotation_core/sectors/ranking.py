"""Weekly sector flow scoring and ranking."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Sequence

from rotation_core.indicators import zscore, ZSCORE_WINDOW
from rotation_core.models import PriceBar, SectorMetric

logger = logging.getLogger(__name__)

MIN_BARS = 6
RETURN_LOOKBACK = 5

WEIGHT_REL_STRENGTH = 0.5
WEIGHT_BREADTH = 0.3
WEIGHT_DOLLAR_VOL_Z = 0.2


@dataclass
class SectorInputs:
    """Everything needed to score one sector for one week."""

    sector_id: str
    sector_name: str
    etf_symbol: str
    etf_bars: Sequence[PriceBar]
    bench_symbol: str
    bench_bars: Sequence[PriceBar]
    # Member symbol -> (close, ema21) on the week end date; either may be None
    members: Mapping[str, tuple[float | None, float | None]] = field(default_factory=dict)


def five_day_return(bars: Sequence[PriceBar]) -> float | None:
    """close[-1] / close[-6] - 1, or None if fewer than 6 bars."""
    if len(bars) < MIN_BARS:
        return None
    base = float(bars[-RETURN_LOOKBACK - 1].close)
    if base == 0:
        return None
    return float(bars[-1].close) / base - 1


def breadth_above_ema21(
    members: Mapping[str, tuple[float | None, float | None]],
) -> float:
    """Fraction of members closing above their EMA21.

    Members missing either value are left out of the denominator.
    """
    above = total = 0
    for close, ema21 in members.values():
        if close is None or ema21 is None:
            continue
        total += 1
        if close > ema21:
            above += 1
    return above / total if total else 0.0


def composite_score(rel_strength: float, breadth: float, dollar_vol_z: float) -> float:
    return (
        WEIGHT_REL_STRENGTH * rel_strength
        + WEIGHT_BREADTH * breadth
        + WEIGHT_DOLLAR_VOL_Z * dollar_vol_z
    )


def score_sector(inputs: SectorInputs, week_end: date) -> SectorMetric | None:
    """Unranked metric for one sector, or None if it does not qualify."""
    etf_return = five_day_return(inputs.etf_bars)
    bench_return = five_day_return(inputs.bench_bars)
    if etf_return is None or bench_return is None:
        logger.info(
            "Skipping sector %s: %d %s bars, %d %s bars",
            inputs.sector_name,
            len(inputs.etf_bars), inputs.etf_symbol,
            len(inputs.bench_bars), inputs.bench_symbol,
        )
        return None

    dollar_vols = [float(b.close) * b.volume for b in inputs.etf_bars]
    dollar_vol_z = zscore(dollar_vols[-ZSCORE_WINDOW:])
    if dollar_vol_z is None:
        return None

    rel_strength = etf_return - bench_return
    breadth = breadth_above_ema21(inputs.members)

    return SectorMetric(
        sector_id=inputs.sector_id,
        sector_name=inputs.sector_name,
        week_end_date=week_end,
        etf_symbol=inputs.etf_symbol,
        bench_symbol=inputs.bench_symbol,
        etf_5d_return=etf_return,
        bench_5d_return=bench_return,
        rel_strength_5d=rel_strength,
        etf_dollar_vol_z=dollar_vol_z,
        breadth_above_ema21=breadth,
        score=composite_score(rel_strength, breadth, dollar_vol_z),
    )


def rank_sectors(metrics: Sequence[SectorMetric]) -> list[SectorMetric]:
    """Assign 1-based ranks by descending score.

    Operates on the complete cohort. Python's sort is stable, so exact ties
    keep their input order.
    """
    ordered = sorted(metrics, key=lambda m: m.score, reverse=True)
    return [m.model_copy(update={"rank": i}) for i, m in enumerate(ordered, start=1)]


def rank_week(inputs: Sequence[SectorInputs], week_end: date) -> list[SectorMetric]:
    """Score every sector, then rank the qualifying ones together."""
    scored = [score_sector(item, week_end) for item in inputs]
    return rank_sectors([m for m in scored if m is not None])


def top_sectors(ranked: Sequence[SectorMetric], top_n: int) -> list[SectorMetric]:
    return [m for m in ranked if m.rank is not None and m.rank <= top_n]
