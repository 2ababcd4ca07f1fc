"""Per-symbol inputs threaded through one evaluation run."""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Sequence

from rotation_core.indicators import (
    consecutive_closes_below,
    ema_series,
    rolling_zscore,
    ZSCORE_WINDOW,
)
from rotation_core.models import (
    AccelerationScore,
    DEFAULT_THRESHOLDS,
    DecisionThresholds,
    IndicatorRow,
    PaperPosition,
    PriceBar,
)


@dataclass(frozen=True)
class TrendFeatures:
    """Trend inputs for one symbol on the as-of date."""

    close: float
    ema21: float
    ema50: float
    rs_slope: float
    volume_z: float
    # Volume z-scores of the sessions before today, oldest first
    recent_volume_z: tuple[float, ...] = ()
    closes_below_ema21: int = 0
    atr_pct: float | None = None
    dollar_vol: float = 0.0

    def is_confirmed(self, thresholds: DecisionThresholds = DEFAULT_THRESHOLDS) -> bool:
        """close > EMA21 > EMA50, rising RS, and a volume burst today or recently."""
        if not (self.close > self.ema21 and self.ema21 > self.ema50):
            return False
        if not self.rs_slope > 0:
            return False
        trigger = thresholds.volume_z_trigger
        if self.volume_z >= trigger:
            return True
        return bool(self.recent_volume_z) and max(self.recent_volume_z) >= trigger


def build_trend_features(
    row: IndicatorRow,
    bars: Sequence[PriceBar],
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> TrendFeatures:
    """Combine the stored indicator row with short history from the bars.

    `bars` must end on row.date. The EMA21 series and trailing volume
    z-scores are recomputed from the bars so no earlier indicator rows
    are needed.
    """
    closes = [float(b.close) for b in bars]
    volumes = [float(b.volume) for b in bars]

    lookback = thresholds.volume_z_lookback
    window_z = rolling_zscore(volumes, ZSCORE_WINDOW, count=lookback + 1)[:-1]
    recent = tuple(z for z in window_z if z is not None)

    ema21 = ema_series(closes, 21)
    below = consecutive_closes_below(closes, ema21)

    return TrendFeatures(
        close=closes[-1] if closes else row.close or 0.0,
        ema21=row.ema21,
        ema50=row.ema50,
        rs_slope=row.rs_slope_10d,
        volume_z=row.volume_z,
        recent_volume_z=recent,
        closes_below_ema21=below,
        atr_pct=row.atr_pct,
        dollar_vol=row.dollar_vol,
    )


@dataclass(frozen=True)
class RegimeInputs:
    """Benchmark close and EMAs used to classify the market regime."""

    symbol: str
    close: float | None
    ema50: float | None
    ema200: float | None


@dataclass(frozen=True)
class SymbolContext:
    """Explicit per-symbol state for one run.

    Replaces any process-wide "last AI score" or "current candidate" state:
    the service loads these values, the engine reads them, and the run's
    outputs are written back from the returned results.
    """

    symbol: str
    as_of: date
    close: Decimal | None = None
    trend: TrendFeatures | None = None
    sector_name: str | None = None
    sector_rank: int | None = None
    ai_score: AccelerationScore | None = None
    # True when the score arrived since the previous evaluation
    ai_score_is_new: bool = False
    position: PaperPosition | None = None
    sessions_since_entry: int | None = None
    previous_candidate: str | None = None
    extra: dict = field(default_factory=dict)

    def with_updates(self, **changes) -> "SymbolContext":
        return replace(self, **changes)
