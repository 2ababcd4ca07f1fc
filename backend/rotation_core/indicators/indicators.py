"""Daily technical indicators (pure math, no I/O).

All functions take plain float sequences ordered oldest-first and return
None when the input is too short to define the value. None means "not
enough history", never an error.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Sequence

import numpy as np

from rotation_core.errors import (
    InsufficientHistory,
    InvalidFeatureValue,
    MissingBenchmarkData,
    RotationError,
)
from rotation_core.models import IndicatorRow, PriceBar

logger = logging.getLogger(__name__)

EMA_PERIODS = (21, 50, 200)
ATR_PERIOD = 14
ZSCORE_WINDOW = 60
RS_SLOPE_POINTS = 10
DEFAULT_LOOKBACK_DAYS = 260


# =============================================================================
# Primitive series math
# =============================================================================

def ema_series(values: Sequence[float], period: int) -> list[float | None]:
    """EMA at every index; None until `period` values have been seen.

    Seeded with the simple average of the first `period` values, then
    smoothed forward with k = 2 / (period + 1).
    """
    if period <= 0:
        raise ValueError(f"period must be positive, got {period}")
    n = len(values)
    if n < period:
        return [None] * n

    arr = np.asarray(values, dtype=np.float64)
    k = 2.0 / (period + 1)

    result: list[float | None] = [None] * (period - 1)
    current = float(np.mean(arr[:period]))
    result.append(current)
    for i in range(period, n):
        current = float(arr[i]) * k + current * (1 - k)
        result.append(current)
    return result


def ema(values: Sequence[float], period: int) -> float | None:
    """Latest EMA value, or None if fewer than `period` values."""
    if len(values) < period:
        return None
    return ema_series(values, period)[-1]


def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> list[float]:
    """True range for every bar that has a previous close.

    The first bar has no previous close and produces no value, so the
    result is one element shorter than the input.
    """
    result = []
    for i in range(1, len(highs)):
        prev_close = closes[i - 1]
        result.append(max(
            highs[i] - lows[i],
            abs(highs[i] - prev_close),
            abs(lows[i] - prev_close),
        ))
    return result


def atr_pct(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = ATR_PERIOD,
) -> float | None:
    """Mean of the last `period` true ranges divided by the latest close.

    Needs period + 1 bars. None if history is short or the close is zero.
    """
    if len(closes) < period + 1:
        return None
    trs = true_range(highs, lows, closes)
    last_close = closes[-1]
    if last_close == 0:
        return None
    return float(np.mean(trs[-period:])) / last_close


def zscore(values: Sequence[float]) -> float | None:
    """Z-score of the last value against the whole window.

    Uses population standard deviation. A constant window scores exactly 0.
    """
    if len(values) < 2:
        return None
    arr = np.asarray(values, dtype=np.float64)
    mean = arr.mean()
    std = math.sqrt(float(np.mean((arr - mean) ** 2)))
    if std == 0:
        return 0.0
    return float((arr[-1] - mean) / std)


def rolling_zscore(
    values: Sequence[float], window: int = ZSCORE_WINDOW, count: int = 1
) -> list[float | None]:
    """Z-score of each of the last `count` points against its own trailing window."""
    result = []
    n = len(values)
    for end in range(max(n - count, 0) + 1, n + 1):
        result.append(zscore(values[max(0, end - window):end]))
    return result


def ols_slope(values: Sequence[float]) -> float | None:
    """Least-squares slope with the index as x."""
    n = len(values)
    if n < 2:
        return None
    sum_x = sum_y = sum_xy = sum_xx = 0.0
    for i, y in enumerate(values):
        sum_x += i
        sum_y += y
        sum_xy += i * y
        sum_xx += i * i
    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return None
    return (n * sum_xy - sum_x * sum_y) / denominator


def rs_series(
    bars: Sequence[PriceBar], benchmark_closes: Mapping[date, float]
) -> list[float]:
    """Close / benchmark close for every bar the benchmark also has."""
    series = []
    for bar in bars:
        bench = benchmark_closes.get(bar.date)
        if bench:
            series.append(float(bar.close) / bench)
    return series


def consecutive_closes_below(
    closes: Sequence[float], levels: Sequence[float | None]
) -> int:
    """Number of sessions, counting back from the latest, closing below `levels`."""
    count = 0
    for close, level in zip(reversed(closes), reversed(levels)):
        if level is None or close >= level:
            break
        count += 1
    return count


# =============================================================================
# Indicator row
# =============================================================================

@dataclass
class IndicatorResult:
    """Outcome of computing one symbol's indicator row.

    Exactly one of `row` and `error` is set.
    """

    symbol: str
    row: IndicatorRow | None = None
    error: RotationError | None = None

    @property
    def skipped(self) -> bool:
        return self.row is None


class IndicatorCalculator:
    """Builds IndicatorRows from a symbol's bar history.

    Usage:
        calc = IndicatorCalculator()
        result = calc.calculate("NVDA", bars, spy_closes, as_of)
        if result.row:
            ...
    """

    def __init__(
        self,
        ema_periods: tuple[int, int, int] = EMA_PERIODS,
        atr_period: int = ATR_PERIOD,
        zscore_window: int = ZSCORE_WINDOW,
        rs_slope_points: int = RS_SLOPE_POINTS,
    ):
        self.ema_periods = ema_periods
        self.atr_period = atr_period
        self.zscore_window = zscore_window
        self.rs_slope_points = rs_slope_points

    def calculate(
        self,
        symbol: str,
        bars: Sequence[PriceBar],
        benchmark_closes: Mapping[date, float],
        as_of: date,
    ) -> IndicatorResult:
        """Compute the full row for `as_of`, or report why it was skipped.

        A row is produced only if the last bar is dated `as_of` and every
        field is defined and finite.
        """
        if not bars or bars[-1].date != as_of:
            return IndicatorResult(symbol, error=InsufficientHistory(symbol, 1, 0))

        closes = [float(b.close) for b in bars]
        highs = [float(b.high) for b in bars]
        lows = [float(b.low) for b in bars]
        volumes = [float(b.volume) for b in bars]

        fast, mid, slow = (ema(closes, p) for p in self.ema_periods)
        atr = atr_pct(highs, lows, closes, self.atr_period)
        if fast is None or mid is None or slow is None or atr is None:
            needed = max(max(self.ema_periods), self.atr_period + 1)
            return IndicatorResult(
                symbol, error=InsufficientHistory(symbol, needed, len(bars))
            )

        bench_close = benchmark_closes.get(as_of)
        if not bench_close:
            return IndicatorResult(
                symbol, error=MissingBenchmarkData(symbol, "benchmark", as_of)
            )
        rs = closes[-1] / bench_close

        slope = ols_slope(rs_series(bars, benchmark_closes)[-self.rs_slope_points:])
        volume_z = zscore(volumes[-self.zscore_window:])
        if slope is None or volume_z is None:
            return IndicatorResult(
                symbol, error=InsufficientHistory(symbol, 2, len(bars))
            )

        values = {
            "ema21": fast,
            "ema50": mid,
            "ema200": slow,
            "atr_pct": atr,
            "rs_vs_spy": rs,
            "rs_slope_10d": slope,
            "volume_z": volume_z,
            "dollar_vol": closes[-1] * volumes[-1],
        }
        for name, value in values.items():
            if not math.isfinite(value):
                logger.warning(f"{symbol} {as_of}: non-finite {name}={value}, skipping")
                return IndicatorResult(
                    symbol, error=InvalidFeatureValue(symbol, name, value)
                )

        row = IndicatorRow(symbol=symbol, date=as_of, close=closes[-1], **values)
        return IndicatorResult(symbol, row=row)
