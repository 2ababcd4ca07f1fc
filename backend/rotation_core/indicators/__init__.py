"""Technical indicators (pure math, no I/O)."""

from rotation_core.indicators.indicators import (
    ATR_PERIOD,
    DEFAULT_LOOKBACK_DAYS,
    EMA_PERIODS,
    RS_SLOPE_POINTS,
    ZSCORE_WINDOW,
    IndicatorCalculator,
    IndicatorResult,
    atr_pct,
    consecutive_closes_below,
    ema,
    ema_series,
    ols_slope,
    rolling_zscore,
    rs_series,
    true_range,
    zscore,
)

__all__ = [
    "ATR_PERIOD",
    "DEFAULT_LOOKBACK_DAYS",
    "EMA_PERIODS",
    "RS_SLOPE_POINTS",
    "ZSCORE_WINDOW",
    "IndicatorCalculator",
    "IndicatorResult",
    "atr_pct",
    "consecutive_closes_below",
    "ema",
    "ema_series",
    "ols_slope",
    "rolling_zscore",
    "rs_series",
    "true_range",
    "zscore",
]
