"""Portfolio and decision configuration models."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator


class StopRule(str, Enum):
    """Stop-price policy."""

    PCT_12 = "pct_12"                     # Fixed percentage below entry
    EMA21_3CLOSE = "ema21_3close"         # Exit after 3 closes below EMA21
    EMA21_MINUS_ATR = "ema21_minus_atr"   # EMA21 - k * ATR


class PortfolioSettings(BaseModel):
    """The single active portfolio settings row.

    Risk fields are stored as fractions (0.01 = 1% of equity).
    """

    model_config = ConfigDict(frozen=True)

    equity_usd: Decimal = Decimal("100000")
    risk_per_trade_pct: Decimal = Decimal("0.01")
    max_position_pct: Decimal = Decimal("0.20")

    stop_rule: StopRule = StopRule.PCT_12
    stop_pct: Decimal = Decimal("0.12")
    atr_stop_mult: Decimal = Decimal("1.5")

    inflow_sector_top_n: int = 2

    require_ai_for_buy: bool = True
    strict_hype_filter: bool = False

    add_rule_enabled: bool = True
    trim_rule_enabled: bool = True
    exit_on_regime_flip: bool = False

    # Candidate liquidity gate: minimum close * volume on the as-of date
    min_dollar_volume: float = 0.0

    @model_validator(mode="after")
    def _validate_ranges(self) -> PortfolioSettings:
        if self.equity_usd <= 0:
            raise ValueError(f"equity_usd must be positive, got {self.equity_usd}")
        for name in ("risk_per_trade_pct", "max_position_pct", "stop_pct"):
            value = getattr(self, name)
            if not (Decimal("0") < value <= Decimal("1")):
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if self.inflow_sector_top_n < 1:
            raise ValueError(
                f"inflow_sector_top_n must be >= 1, got {self.inflow_sector_top_n}"
            )
        return self


class DecisionThresholds(BaseModel):
    """Fixed rule thresholds used by the decision engine."""

    model_config = ConfigDict(frozen=True)

    buy_min_conviction: int = Field(default=75, ge=0, le=100)
    sell_max_conviction: int = Field(default=60, ge=0, le=100)
    volume_z_trigger: float = 1.0
    volume_z_lookback: int = 5
    closes_below_ema21_exit: int = 3
    trim_gain_pct: Decimal = Decimal("0.25")
    trim_window_sessions: int = 10
    trim_fraction: Decimal = Decimal("0.5")
    add_min_gain_pct: Decimal = Decimal("0.05")


DEFAULT_THRESHOLDS = DecisionThresholds()
