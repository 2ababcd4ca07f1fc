"""Boolean gates shared by the decision engine and the candidate machine."""

from dataclasses import dataclass, asdict

from rotation_core.decision.context import RegimeInputs, SymbolContext
from rotation_core.models import (
    AccelerationScore,
    DEFAULT_THRESHOLDS,
    DecisionThresholds,
    HypeRisk,
    MarketRegime,
    PortfolioSettings,
)


def classify_regime(inputs: RegimeInputs | None) -> MarketRegime | None:
    """RISK_ON above both EMAs, RISK_OFF at or below EMA200, else NEUTRAL.

    Returns None when any input is missing.
    """
    if inputs is None:
        return None
    close, ema50, ema200 = inputs.close, inputs.ema50, inputs.ema200
    if close is None or ema50 is None or ema200 is None:
        return None
    if close > ema50 and close > ema200:
        return MarketRegime.RISK_ON
    if close <= ema200:
        return MarketRegime.RISK_OFF
    return MarketRegime.NEUTRAL


def ai_gate_passes(
    score: AccelerationScore | None,
    settings: PortfolioSettings,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Accelerating growth with high conviction; always true when AI gating is off."""
    if not settings.require_ai_for_buy:
        return True
    if score is None:
        return False
    if not score.is_accelerating or score.conviction < thresholds.buy_min_conviction:
        return False
    if settings.strict_hype_filter and score.hype_risk == HypeRisk.HIGH:
        return False
    return True


@dataclass(frozen=True)
class GateValues:
    inflow: bool
    ai_ok: bool
    ai_present: bool
    trend_confirmed: bool
    risk_on: bool
    liquidity: bool

    @property
    def watch_ready(self) -> bool:
        """Inflow sector with an acceptable AI read and enough liquidity."""
        return self.inflow and self.ai_ok and self.liquidity

    @property
    def all_pass(self) -> bool:
        return self.watch_ready and self.trend_confirmed and self.risk_on

    def to_dict(self) -> dict:
        return asdict(self)


def evaluate_gates(
    ctx: SymbolContext,
    regime: MarketRegime | None,
    settings: PortfolioSettings,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> GateValues:
    inflow = ctx.sector_rank is not None and ctx.sector_rank <= settings.inflow_sector_top_n
    trend = ctx.trend is not None and ctx.trend.is_confirmed(thresholds)
    liquidity = ctx.trend is not None and ctx.trend.dollar_vol >= settings.min_dollar_volume
    return GateValues(
        inflow=inflow,
        ai_ok=ai_gate_passes(ctx.ai_score, settings, thresholds),
        ai_present=ctx.ai_score is not None,
        trend_confirmed=trend,
        risk_on=regime == MarketRegime.RISK_ON,
        liquidity=liquidity,
    )
