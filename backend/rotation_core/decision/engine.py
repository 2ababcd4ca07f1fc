"""Rule-based decision engine.

A pure function of its inputs: no I/O, no clock, no shared state. Given
the same context, regime and settings it always returns the same verdict.

Evaluation order per symbol:
    1. SELL for an open position (protect capital first)
    2. TRIM, then ADD, for an open position (at most one of them per run)
    3. BUY or WATCH for a symbol without an open position
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from typing import Any

from rotation_core.decision.context import RegimeInputs, SymbolContext
from rotation_core.decision.gates import GateValues, classify_regime, evaluate_gates
from rotation_core.errors import RiskRejected
from rotation_core.models import (
    DEFAULT_THRESHOLDS,
    DecisionThresholds,
    GrowthPhase,
    MarketRegime,
    PaperPosition,
    PortfolioSettings,
    PositionState,
    SignalType,
)
from rotation_core.risk import derive_stop, size_add, size_for_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """A verdict plus everything needed to act on and audit it."""

    signal_type: SignalType
    reason: dict[str, Any] = field(default_factory=dict)
    shares: int | None = None
    stop_price: Decimal | None = None
    confidence: float | None = None


def _position_summary(position: PaperPosition | None) -> dict | None:
    if position is None:
        return None
    return {
        "state": position.state.value,
        "shares": position.shares,
        "avg_entry": str(position.avg_entry) if position.avg_entry is not None else None,
        "stop_price": str(position.stop_price) if position.stop_price is not None else None,
        "opened_at": position.opened_at.isoformat() if position.opened_at else None,
    }


def _base_reason(
    ctx: SymbolContext,
    regime: MarketRegime,
    gates: GateValues,
    settings: PortfolioSettings,
) -> dict[str, Any]:
    trend = ctx.trend
    return {
        "as_of": ctx.as_of.isoformat(),
        "regime": regime.value,
        "sector": ctx.sector_name,
        "sector_rank": ctx.sector_rank,
        "top_n": settings.inflow_sector_top_n,
        "gates": gates.to_dict(),
        "close": str(ctx.close) if ctx.close is not None else None,
        "trend": None if trend is None else {
            "close": trend.close,
            "ema21": trend.ema21,
            "ema50": trend.ema50,
            "rs_slope": trend.rs_slope,
            "volume_z": trend.volume_z,
            "recent_volume_z": list(trend.recent_volume_z),
            "closes_below_ema21": trend.closes_below_ema21,
            "atr_pct": trend.atr_pct,
        },
        "ai": None if ctx.ai_score is None else {
            **ctx.ai_score.model_dump(mode="json"),
            "is_new": ctx.ai_score_is_new,
        },
        "position": _position_summary(ctx.position),
    }


def _sell_triggers(
    ctx: SymbolContext,
    regime: MarketRegime,
    settings: PortfolioSettings,
    thresholds: DecisionThresholds,
) -> list[str]:
    position = ctx.position
    close = ctx.close
    triggers = []

    if close is not None and position.stop_price is not None and close <= position.stop_price:
        triggers.append("stop_breached")

    trend = ctx.trend
    if trend is not None and trend.closes_below_ema21 >= thresholds.closes_below_ema21_exit:
        triggers.append("closes_below_ema21")

    score = ctx.ai_score
    if ctx.ai_score_is_new and score is not None:
        if score.conviction < thresholds.sell_max_conviction:
            triggers.append("ai_low_conviction")
        if score.growth_phase == GrowthPhase.DECELERATING:
            triggers.append("ai_decelerating")

    if (
        settings.exit_on_regime_flip
        and regime == MarketRegime.RISK_OFF
        and trend is not None
        and trend.close < trend.ema50
    ):
        triggers.append("regime_risk_off")

    return triggers


def _trim_shares(
    ctx: SymbolContext, settings: PortfolioSettings, thresholds: DecisionThresholds
) -> int:
    position = ctx.position
    if not settings.trim_rule_enabled or position.state != PositionState.OPEN:
        return 0
    if ctx.sessions_since_entry is None or ctx.sessions_since_entry > thresholds.trim_window_sessions:
        return 0
    close = ctx.close
    if close is None:
        return 0
    gain = position.unrealized_gain_pct(close)
    if gain is None or gain < thresholds.trim_gain_pct:
        return 0
    shares = Decimal(position.shares) * thresholds.trim_fraction
    return int(shares.to_integral_value(rounding=ROUND_FLOOR))


def _add_shares(
    ctx: SymbolContext,
    gates: GateValues,
    settings: PortfolioSettings,
    thresholds: DecisionThresholds,
) -> tuple[int, Decimal | None]:
    position = ctx.position
    if not settings.add_rule_enabled or position.state != PositionState.OPEN:
        return 0, None
    trend = ctx.trend
    close = ctx.close
    if trend is None or close is None or not position.avg_entry:
        return 0, None
    if close < position.avg_entry * (1 + thresholds.add_min_gain_pct):
        return 0, None
    if not (trend.close > trend.ema21 and gates.risk_on and gates.inflow):
        return 0, None
    stop = position.stop_price or derive_stop(close, settings, trend.ema21, trend.atr_pct)
    return size_add(close, stop, position.shares, settings), stop


def _evaluate_open_position(
    ctx: SymbolContext,
    regime: MarketRegime,
    gates: GateValues,
    settings: PortfolioSettings,
    thresholds: DecisionThresholds,
) -> Decision | None:
    reason = _base_reason(ctx, regime, gates, settings)

    triggers = _sell_triggers(ctx, regime, settings, thresholds)
    if triggers:
        reason["triggers"] = triggers
        return Decision(SignalType.SELL, reason, shares=ctx.position.shares)

    trim = _trim_shares(ctx, settings, thresholds)
    if trim >= 1:
        reason["triggers"] = ["gain_within_window"]
        reason["sessions_since_entry"] = ctx.sessions_since_entry
        return Decision(SignalType.TRIM, reason, shares=trim)

    add, stop = _add_shares(ctx, gates, settings, thresholds)
    if add >= 1:
        reason["triggers"] = ["follow_through"]
        return Decision(SignalType.ADD, reason, shares=add, stop_price=stop)

    return None


def _evaluate_entry(
    ctx: SymbolContext,
    regime: MarketRegime,
    gates: GateValues,
    settings: PortfolioSettings,
) -> Decision | None:
    if not gates.inflow:
        return None

    reason = _base_reason(ctx, regime, gates, settings)
    buy_ready = gates.trend_confirmed and gates.risk_on

    if settings.require_ai_for_buy and not gates.ai_present:
        if buy_ready:
            reason["downgraded"] = "ai_score_missing"
            return Decision(SignalType.WATCH, reason)
        return None

    if not gates.ai_ok:
        return None

    if not buy_ready:
        return Decision(SignalType.WATCH, reason)

    trend = ctx.trend
    entry = ctx.close
    if entry is None:
        return None
    stop = derive_stop(entry, settings, trend.ema21, trend.atr_pct)
    try:
        sized = size_for_settings(entry, stop, settings)
    except RiskRejected as e:
        logger.info("%s: BUY rejected by risk sizing: %s", ctx.symbol, e)
        return None

    reason["sizing"] = {
        "entry": str(sized.entry_price),
        "stop": str(sized.stop_price),
        "risk_per_share": str(sized.risk_per_share),
        "shares_by_risk": sized.shares_by_risk,
        "shares_by_cap": sized.shares_by_cap,
        "stop_rule": settings.stop_rule.value,
    }
    confidence = ctx.ai_score.conviction / 100 if ctx.ai_score is not None else None
    return Decision(
        SignalType.BUY,
        reason,
        shares=sized.shares,
        stop_price=sized.stop_price,
        confidence=confidence,
    )


def decide(
    ctx: SymbolContext,
    regime: MarketRegime | None,
    settings: PortfolioSettings,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> Decision | None:
    """Evaluate one symbol and return at most one verdict.

    Args:
        ctx: Per-symbol inputs for this run
        regime: Market regime, or None when benchmark data is missing
        settings: Active portfolio settings
        thresholds: Rule thresholds

    Returns:
        The verdict, or None when nothing applies. Missing regime data
        always yields None. No trade verdict is made without an as-of close.
    """
    if regime is None:
        return None

    gates = evaluate_gates(ctx, regime, settings, thresholds)

    if ctx.position is not None and ctx.position.is_open:
        if ctx.close is None:
            logger.info("%s: no close for %s, holding position", ctx.symbol, ctx.as_of)
            return None
        return _evaluate_open_position(ctx, regime, gates, settings, thresholds)

    return _evaluate_entry(ctx, regime, gates, settings)


def decide_with_regime(
    ctx: SymbolContext,
    regime_inputs: RegimeInputs | None,
    settings: PortfolioSettings,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> Decision | None:
    return decide(ctx, classify_regime(regime_inputs), settings, thresholds)
