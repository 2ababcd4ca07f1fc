"""Tests for the rule-based decision engine."""

from datetime import date
from decimal import Decimal

import pytest

from rotation_core.decision import (
    RegimeInputs,
    SymbolContext,
    TrendFeatures,
    ai_gate_passes,
    classify_regime,
    decide,
    decide_with_regime,
    evaluate_gates,
)
from rotation_core.models import (
    AccelerationScore,
    GrowthPhase,
    HypeRisk,
    MarketRegime,
    PaperPosition,
    PortfolioSettings,
    PositionState,
    SignalType,
)

AS_OF = date(2024, 6, 3)
SETTINGS = PortfolioSettings()


def make_trend(**overrides):
    values = dict(
        close=310.0,
        ema21=300.0,
        ema50=280.0,
        rs_slope=0.01,
        volume_z=1.5,
        atr_pct=0.02,
        dollar_vol=5e9,
    )
    values.update(overrides)
    return TrendFeatures(**values)


def make_score(phase=GrowthPhase.STRONG_ACCELERATION, conviction=80, hype=HypeRisk.LOW):
    return AccelerationScore(growth_phase=phase, conviction=conviction, hype_risk=hype)


def make_ctx(**overrides):
    values = dict(
        symbol="NVDA",
        as_of=AS_OF,
        close=Decimal("310"),
        trend=make_trend(),
        sector_name="Semiconductors",
        sector_rank=1,
        ai_score=make_score(),
    )
    values.update(overrides)
    return SymbolContext(**values)


def open_position(**overrides):
    values = dict(
        symbol="NVDA",
        state=PositionState.OPEN,
        shares=50,
        avg_entry=Decimal("100"),
        stop_price=Decimal("88"),
        opened_at=date(2024, 5, 27),
    )
    values.update(overrides)
    return PaperPosition(**values)


class TestRegime:
    """Tests for market regime classification."""

    def test_risk_on(self):
        assert classify_regime(RegimeInputs("SPY", 500, 480, 450)) == MarketRegime.RISK_ON

    def test_risk_off_at_or_below_ema200(self):
        assert classify_regime(RegimeInputs("SPY", 450, 480, 450)) == MarketRegime.RISK_OFF

    def test_neutral(self):
        assert classify_regime(RegimeInputs("SPY", 470, 480, 450)) == MarketRegime.NEUTRAL

    def test_missing_data(self):
        assert classify_regime(None) is None
        assert classify_regime(RegimeInputs("SPY", 500, None, 450)) is None


class TestGates:
    def test_ai_gate(self):
        assert ai_gate_passes(make_score(), SETTINGS)
        assert not ai_gate_passes(make_score(conviction=74), SETTINGS)
        assert not ai_gate_passes(make_score(phase=GrowthPhase.STABLE), SETTINGS)
        assert not ai_gate_passes(None, SETTINGS)

    def test_ai_gate_disabled(self):
        assert ai_gate_passes(None, PortfolioSettings(require_ai_for_buy=False))

    def test_strict_hype_filter(self):
        score = make_score(hype=HypeRisk.HIGH)
        assert ai_gate_passes(score, SETTINGS)
        assert not ai_gate_passes(score, PortfolioSettings(strict_hype_filter=True))

    def test_trend_confirmed_by_recent_volume_burst(self):
        trend = make_trend(volume_z=0.1, recent_volume_z=(0.2, 1.4, 0.3))
        gates = evaluate_gates(make_ctx(trend=trend), MarketRegime.RISK_ON, SETTINGS)
        assert gates.trend_confirmed

    def test_trend_needs_rising_rs(self):
        gates = evaluate_gates(make_ctx(trend=make_trend(rs_slope=-0.01)), MarketRegime.RISK_ON, SETTINGS)
        assert not gates.trend_confirmed

    def test_liquidity_gate(self):
        settings = PortfolioSettings(min_dollar_volume=1e10)
        gates = evaluate_gates(make_ctx(), MarketRegime.RISK_ON, settings)
        assert not gates.liquidity
        assert not gates.watch_ready


class TestEntryDecisions:
    """Tests for BUY / WATCH verdicts without an open position."""

    def test_no_regime_no_verdict(self):
        assert decide(make_ctx(), None, SETTINGS) is None
        assert decide_with_regime(make_ctx(), RegimeInputs("SPY", None, None, None), SETTINGS) is None

    def test_buy_sized_by_risk(self):
        decision = decide(make_ctx(), MarketRegime.RISK_ON, SETTINGS)

        assert decision.signal_type == SignalType.BUY
        assert decision.shares == 26
        assert decision.stop_price == Decimal("272.80")
        assert decision.confidence == pytest.approx(0.8)
        assert decision.reason["sizing"]["shares_by_cap"] == 64
        assert decision.reason["gates"]["inflow"] is True

    def test_outside_top_sectors_no_verdict(self):
        assert decide(make_ctx(sector_rank=3), MarketRegime.RISK_ON, SETTINGS) is None
        assert decide(make_ctx(sector_rank=None), MarketRegime.RISK_ON, SETTINGS) is None

    def test_watch_without_trend_confirmation(self):
        ctx = make_ctx(trend=make_trend(volume_z=0.2))
        decision = decide(ctx, MarketRegime.RISK_ON, SETTINGS)
        assert decision.signal_type == SignalType.WATCH

    def test_watch_when_not_risk_on(self):
        decision = decide(make_ctx(), MarketRegime.NEUTRAL, SETTINGS)
        assert decision.signal_type == SignalType.WATCH

    def test_missing_ai_downgrades_to_watch(self):
        decision = decide(make_ctx(ai_score=None), MarketRegime.RISK_ON, SETTINGS)
        assert decision.signal_type == SignalType.WATCH
        assert decision.reason["downgraded"] == "ai_score_missing"

    def test_weak_ai_no_verdict(self):
        ctx = make_ctx(ai_score=make_score(conviction=60))
        assert decide(ctx, MarketRegime.RISK_ON, SETTINGS) is None

    def test_buy_without_ai_when_not_required(self):
        settings = PortfolioSettings(require_ai_for_buy=False)
        decision = decide(make_ctx(ai_score=None), MarketRegime.RISK_ON, settings)
        assert decision.signal_type == SignalType.BUY
        assert decision.confidence is None

    def test_risk_rejected_no_verdict(self):
        settings = PortfolioSettings(equity_usd=Decimal("100"))
        assert decide(make_ctx(), MarketRegime.RISK_ON, settings) is None

    def test_identical_inputs_identical_verdict(self):
        ctx = make_ctx()
        assert decide(ctx, MarketRegime.RISK_ON, SETTINGS) == decide(ctx, MarketRegime.RISK_ON, SETTINGS)


class TestPositionDecisions:
    """Tests for SELL / TRIM / ADD on an open position."""

    def test_stop_breached(self):
        ctx = make_ctx(close=Decimal("87"), trend=make_trend(close=87.0), position=open_position())
        decision = decide(ctx, MarketRegime.RISK_ON, SETTINGS)

        assert decision.signal_type == SignalType.SELL
        assert decision.shares == 50
        assert "stop_breached" in decision.reason["triggers"]

    def test_three_closes_below_ema21(self):
        ctx = make_ctx(
            close=Decimal("105"),
            trend=make_trend(close=105.0, closes_below_ema21=3),
            position=open_position(),
            sessions_since_entry=20,
        )
        decision = decide(ctx, MarketRegime.RISK_ON, SETTINGS)
        assert decision.signal_type == SignalType.SELL
        assert decision.reason["triggers"] == ["closes_below_ema21"]

    def test_new_low_conviction_score_sells(self):
        ctx = make_ctx(
            close=Decimal("105"),
            trend=make_trend(close=105.0, ema21=110.0),
            position=open_position(),
            ai_score=make_score(conviction=50),
            ai_score_is_new=True,
            sessions_since_entry=20,
        )
        decision = decide(ctx, MarketRegime.RISK_ON, SETTINGS)
        assert decision.signal_type == SignalType.SELL
        assert decision.reason["triggers"] == ["ai_low_conviction"]

    def test_stale_low_conviction_score_holds(self):
        ctx = make_ctx(
            close=Decimal("105"),
            trend=make_trend(close=105.0, ema21=110.0),
            position=open_position(),
            ai_score=make_score(conviction=50),
            ai_score_is_new=False,
            sessions_since_entry=20,
        )
        assert decide(ctx, MarketRegime.RISK_ON, SETTINGS) is None

    def test_regime_flip_exit(self):
        ctx = make_ctx(
            close=Decimal("105"),
            trend=make_trend(close=105.0, ema21=110.0, ema50=108.0),
            position=open_position(),
            sessions_since_entry=20,
        )
        assert decide(ctx, MarketRegime.RISK_OFF, SETTINGS) is None
        settings = PortfolioSettings(exit_on_regime_flip=True)
        decision = decide(ctx, MarketRegime.RISK_OFF, settings)
        assert decision.reason["triggers"] == ["regime_risk_off"]

    def test_trim_takes_precedence_over_add(self):
        ctx = make_ctx(
            close=Decimal("130"),
            trend=make_trend(close=130.0, ema21=120.0, ema50=110.0),
            position=open_position(),
            sessions_since_entry=5,
        )
        decision = decide(ctx, MarketRegime.RISK_ON, SETTINGS)
        assert decision.signal_type == SignalType.TRIM
        assert decision.shares == 25

    def test_no_trim_after_window(self):
        ctx = make_ctx(
            close=Decimal("130"),
            trend=make_trend(close=130.0, ema21=120.0, ema50=110.0),
            position=open_position(),
            sessions_since_entry=11,
        )
        decision = decide(ctx, MarketRegime.RISK_ON, SETTINGS)
        assert decision.signal_type == SignalType.ADD

    def test_add_on_follow_through(self):
        ctx = make_ctx(
            close=Decimal("110"),
            trend=make_trend(close=110.0, ema21=105.0, ema50=100.0),
            position=open_position(shares=10, stop_price=Decimal("95")),
            sessions_since_entry=20,
        )
        decision = decide(ctx, MarketRegime.RISK_ON, SETTINGS)

        assert decision.signal_type == SignalType.ADD
        # risk 15/share -> floor(1000 / 15) = 66, room under cap = 181 - 10
        assert decision.shares == 66
        assert decision.stop_price == Decimal("95")

    def test_trimmed_position_neither_trims_nor_adds(self):
        ctx = make_ctx(
            close=Decimal("130"),
            trend=make_trend(close=130.0, ema21=120.0, ema50=110.0),
            position=open_position(state=PositionState.TRIMMED, shares=25),
            sessions_since_entry=5,
        )
        assert decide(ctx, MarketRegime.RISK_ON, SETTINGS) is None

    def test_no_verdict_without_as_of_close(self):
        ctx = make_ctx(
            close=None,
            trend=make_trend(close=105.0, ema21=110.0),
            position=open_position(),
            ai_score=make_score(phase=GrowthPhase.DECELERATING, conviction=40),
            ai_score_is_new=True,
            sessions_since_entry=20,
        )
        assert decide(ctx, MarketRegime.RISK_ON, SETTINGS) is None

    def test_no_buy_without_as_of_close(self):
        assert decide(make_ctx(close=None), MarketRegime.RISK_ON, SETTINGS) is None
