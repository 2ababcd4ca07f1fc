"""One evaluation step for one symbol: verdict, candidate state, alert.

The service layer loads a SymbolContext per symbol, calls evaluate_symbol
for each (concurrently if it likes, since nothing here is shared), then
persists the returned outcomes in one batch.
"""

from dataclasses import dataclass

from rotation_core.decision import Decision, decide, evaluate_gates, GateValues
from rotation_core.decision.context import SymbolContext
from rotation_core.models import (
    DEFAULT_THRESHOLDS,
    DecisionThresholds,
    MarketRegime,
    PortfolioSettings,
    SignalType,
)
from rotation_core.state import (
    AlertOutcome,
    CandidateState,
    LastEmission,
    evaluate_alert,
    next_candidate_state,
)


@dataclass(frozen=True)
class SymbolOutcome:
    symbol: str
    decision: Decision | None
    gates: GateValues
    candidate: CandidateState
    alert: AlertOutcome

    @property
    def signal_type(self) -> SignalType | None:
        return self.decision.signal_type if self.decision else None


def evaluate_symbol(
    ctx: SymbolContext,
    regime: MarketRegime | None,
    settings: PortfolioSettings,
    last_emission: LastEmission | None = None,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> SymbolOutcome:
    """Run the decision engine and advance the candidate and alert machines.

    The BUY is treated as filled in the same run (paper fills at the
    session close), so a BUY moves the candidate straight to IN_POSITION.
    """
    decision = decide(ctx, regime, settings, thresholds)
    gates = evaluate_gates(ctx, regime, settings, thresholds)

    previous = CandidateState(ctx.previous_candidate) if ctx.previous_candidate else None
    in_position = ctx.position is not None and ctx.position.is_open
    if decision is not None and decision.signal_type == SignalType.SELL:
        in_position = False
    candidate = next_candidate_state(
        previous,
        gates,
        in_position=in_position,
        buy_filled=decision is not None and decision.signal_type == SignalType.BUY,
    )

    alert = evaluate_alert(
        ctx.symbol,
        decision.signal_type if decision else None,
        ctx.as_of,
        last_emission,
    )
    return SymbolOutcome(ctx.symbol, decision, gates, candidate, alert)
