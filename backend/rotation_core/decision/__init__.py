"""Signal decision engine."""

from rotation_core.decision.context import (
    RegimeInputs,
    SymbolContext,
    TrendFeatures,
    build_trend_features,
)
from rotation_core.decision.gates import (
    GateValues,
    ai_gate_passes,
    classify_regime,
    evaluate_gates,
)
from rotation_core.decision.engine import Decision, decide, decide_with_regime

__all__ = [
    "RegimeInputs",
    "SymbolContext",
    "TrendFeatures",
    "build_trend_features",
    "GateValues",
    "ai_gate_passes",
    "classify_regime",
    "evaluate_gates",
    "Decision",
    "decide",
    "decide_with_regime",
]
