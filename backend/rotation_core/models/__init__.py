"""Domain models shared by the core engines and the service layer."""

from rotation_core.models.bar import PriceBar
from rotation_core.models.indicator import IndicatorRow
from rotation_core.models.sector import SectorDefinition, SectorMetric
from rotation_core.models.ai_score import (
    ACCELERATING_PHASES,
    AccelerationScore,
    DocType,
    GrowthPhase,
    HypeRisk,
    ScoreType,
)
from rotation_core.models.signal import MarketRegime, SignalRecord, SignalType
from rotation_core.models.position import (
    LIVE_STATES,
    FillRule,
    OrderSide,
    OrderStatus,
    PaperOrder,
    PaperPosition,
    PositionState,
)
from rotation_core.models.config import (
    DEFAULT_THRESHOLDS,
    DecisionThresholds,
    PortfolioSettings,
    StopRule,
)

__all__ = [
    "PriceBar",
    "IndicatorRow",
    "SectorDefinition",
    "SectorMetric",
    "ACCELERATING_PHASES",
    "AccelerationScore",
    "DocType",
    "GrowthPhase",
    "HypeRisk",
    "ScoreType",
    "MarketRegime",
    "SignalRecord",
    "SignalType",
    "LIVE_STATES",
    "FillRule",
    "OrderSide",
    "OrderStatus",
    "PaperOrder",
    "PaperPosition",
    "PositionState",
    "DEFAULT_THRESHOLDS",
    "DecisionThresholds",
    "PortfolioSettings",
    "StopRule",
]
