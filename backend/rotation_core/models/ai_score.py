"""AI acceleration score model."""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class GrowthPhase(str, Enum):
    DECELERATING = "decelerating"
    STABLE = "stable"
    EARLY_ACCELERATION = "early_acceleration"
    STRONG_ACCELERATION = "strong_acceleration"


class HypeRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScoreType(str, Enum):
    ACCELERATION = "acceleration"


class DocType(str, Enum):
    EARNINGS = "earnings"
    NEWS_BATCH = "news_batch"
    MANUAL = "manual"


ACCELERATING_PHASES = frozenset(
    {GrowthPhase.EARLY_ACCELERATION, GrowthPhase.STRONG_ACCELERATION}
)


class AccelerationScore(BaseModel):
    """Structured output of the research scoring provider."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    growth_phase: GrowthPhase
    conviction: int = Field(ge=0, le=100)
    hype_risk: HypeRisk
    catalysts: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    summary: str = ""

    @property
    def is_accelerating(self) -> bool:
        return self.growth_phase in ACCELERATING_PHASES
