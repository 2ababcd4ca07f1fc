"""Signal verdict and record models."""

import hashlib
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any
from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """Decision engine verdicts."""

    BUY = "BUY"
    WATCH = "WATCH"
    SELL = "SELL"
    ADD = "ADD"
    TRIM = "TRIM"


class MarketRegime(str, Enum):
    RISK_ON = "RISK_ON"
    NEUTRAL = "NEUTRAL"
    RISK_OFF = "RISK_OFF"


def _generate_signal_id(symbol: str, signal_type: str, as_of_date: date) -> str:
    """Generate deterministic signal ID.

    Re-running an evaluation for the same date produces the same ID, so the
    append-only insert turns into a no-op instead of a duplicate.
    """
    key = f"{symbol}:{signal_type}:{as_of_date.isoformat()}"
    return hashlib.sha256(key.encode()).hexdigest()[:32]


class SignalRecord(BaseModel):
    """Append-only signal fact with its full evaluation context."""

    id: str = ""  # Will be set in model_post_init
    symbol: str
    signal_type: SignalType
    as_of_date: date
    reason: dict[str, Any] = Field(default_factory=dict)
    confidence: float | None = None
    shares: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sent_at: datetime | None = None

    def model_post_init(self, __context) -> None:
        """Generate deterministic ID after model initialization."""
        if not self.id:
            object.__setattr__(
                self,
                "id",
                _generate_signal_id(self.symbol, self.signal_type.value, self.as_of_date),
            )
