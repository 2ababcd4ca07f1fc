"""Paper position and order models."""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field


class PositionState(str, Enum):
    FLAT = "FLAT"
    OPEN = "OPEN"
    TRIMMED = "TRIMMED"
    CLOSED = "CLOSED"


LIVE_STATES = frozenset({PositionState.OPEN, PositionState.TRIMMED})


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class FillRule(str, Enum):
    CLOSE = "close"


class OrderStatus(str, Enum):
    CREATED = "created"
    FILLED = "filled"


class PaperPosition(BaseModel):
    """One live row per symbol, mutated only by paper fills."""

    symbol: str
    state: PositionState = PositionState.FLAT
    shares: int = 0
    avg_entry: Decimal | None = None
    stop_price: Decimal | None = None
    opened_at: date | None = None
    closed_at: date | None = None
    last_mark_price: Decimal | None = None
    realized_pnl: Decimal = Decimal("0")

    @property
    def is_open(self) -> bool:
        return self.state in LIVE_STATES

    def unrealized_gain_pct(self, price: Decimal) -> Decimal | None:
        """Gain of `price` over the average entry, as a fraction."""
        if not self.avg_entry:
            return None
        return price / self.avg_entry - 1


class PaperOrder(BaseModel):
    """Simulated order filled at the session close."""

    id: str | None = None
    symbol: str
    side: OrderSide
    shares: int
    fill_rule: FillRule = FillRule.CLOSE
    requested_price: Decimal | None = None
    filled_price: Decimal | None = None
    status: OrderStatus = OrderStatus.CREATED
    signal_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    filled_at: datetime | None = None
