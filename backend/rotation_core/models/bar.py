"""Daily price bar model."""

from datetime import date
from decimal import Decimal
from pydantic import BaseModel, ConfigDict


class PriceBar(BaseModel):
    """Daily OHLCV bar, keyed by (symbol, date)."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int

