"""Daily indicator row model."""

from datetime import date
from pydantic import BaseModel, ConfigDict


class IndicatorRow(BaseModel):
    """Indicators for one symbol on one date.

    Only ever constructed with every field present; a symbol that cannot
    produce a full row gets no row at all for that date.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    date: date
    ema21: float
    ema50: float
    ema200: float
    atr_pct: float
    rs_vs_spy: float
    rs_slope_10d: float
    volume_z: float
    dollar_vol: float
    close: float | None = None  # Not persisted; carried for decision inputs
