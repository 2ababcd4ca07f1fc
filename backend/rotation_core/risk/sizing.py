"""Position sizing and stop-price policies.

All money math is Decimal; share counts are whole shares rounded down.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR

from rotation_core.errors import RiskRejected
from rotation_core.models import PortfolioSettings, StopRule


@dataclass(frozen=True)
class PositionSize:
    """Result of sizing an entry."""

    entry_price: Decimal
    stop_price: Decimal
    risk_per_share: Decimal
    shares_by_risk: int
    shares_by_cap: int
    shares: int

    @property
    def notional(self) -> Decimal:
        return self.entry_price * self.shares

    @property
    def risk_usd(self) -> Decimal:
        return self.risk_per_share * self.shares


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _dec(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def size_position(
    entry_price: Decimal,
    stop_price: Decimal,
    equity_usd: Decimal,
    risk_per_trade_pct: Decimal,
    max_position_pct: Decimal,
) -> PositionSize:
    """Shares such that hitting the stop loses at most risk% of equity.

    Also capped so the position stays within max_position_pct of equity.

    Raises:
        RiskRejected: stop is not below entry, or fewer than one share results
    """
    entry = _dec(entry_price)
    stop = _dec(stop_price)
    risk_per_share = entry - stop
    if risk_per_share <= 0:
        raise RiskRejected(
            f"Non-positive risk per share: entry={entry} stop={stop}"
        )

    equity = _dec(equity_usd)
    shares_by_risk = _floor(equity * _dec(risk_per_trade_pct) / risk_per_share)
    shares_by_cap = _floor(equity * _dec(max_position_pct) / entry)
    shares = min(shares_by_risk, shares_by_cap)
    if shares < 1:
        raise RiskRejected(
            f"Position rounds to {shares} shares: entry={entry} stop={stop} equity={equity}"
        )

    return PositionSize(
        entry_price=entry,
        stop_price=stop,
        risk_per_share=risk_per_share,
        shares_by_risk=shares_by_risk,
        shares_by_cap=shares_by_cap,
        shares=shares,
    )


def size_for_settings(
    entry_price: Decimal, stop_price: Decimal, settings: PortfolioSettings
) -> PositionSize:
    return size_position(
        entry_price,
        stop_price,
        settings.equity_usd,
        settings.risk_per_trade_pct,
        settings.max_position_pct,
    )


def size_add(
    price: Decimal,
    stop_price: Decimal,
    current_shares: int,
    settings: PortfolioSettings,
) -> int:
    """Shares to add to an existing position.

    Risk-sized like a new entry, then limited to the room left under the
    position cap. Returns 0 when there is no room or the risk is rejected.
    """
    price = _dec(price)
    cap_shares = _floor(settings.equity_usd * settings.max_position_pct / price)
    room = cap_shares - current_shares
    if room < 1:
        return 0
    try:
        sized = size_for_settings(price, stop_price, settings)
    except RiskRejected:
        return 0
    return min(sized.shares, room)


def derive_stop(
    entry_price: Decimal,
    settings: PortfolioSettings,
    ema21: float | None = None,
    atr_pct: float | None = None,
) -> Decimal:
    """Initial protective stop for a new entry.

    pct_12 and ema21_3close both use the fixed percentage; the 3-close rule
    is an exit trigger evaluated each session, not a price level.
    ema21_minus_atr falls back to the fixed percentage when EMA21 or ATR%
    is unavailable.
    """
    entry = _dec(entry_price)
    if settings.stop_rule == StopRule.EMA21_MINUS_ATR and ema21 is not None and atr_pct is not None:
        atr = _dec(atr_pct) * entry
        return _dec(ema21) - settings.atr_stop_mult * atr
    return entry * (Decimal("1") - settings.stop_pct)
