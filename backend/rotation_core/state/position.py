"""Paper position lifecycle.

    FLAT --BUY--> OPEN --ADD--> OPEN
    OPEN|TRIMMED --TRIM--> TRIMMED
    OPEN|TRIMMED --SELL/stop--> CLOSED

CLOSED is terminal; a new BUY starts a fresh lifecycle.
"""

import logging
from datetime import date
from decimal import Decimal

from rotation_core.errors import InvalidTransition
from rotation_core.models import LIVE_STATES, PaperPosition, PositionState, SignalType

logger = logging.getLogger(__name__)

_MACHINE = "paper_position"


def _require(position: PaperPosition, allowed: set[PositionState], event: str) -> None:
    if position.state not in allowed:
        raise InvalidTransition(_MACHINE, position.state.value, event)


def open_position(
    position: PaperPosition | None,
    symbol: str,
    shares: int,
    price: Decimal,
    stop_price: Decimal | None,
    on: date,
) -> PaperPosition:
    """BUY fill. Starts a fresh lifecycle from FLAT or CLOSED."""
    if position is not None:
        _require(position, {PositionState.FLAT, PositionState.CLOSED}, "BUY")
    if shares < 1:
        raise InvalidTransition(_MACHINE, PositionState.FLAT.value, f"BUY {shares}")
    return PaperPosition(
        symbol=symbol,
        state=PositionState.OPEN,
        shares=shares,
        avg_entry=price,
        stop_price=stop_price,
        opened_at=on,
        last_mark_price=price,
    )


def add_to_position(
    position: PaperPosition,
    shares: int,
    price: Decimal,
    stop_price: Decimal | None = None,
) -> PaperPosition:
    """ADD fill. Average entry is reweighted by share count."""
    _require(position, {PositionState.OPEN}, "ADD")
    total = position.shares + shares
    cost = position.avg_entry * position.shares + price * shares
    return position.model_copy(update={
        "shares": total,
        "avg_entry": cost / total,
        "stop_price": stop_price if stop_price is not None else position.stop_price,
        "last_mark_price": price,
    })


def trim_position(position: PaperPosition, shares: int, price: Decimal) -> PaperPosition:
    """TRIM fill. Must leave at least one share; use close_position otherwise."""
    _require(position, set(LIVE_STATES), "TRIM")
    if shares < 1 or shares >= position.shares:
        raise InvalidTransition(_MACHINE, position.state.value, f"TRIM {shares}/{position.shares}")
    realized = (price - position.avg_entry) * shares
    return position.model_copy(update={
        "state": PositionState.TRIMMED,
        "shares": position.shares - shares,
        "realized_pnl": position.realized_pnl + realized,
        "last_mark_price": price,
    })


def close_position(position: PaperPosition, price: Decimal, on: date) -> PaperPosition:
    """SELL fill or stop hit."""
    _require(position, set(LIVE_STATES), "SELL")
    realized = (price - position.avg_entry) * position.shares
    return position.model_copy(update={
        "state": PositionState.CLOSED,
        "shares": 0,
        "closed_at": on,
        "realized_pnl": position.realized_pnl + realized,
        "last_mark_price": price,
    })


def mark_position(position: PaperPosition, price: Decimal) -> PaperPosition:
    if not position.is_open:
        return position
    return position.model_copy(update={"last_mark_price": price})


def apply_fill(
    position: PaperPosition | None,
    symbol: str,
    signal_type: SignalType,
    shares: int,
    price: Decimal,
    on: date,
    stop_price: Decimal | None = None,
) -> PaperPosition:
    """Apply a filled paper order for `signal_type` and return the new position.

    Raises:
        InvalidTransition: the fill is not allowed from the current state
    """
    if signal_type == SignalType.BUY:
        return open_position(position, symbol, shares, price, stop_price, on)
    if position is None:
        raise InvalidTransition(_MACHINE, PositionState.FLAT.value, signal_type.value)
    if signal_type == SignalType.ADD:
        return add_to_position(position, shares, price, stop_price)
    if signal_type == SignalType.TRIM:
        return trim_position(position, shares, price)
    if signal_type == SignalType.SELL:
        return close_position(position, price, on)
    raise InvalidTransition(_MACHINE, position.state.value, signal_type.value)
