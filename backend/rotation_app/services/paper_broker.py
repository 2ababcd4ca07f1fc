"""Paper fills for decision verdicts.

Orders fill at the session close of the as-of date. Fills drive the
position state machine; nothing else mutates a position.
"""

import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal

from rotation_core.decision import Decision
from rotation_core.models import (
    FillRule,
    OrderSide,
    OrderStatus,
    PaperOrder,
    PaperPosition,
    SignalType,
)
from rotation_core.state import apply_fill

logger = logging.getLogger(__name__)

_SIDES = {
    SignalType.BUY: OrderSide.BUY,
    SignalType.ADD: OrderSide.BUY,
    SignalType.TRIM: OrderSide.SELL,
    SignalType.SELL: OrderSide.SELL,
}


class PaperBroker:
    """Turns BUY/ADD/TRIM/SELL decisions into filled paper orders."""

    def __init__(self, fill_rule: FillRule = FillRule.CLOSE):
        self.fill_rule = fill_rule

    def fill(
        self,
        symbol: str,
        decision: Decision,
        position: PaperPosition | None,
        close: Decimal,
        as_of: date,
        signal_id: str | None = None,
    ) -> tuple[PaperPosition, PaperOrder] | None:
        """Fill a decision at `close`.

        Returns:
            (updated position, filled order), or None for verdicts that
            do not trade (WATCH)

        Raises:
            InvalidTransition: the verdict is not valid for the position state
        """
        side = _SIDES.get(decision.signal_type)
        if side is None or not decision.shares:
            return None

        updated = apply_fill(
            position,
            symbol,
            decision.signal_type,
            decision.shares,
            close,
            as_of,
            stop_price=decision.stop_price,
        )
        filled_at = datetime.combine(as_of, time(16, 0), tzinfo=timezone.utc)
        order = PaperOrder(
            symbol=symbol,
            side=side,
            shares=decision.shares,
            fill_rule=self.fill_rule,
            requested_price=close,
            filled_price=close,
            status=OrderStatus.FILLED,
            signal_id=signal_id,
            filled_at=filled_at,
        )
        logger.info(
            "Paper %s %s %d @ %s -> %s (%d shares)",
            decision.signal_type.value, symbol, decision.shares, close,
            updated.state.value, updated.shares,
        )
        return updated, order
