"""Alert delivery: anti-spam lookup, broadcast, and last-emission bookkeeping."""

import logging
from datetime import date

from rotation_core.models import SignalRecord
from rotation_core.state import (
    AlertOutcome,
    LastEmission,
    WEEKLY_DIGEST_KEY,
    evaluate_digest,
)
from rotation_app.api.websocket import ConnectionManager, manager as default_manager
from rotation_app.storage import SignalRepository, alert_cache

logger = logging.getLogger(__name__)


class AlertNotifier:
    """Looks up previous emissions and delivers new alerts over WebSocket."""

    def __init__(
        self,
        connections: ConnectionManager | None = None,
        signal_repo: SignalRepository | None = None,
    ):
        self.connections = connections or default_manager
        self.signal_repo = signal_repo or SignalRepository()

    async def previous_emissions(self, symbols: list[str]) -> dict[str, LastEmission]:
        """Last emission per symbol: Redis first, then the signals table."""
        found = await alert_cache.load_last_emissions(symbols)
        missing = [s for s in symbols if s not in found]
        if missing:
            found.update(await self.signal_repo.last_alerted(missing))
        return found

    async def deliver(self, outcome: AlertOutcome, signal: SignalRecord) -> bool:
        """Send one alert produced by the alert machine."""
        if not outcome.emitted:
            return False
        await self.connections.send_alert({
            "id": signal.id,
            "symbol": signal.symbol,
            "signal_type": signal.signal_type.value,
            "as_of_date": signal.as_of_date.isoformat(),
            "shares": signal.shares,
            "confidence": signal.confidence,
            "reason": signal.reason,
        })
        await alert_cache.save_last_emission(signal.symbol, outcome.emission)
        return True

    async def notify_digest(self, week_end: date, top_sectors: list[dict]) -> bool:
        """Weekly digest, at most once per week end."""
        previous = (await alert_cache.load_last_emissions([WEEKLY_DIGEST_KEY])).get(
            WEEKLY_DIGEST_KEY
        )
        outcome = evaluate_digest(week_end, previous)
        if not outcome.emitted:
            logger.info("Weekly digest for %s already sent", week_end)
            return False
        await self.connections.send_digest({
            "weekEndDate": week_end.isoformat(),
            "topSectors": top_sectors,
        })
        await alert_cache.save_last_emission(WEEKLY_DIGEST_KEY, outcome.emission)
        return True
