"""Last-emitted alert per symbol, for the alert anti-spam lookup.

Data structure:
- alert:last:{symbol} -> JSON {alert_type, as_of}

The cache is a fast path only; callers fall back to the signals table
for symbols it does not know about.
"""

from __future__ import annotations

import logging

from rotation_app.storage import cache
from rotation_core.state import LastEmission

logger = logging.getLogger(__name__)


def _alert_key(symbol: str) -> str:
    return f"{cache.KEY_PREFIX_ALERT}{symbol}"


async def save_last_emission(symbol: str, emission: LastEmission) -> bool:
    """Save the last emitted alert for a symbol.

    Returns:
        True if saved successfully
    """
    if not cache.is_cache_available():
        return False

    return await cache.set_json(_alert_key(symbol), emission.to_dict())


async def load_last_emissions(symbols: list[str]) -> dict[str, LastEmission]:
    """Load last emitted alerts for many symbols in one round trip.

    Returns:
        Dict of symbol -> LastEmission, only for symbols found in cache
    """
    if not cache.is_cache_available() or not symbols:
        return {}

    found: dict[str, LastEmission] = {}
    values = await cache.mget_json([_alert_key(s) for s in symbols])
    for symbol, data in zip(symbols, values):
        if not data:
            continue
        try:
            found[symbol] = LastEmission.from_dict(data)
        except (KeyError, ValueError) as e:
            logger.warning(f"Bad alert cache entry for {symbol}: {e}")
    return found

