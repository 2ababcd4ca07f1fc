"""Stooq daily OHLCV client.

Stooq serves daily history as CSV:

    Date,Open,High,Low,Close,Volume
    2026-02-12,10,12,9,11,100
"""

import csv
import io
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from urllib.parse import quote

import httpx

from rotation_core.models import PriceBar
from rotation_app.config import get_settings

logger = logging.getLogger(__name__)


def build_stooq_url(symbol: str, base_url: str | None = None) -> str:
    """US listing URL for `symbol`, e.g. ...?s=spy.us&i=d"""
    base = base_url or get_settings().market_data_stooq_base_url
    return f"{base}?s={quote(f'{symbol.lower()}.us')}&i=d"


def _parse_number(value: str) -> Decimal | None:
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def parse_stooq_csv(symbol: str, csv_text: str) -> list[PriceBar]:
    """Parse Stooq CSV into bars.

    The header line is skipped. Rows with missing fields or values that do
    not parse as numbers are dropped, never fatal.
    """
    reader = csv.reader(io.StringIO(csv_text.strip()))
    next(reader, None)
    bars = []
    for parts in reader:
        if len(parts) < 6 or not all(p.strip() for p in parts[:6]):
            continue
        raw_date, *raw_values = (p.strip() for p in parts[:6])

        numbers = [_parse_number(v) for v in raw_values]
        if any(n is None for n in numbers):
            continue
        open_, high, low, close, volume = numbers

        try:
            bar_date = date.fromisoformat(raw_date)
        except ValueError:
            continue

        bars.append(PriceBar(
            symbol=symbol,
            date=bar_date,
            open=open_,
            high=high,
            low=low,
            close=close,
            volume=int(volume),
        ))
    return bars


def pick_bar_for_date(bars: list[PriceBar], on: date) -> PriceBar | None:
    for bar in bars:
        if bar.date == on:
            return bar
    return None


class StooqClient:
    """Fetches daily bars from Stooq. Single attempt per call."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.base_url = base_url or settings.market_data_stooq_base_url
        self.timeout = timeout or settings.market_data_timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch_daily_bars(self, symbol: str) -> list[PriceBar]:
        """Full daily history for a symbol.

        Raises:
            httpx.HTTPError: on transport failure or an error status
        """
        client = await self._get_client()
        response = await client.get(build_stooq_url(symbol, self.base_url))
        response.raise_for_status()
        bars = parse_stooq_csv(symbol, response.text)
        if not bars:
            logger.warning("Stooq returned no parseable bars for %s", symbol)
        return bars
