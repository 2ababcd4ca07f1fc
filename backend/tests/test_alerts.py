"""Tests for alert delivery and the last-emission lookup."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rotation_core.models import SignalRecord, SignalType
from rotation_core.state import LastEmission, WEEKLY_DIGEST_KEY, evaluate_alert
from rotation_app.services.alerts import AlertNotifier
from rotation_app.storage import alert_cache

DAY = date(2024, 6, 3)


def make_notifier(db_emissions=None):
    connections = MagicMock()
    connections.send_alert = AsyncMock()
    connections.send_digest = AsyncMock()
    signal_repo = MagicMock()
    signal_repo.last_alerted = AsyncMock(return_value=db_emissions or {})
    return AlertNotifier(connections=connections, signal_repo=signal_repo), connections, signal_repo


class TestPreviousEmissions:
    @pytest.mark.asyncio
    async def test_cache_then_database(self):
        notifier, _, signal_repo = make_notifier({"AMD": LastEmission("SELL", DAY)})
        cached = {"NVDA": LastEmission("BUY", DAY)}

        with patch.object(alert_cache, "load_last_emissions", AsyncMock(return_value=cached)):
            found = await notifier.previous_emissions(["NVDA", "AMD"])

        assert found == {"NVDA": LastEmission("BUY", DAY), "AMD": LastEmission("SELL", DAY)}
        signal_repo.last_alerted.assert_awaited_once_with(["AMD"])

    @pytest.mark.asyncio
    async def test_all_cached_skips_database(self):
        notifier, _, signal_repo = make_notifier()
        cached = {"NVDA": LastEmission("BUY", DAY)}

        with patch.object(alert_cache, "load_last_emissions", AsyncMock(return_value=cached)):
            await notifier.previous_emissions(["NVDA"])

        signal_repo.last_alerted.assert_not_awaited()


class TestDeliver:
    @pytest.mark.asyncio
    async def test_emitted_alert_sent_and_remembered(self):
        notifier, connections, _ = make_notifier()
        signal = SignalRecord(symbol="NVDA", signal_type=SignalType.BUY, as_of_date=DAY, shares=26)
        outcome = evaluate_alert("NVDA", SignalType.BUY, DAY, None)

        with patch.object(alert_cache, "save_last_emission", AsyncMock(return_value=True)) as save:
            sent = await notifier.deliver(outcome, signal)

        assert sent
        payload = connections.send_alert.await_args.args[0]
        assert payload["symbol"] == "NVDA"
        assert payload["signal_type"] == "BUY"
        assert payload["shares"] == 26
        save.assert_awaited_once_with("NVDA", LastEmission("BUY", DAY))

    @pytest.mark.asyncio
    async def test_suppressed_alert_not_sent(self):
        notifier, connections, _ = make_notifier()
        signal = SignalRecord(symbol="NVDA", signal_type=SignalType.BUY, as_of_date=DAY)
        outcome = evaluate_alert("NVDA", SignalType.BUY, DAY, LastEmission("BUY", DAY))

        assert not await notifier.deliver(outcome, signal)
        connections.send_alert.assert_not_awaited()


class TestDigest:
    @pytest.mark.asyncio
    async def test_digest_once_per_week(self):
        notifier, connections, _ = make_notifier()
        week_end = date(2024, 6, 7)
        previous = {WEEKLY_DIGEST_KEY: LastEmission("WEEKLY_DIGEST", week_end)}

        with patch.object(alert_cache, "load_last_emissions", AsyncMock(return_value={})), \
                patch.object(alert_cache, "save_last_emission", AsyncMock(return_value=True)):
            assert await notifier.notify_digest(week_end, [{"sector": "Semis", "rank": 1}])

        with patch.object(alert_cache, "load_last_emissions", AsyncMock(return_value=previous)):
            assert not await notifier.notify_digest(week_end, [])

        connections.send_digest.assert_awaited_once()
