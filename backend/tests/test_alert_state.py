"""Tests for the alert emission state machine."""

from datetime import date

from rotation_core.models import SignalType
from rotation_core.state import (
    AlertState,
    LastEmission,
    WEEKLY_DIGEST_KEY,
    evaluate_alert,
    evaluate_digest,
)

DAY = date(2024, 6, 3)


class TestAlertState:
    def test_buy_emits_once(self):
        first = evaluate_alert("NVDA", SignalType.BUY, DAY, None)
        assert first.emitted
        assert first.path == (AlertState.QUIET, AlertState.ALERT_BUY, AlertState.QUIET)
        assert first.final_state == AlertState.QUIET

        rerun = evaluate_alert("NVDA", SignalType.BUY, DAY, first.emission)
        assert not rerun.emitted
        assert rerun.suppressed

    def test_consecutive_watch_never_alerts(self):
        first = evaluate_alert("NVDA", SignalType.WATCH, DAY, None)
        second = evaluate_alert("NVDA", SignalType.WATCH, date(2024, 6, 4), first.emission)
        assert not first.emitted
        assert not second.emitted
        assert second.path == (AlertState.QUIET,)

    def test_same_type_next_day_alerts_again(self):
        previous = LastEmission("SELL", DAY)
        outcome = evaluate_alert("NVDA", "SELL", date(2024, 6, 4), previous)
        assert outcome.emitted

    def test_no_verdict(self):
        assert not evaluate_alert("NVDA", None, DAY, None).emitted

    def test_emission_round_trip(self):
        emission = LastEmission("TRIM", DAY)
        assert LastEmission.from_dict(emission.to_dict()) == emission

    def test_weekly_digest(self):
        week_end = date(2024, 6, 7)
        first = evaluate_digest(week_end, None)
        assert first.key == WEEKLY_DIGEST_KEY
        assert AlertState.ALERT_WEEKLY_DIGEST in first.path
        assert not evaluate_digest(week_end, first.emission).emitted
