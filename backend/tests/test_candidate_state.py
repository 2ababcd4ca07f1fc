"""Tests for the per-symbol candidate state machine."""

from rotation_core.decision import GateValues
from rotation_core.state import CandidateState, next_candidate_state


def gates(inflow=True, ai_ok=True, trend=True, risk_on=True, liquidity=True):
    return GateValues(
        inflow=inflow,
        ai_ok=ai_ok,
        ai_present=ai_ok,
        trend_confirmed=trend,
        risk_on=risk_on,
        liquidity=liquidity,
    )


class TestCandidateState:
    def test_new_symbol_all_gates_ready(self):
        assert next_candidate_state(None, gates()) == CandidateState.READY_TO_BUY

    def test_new_symbol_partial_gates_watch(self):
        assert next_candidate_state(None, gates(trend=False)) == CandidateState.WATCH

    def test_outside_inflow_ignored(self):
        assert next_candidate_state(CandidateState.WATCH, gates(inflow=False)) == CandidateState.IGNORE

    def test_ready_regresses_to_watch_first(self):
        result = next_candidate_state(CandidateState.READY_TO_BUY, gates(inflow=False))
        assert result == CandidateState.WATCH

    def test_watch_regresses_to_ignore(self):
        result = next_candidate_state(CandidateState.WATCH, gates(ai_ok=False))
        assert result == CandidateState.IGNORE

    def test_buy_fill_moves_to_in_position(self):
        result = next_candidate_state(CandidateState.READY_TO_BUY, gates(), buy_filled=True)
        assert result == CandidateState.IN_POSITION

    def test_never_leaves_in_position_while_open(self):
        for g in (gates(), gates(inflow=False), gates(ai_ok=False, trend=False)):
            result = next_candidate_state(CandidateState.IN_POSITION, g, in_position=True)
            assert result == CandidateState.IN_POSITION

    def test_closed_position_restarts_lifecycle(self):
        result = next_candidate_state(CandidateState.IN_POSITION, gates(trend=False))
        assert result == CandidateState.WATCH
