"""Per-symbol candidate state machine.

States are derived from the current run's gate values. Only IN_POSITION
carries over between runs: once a BUY fills, the position lifecycle owns
the symbol until that position closes.
"""

from enum import Enum

from rotation_core.decision.gates import GateValues


class CandidateState(str, Enum):
    IGNORE = "IGNORE"
    WATCH = "WATCH"
    READY_TO_BUY = "READY_TO_BUY"
    IN_POSITION = "IN_POSITION"


def next_candidate_state(
    previous: CandidateState | None,
    gates: GateValues,
    in_position: bool = False,
    buy_filled: bool = False,
) -> CandidateState:
    """Advance one symbol's candidate state for this run.

    Args:
        previous: State from the last run, or None for a new symbol
        gates: Gate values for this run
        in_position: Whether the symbol has an open paper position
        buy_filled: Whether a BUY filled for the symbol in this run
    """
    if buy_filled or in_position:
        return CandidateState.IN_POSITION

    # A closed position ends the lifecycle; evaluate afresh
    if previous in (None, CandidateState.IN_POSITION):
        previous = CandidateState.IGNORE

    if gates.all_pass:
        return CandidateState.READY_TO_BUY

    if previous == CandidateState.READY_TO_BUY:
        # Any regression steps back to WATCH first
        return CandidateState.WATCH

    if gates.watch_ready:
        return CandidateState.WATCH

    return CandidateState.IGNORE
