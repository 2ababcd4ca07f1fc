"""State machines: candidate, paper position and alert emission."""

from rotation_core.state.candidate import CandidateState, next_candidate_state
from rotation_core.state.position import (
    add_to_position,
    apply_fill,
    close_position,
    mark_position,
    open_position,
    trim_position,
)
from rotation_core.state.alert import (
    ALERT_WORTHY,
    WEEKLY_DIGEST_KEY,
    WEEKLY_DIGEST_TYPE,
    AlertOutcome,
    AlertState,
    LastEmission,
    evaluate_alert,
    evaluate_digest,
)

__all__ = [
    "CandidateState",
    "next_candidate_state",
    "add_to_position",
    "apply_fill",
    "close_position",
    "mark_position",
    "open_position",
    "trim_position",
    "ALERT_WORTHY",
    "WEEKLY_DIGEST_KEY",
    "WEEKLY_DIGEST_TYPE",
    "AlertOutcome",
    "AlertState",
    "LastEmission",
    "evaluate_alert",
    "evaluate_digest",
]
