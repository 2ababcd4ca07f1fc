"""Alert emission state machine.

Each alert-worthy verdict moves QUIET -> ALERT_<type> -> QUIET inside a
single evaluation. WATCH never alerts. The previous emission for the
symbol is passed in explicitly and an identical re-emission (same type,
same as-of date) is suppressed, so re-running a day does not re-notify.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from rotation_core.models import SignalType

WEEKLY_DIGEST_KEY = "__weekly_digest__"
WEEKLY_DIGEST_TYPE = "WEEKLY_DIGEST"


class AlertState(str, Enum):
    QUIET = "QUIET"
    ALERT_BUY = "ALERT_BUY"
    ALERT_SELL = "ALERT_SELL"
    ALERT_ADD = "ALERT_ADD"
    ALERT_TRIM = "ALERT_TRIM"
    ALERT_WEEKLY_DIGEST = "ALERT_WEEKLY_DIGEST"


ALERT_WORTHY = {
    SignalType.BUY.value: AlertState.ALERT_BUY,
    SignalType.SELL.value: AlertState.ALERT_SELL,
    SignalType.ADD.value: AlertState.ALERT_ADD,
    SignalType.TRIM.value: AlertState.ALERT_TRIM,
    WEEKLY_DIGEST_TYPE: AlertState.ALERT_WEEKLY_DIGEST,
}


@dataclass(frozen=True)
class LastEmission:
    """The most recent alert emitted for a key."""

    alert_type: str
    as_of: date

    def to_dict(self) -> dict:
        return {"alert_type": self.alert_type, "as_of": self.as_of.isoformat()}

    @classmethod
    def from_dict(cls, data: dict) -> "LastEmission":
        return cls(alert_type=data["alert_type"], as_of=date.fromisoformat(data["as_of"]))


@dataclass(frozen=True)
class AlertOutcome:
    """Result of one evaluation.

    `path` is the sequence of states visited; `emission` is set only when
    an alert should be sent and becomes the key's new LastEmission.
    """

    key: str
    path: tuple[AlertState, ...]
    emission: LastEmission | None = None
    suppressed: bool = False

    @property
    def emitted(self) -> bool:
        return self.emission is not None

    @property
    def final_state(self) -> AlertState:
        return self.path[-1]


def evaluate_alert(
    key: str,
    alert_type: str | SignalType | None,
    as_of: date,
    previous: LastEmission | None,
) -> AlertOutcome:
    """Decide whether `alert_type` for `key` on `as_of` produces an alert."""
    if isinstance(alert_type, SignalType):
        alert_type = alert_type.value

    target = ALERT_WORTHY.get(alert_type) if alert_type else None
    if target is None:
        return AlertOutcome(key, (AlertState.QUIET,))

    emission = LastEmission(alert_type, as_of)
    if previous == emission:
        return AlertOutcome(key, (AlertState.QUIET,), suppressed=True)

    return AlertOutcome(
        key, (AlertState.QUIET, target, AlertState.QUIET), emission=emission
    )


def evaluate_digest(week_end: date, previous: LastEmission | None) -> AlertOutcome:
    return evaluate_alert(WEEKLY_DIGEST_KEY, WEEKLY_DIGEST_TYPE, week_end, previous)
