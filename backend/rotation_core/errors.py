"""Error kinds raised by the core.

All of these except ConfigurationError and InvalidTransition are local,
recoverable skip conditions: the caller logs them, counts the skip and
moves on to the next symbol.
"""


class RotationError(Exception):
    """Base class for every error raised by the engine."""


class InsufficientHistory(RotationError):
    """Not enough bars for a computation."""

    def __init__(self, symbol: str, needed: int, available: int):
        self.symbol = symbol
        self.needed = needed
        self.available = available
        super().__init__(f"{symbol}: need {needed} bars, have {available}")


class InvalidFeatureValue(RotationError):
    """A computed feature is NaN or infinite."""

    def __init__(self, symbol: str, feature: str, value: float):
        self.symbol = symbol
        self.feature = feature
        self.value = value
        super().__init__(f"{symbol}: non-finite {feature}={value}")


class MissingBenchmarkData(RotationError):
    """Benchmark close missing or zero on the as-of date."""

    def __init__(self, symbol: str, benchmark: str, as_of):
        self.symbol = symbol
        self.benchmark = benchmark
        self.as_of = as_of
        super().__init__(f"{symbol}: no {benchmark} close on {as_of}")


class InvalidAiScore(RotationError):
    """Scoring provider returned something that fails validation."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message)


class RiskRejected(RotationError):
    """Entry/stop pair yields non-positive risk or less than one share."""


class ConfigurationError(RotationError):
    """Missing or malformed configuration. Fatal at startup."""


class InvalidTransition(RotationError):
    """A state machine was asked to make a transition it does not allow."""

    def __init__(self, machine: str, state: str, event: str):
        self.machine = machine
        self.state = state
        self.event = event
        super().__init__(f"{machine}: cannot apply {event} in state {state}")
