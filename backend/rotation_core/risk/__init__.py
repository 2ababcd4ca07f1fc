"""Risk sizing."""

from rotation_core.risk.sizing import (
    PositionSize,
    derive_stop,
    size_add,
    size_for_settings,
    size_position,
)

__all__ = [
    "PositionSize",
    "derive_stop",
    "size_add",
    "size_for_settings",
    "size_position",
]
