"""Sector flow ranking."""

from rotation_core.sectors.ranking import (
    MIN_BARS,
    SectorInputs,
    breadth_above_ema21,
    composite_score,
    five_day_return,
    rank_sectors,
    rank_week,
    score_sector,
    top_sectors,
)

__all__ = [
    "MIN_BARS",
    "SectorInputs",
    "breadth_above_ema21",
    "composite_score",
    "five_day_return",
    "rank_sectors",
    "rank_week",
    "score_sector",
    "top_sectors",
]
