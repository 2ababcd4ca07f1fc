"""External HTTP clients."""

from rotation_app.clients.stooq import (
    StooqClient,
    build_stooq_url,
    parse_stooq_csv,
    pick_bar_for_date,
)
from rotation_app.clients.research_ai import ResearchAiClient, parse_acceleration_score

__all__ = [
    "StooqClient",
    "build_stooq_url",
    "parse_stooq_csv",
    "pick_bar_for_date",
    "ResearchAiClient",
    "parse_acceleration_score",
]
