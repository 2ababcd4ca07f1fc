"""Sector catalogue and weekly metric models."""

from datetime import date
from pydantic import BaseModel, ConfigDict, Field


class SectorDefinition(BaseModel):
    """A sector: benchmark ETF plus member symbols."""

    model_config = ConfigDict(frozen=True)

    name: str
    benchmark_etf: str
    symbols: list[str] = Field(default_factory=list)
    enabled: bool = True
    id: str | None = None


class SectorMetric(BaseModel):
    """Weekly flow metric for one sector.

    rank is None until the whole cohort for the week has been scored.
    """

    sector_id: str
    sector_name: str = ""
    week_end_date: date
    etf_symbol: str
    bench_symbol: str
    etf_5d_return: float
    bench_5d_return: float
    rel_strength_5d: float
    etf_dollar_vol_z: float
    breadth_above_ema21: float
    score: float
    rank: int | None = None
