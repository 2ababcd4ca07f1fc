"""Sector universe loaded from universe.yaml.

Supports:
- Sector definitions: benchmark ETF plus member symbols
- Macro symbols ingested daily alongside sector members
- No YAML file = the built-in growth sector catalogue
"""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator, model_validator

from rotation_core.models import SectorDefinition
from rotation_app.config import get_settings

logger = logging.getLogger(__name__)


def normalize_symbols(symbols: list[str]) -> list[str]:
    """Trim, uppercase and dedupe, keeping first-seen order."""
    seen: list[str] = []
    for symbol in symbols:
        cleaned = symbol.strip().upper()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


class SectorEntry(BaseModel):
    """A single sector entry in the YAML config."""

    name: str
    benchmark_etf: str
    symbols: list[str] = []
    enabled: bool = True

    @field_validator("benchmark_etf")
    @classmethod
    def _upper_etf(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("symbols")
    @classmethod
    def _normalize(cls, value: list[str]) -> list[str]:
        return normalize_symbols(value)

    def to_definition(self) -> SectorDefinition:
        return SectorDefinition(
            name=self.name,
            benchmark_etf=self.benchmark_etf,
            symbols=list(self.symbols),
            enabled=self.enabled,
        )


DEFAULT_SECTORS: list[SectorEntry] = [
    SectorEntry(
        name="Semiconductors / AI Hardware",
        benchmark_etf="SMH",
        symbols=["NVDA", "AMD", "AVGO", "ARM", "MU", "AMAT", "LRCX", "KLAC",
                 "ASML", "TSM", "ON", "MCHP", "MPWR", "SMCI"],
    ),
    SectorEntry(
        name="Software Infrastructure / Cloud",
        benchmark_etf="IGV",
        symbols=["MSFT", "ORCL", "SNOW", "MDB", "DDOG", "NET", "TEAM", "HUBS",
                 "NOW", "ADBE", "INTU", "CRM", "U", "AI"],
    ),
    SectorEntry(
        name="Cybersecurity",
        benchmark_etf="CIBR",
        symbols=["CRWD", "PANW", "ZS", "FTNT", "S", "OKTA", "TENB", "RPD"],
    ),
    SectorEntry(
        name="AI / Data Platforms",
        benchmark_etf="IGV",
        symbols=["PLTR", "SNOW", "MDB", "DDOG", "AI", "PATH", "ESTC"],
    ),
    SectorEntry(
        name="Internet / Platform Growth",
        benchmark_etf="QQQ",
        symbols=["AMZN", "META", "GOOGL", "UBER", "DASH", "SHOP", "MELI",
                 "ABNB", "ROKU", "SPOT"],
    ),
    SectorEntry(
        name="Biotech / High Volatility Growth",
        benchmark_etf="XBI",
        symbols=["MRNA", "VRTX", "REGN", "CRSP", "NTLA", "BEAM", "RXRX", "IOVA"],
    ),
    SectorEntry(
        name="EV / Energy Tech / Robotics",
        benchmark_etf="ARKK",
        symbols=["TSLA", "RIVN", "NIO", "LI", "ENPH", "SEDG", "QS", "CHPT"],
    ),
]

DEFAULT_MACRO_SYMBOLS = ["SPY", "QQQ", "IWM", "XBI", "SMH", "TLT", "DXY", "DRIV", "XLC"]


class UniverseConfig(BaseModel):
    """Top-level universe.yaml configuration."""

    sectors: list[SectorEntry] = DEFAULT_SECTORS
    macro_symbols: list[str] = DEFAULT_MACRO_SYMBOLS

    @model_validator(mode="after")
    def _validate(self):
        names = [s.name for s in self.sectors]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"duplicate sector names: {sorted(duplicates)}")
        self.macro_symbols = normalize_symbols(self.macro_symbols)
        return self

    def enabled_sectors(self) -> list[SectorDefinition]:
        return [s.to_definition() for s in self.sectors if s.enabled]

    def stock_symbols(self) -> list[str]:
        """Every enabled sector member, deduped."""
        return normalize_symbols(
            [sym for s in self.sectors if s.enabled for sym in s.symbols]
        )

    def etf_symbols(self) -> list[str]:
        return normalize_symbols(
            [s.benchmark_etf for s in self.sectors if s.enabled] + self.macro_symbols
        )

    def all_symbols(self) -> list[str]:
        return normalize_symbols(self.etf_symbols() + self.stock_symbols())


_DEFAULT_PATH = Path(__file__).parent.parent / "universe.yaml"


def load_universe_config(path: Path | None = None) -> UniverseConfig:
    """Load universe config from YAML file.

    Falls back to the built-in catalogue if the file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    env_path = config_path.parent / ".env"
    load_dotenv(env_path, override=False)

    if not config_path.exists():
        logger.info(
            "No universe.yaml found at %s, using built-in sectors", config_path
        )
        return UniverseConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = UniverseConfig(**raw)
    logger.info(
        "Loaded universe: %d sectors (%d enabled), %d symbols",
        len(config.sectors),
        len(config.enabled_sectors()),
        len(config.all_symbols()),
    )
    return config


@lru_cache
def get_universe_config() -> UniverseConfig:
    """Cached universe config from UNIVERSE_PATH or the default location."""
    path = get_settings().universe_path
    return load_universe_config(Path(path) if path else None)
