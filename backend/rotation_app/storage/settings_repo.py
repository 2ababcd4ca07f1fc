"""Portfolio settings repository."""

import logging
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy import select

from rotation_core.errors import ConfigurationError
from rotation_core.models import PortfolioSettings
from rotation_app.storage.database import PortfolioSettingsTable, get_database

logger = logging.getLogger(__name__)


class SettingsRepository:
    """Reads the single active portfolio settings row."""

    async def get_active(self) -> PortfolioSettings:
        """Load and validate the active settings.

        Raises:
            ConfigurationError: no settings row, or the row fails validation
        """
        async with get_database().session() as session:
            result = await session.execute(
                select(PortfolioSettingsTable)
                .order_by(PortfolioSettingsTable.updated_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()

        if row is None:
            raise ConfigurationError("No portfolio_settings row found")

        try:
            return PortfolioSettings(
                equity_usd=row.equity_usd,
                risk_per_trade_pct=row.risk_per_trade_pct,
                max_position_pct=row.max_position_pct,
                stop_rule=row.stop_rule,
                inflow_sector_top_n=row.inflow_sector_top_n,
                require_ai_for_buy=row.require_ai_for_buy,
                add_rule_enabled=row.add_rule_enabled,
                trim_rule_enabled=row.trim_rule_enabled,
                **(row.extra_json or {}),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid portfolio_settings row: {e}") from e

    async def ensure_default(self, equity_usd: Decimal = Decimal("100000")) -> None:
        """Insert a default settings row if none exists."""
        async with get_database().session() as session:
            existing = (
                await session.execute(select(PortfolioSettingsTable.id).limit(1))
            ).scalar_one_or_none()
            if existing is not None:
                return
            defaults = PortfolioSettings(equity_usd=equity_usd)
            session.add(PortfolioSettingsTable(
                equity_usd=defaults.equity_usd,
                risk_per_trade_pct=defaults.risk_per_trade_pct,
                max_position_pct=defaults.max_position_pct,
                stop_rule=defaults.stop_rule.value,
                inflow_sector_top_n=defaults.inflow_sector_top_n,
                require_ai_for_buy=defaults.require_ai_for_buy,
                add_rule_enabled=defaults.add_rule_enabled,
                trim_rule_enabled=defaults.trim_rule_enabled,
                extra_json={},
            ))
        logger.info("Inserted default portfolio settings (equity=%s)", equity_usd)
