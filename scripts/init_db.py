#!/usr/bin/env python3
"""Initialize the database, create tables and seed the sector catalogue."""

import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from rotation_app.storage.database import init_database
from rotation_app.storage.sector_repo import SectorRepository
from rotation_app.storage.settings_repo import SettingsRepository
from rotation_app.universe_config import get_universe_config


async def main():
    print("Initializing database...")
    db = await init_database()
    try:
        universe = get_universe_config()
        await SectorRepository().sync_catalogue(
            universe.enabled_sectors(), universe.etf_symbols()
        )
        settings_repo = SettingsRepository()
        await settings_repo.ensure_default()
        settings = await settings_repo.get_active()
        print("Database initialized successfully!")
        print(f"Sectors: {', '.join(s.name for s in universe.sectors)}")
        print(f"Portfolio equity: {settings.equity_usd}")
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
