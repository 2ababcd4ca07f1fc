"""Data storage layer."""

from rotation_app.storage.database import Database, get_database, init_database
from rotation_app.storage.bar_repo import BarRepository
from rotation_app.storage.indicator_repo import IndicatorRepository
from rotation_app.storage.sector_repo import SectorRepository
from rotation_app.storage.ai_score_repo import AiScoreRepository, StoredScore
from rotation_app.storage.signal_repo import SignalRepository
from rotation_app.storage.position_repo import PositionRepository
from rotation_app.storage.settings_repo import SettingsRepository
from rotation_app.storage.job_repo import JobRepository, JobRun
from rotation_app.storage import cache
from rotation_app.storage import alert_cache

__all__ = [
    "Database",
    "get_database",
    "init_database",
    "BarRepository",
    "IndicatorRepository",
    "SectorRepository",
    "AiScoreRepository",
    "StoredScore",
    "SignalRepository",
    "PositionRepository",
    "SettingsRepository",
    "JobRepository",
    "JobRun",
    "cache",
    "alert_cache",
]
