"""Business services."""

from rotation_app.services.alerts import AlertNotifier
from rotation_app.services.ai_scoring_service import AiScoringService, normalize_text, text_hash
from rotation_app.services.indicator_service import IndicatorService
from rotation_app.services.ingest_service import IngestService
from rotation_app.services.jobs import JobInProgress, JobRunner, idempotency_key
from rotation_app.services.paper_broker import PaperBroker
from rotation_app.services.sector_service import SectorService
from rotation_app.services.signal_service import SignalService

__all__ = [
    "AlertNotifier",
    "AiScoringService",
    "normalize_text",
    "text_hash",
    "IndicatorService",
    "IngestService",
    "JobInProgress",
    "JobRunner",
    "idempotency_key",
    "PaperBroker",
    "SectorService",
    "SignalService",
]
