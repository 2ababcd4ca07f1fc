"""REST API routes.

Job endpoints answer {"ok": true, "data": ...} on success and
{"ok": false, "error": ...} with a 4xx/5xx status on failure.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, ConfigDict, Field

from rotation_core.errors import ConfigurationError, InvalidAiScore
from rotation_core.indicators import DEFAULT_LOOKBACK_DAYS
from rotation_core.models import DocType, SectorMetric, SignalType
from rotation_app.services import (
    AiScoringService,
    IndicatorService,
    IngestService,
    JobInProgress,
    JobRunner,
    SectorService,
    SignalService,
)
from rotation_app.storage import PositionRepository, SectorRepository, SignalRepository, cache
from rotation_app.universe_config import UniverseConfig, get_universe_config

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request / response models
# =============================================================================

class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DailyIngestRequest(_Request):
    as_of_date: date = Field(alias="asOfDate")
    symbols: list[str] = []
    force: bool = False
    backfill: bool = False


class ComputeIndicatorsRequest(_Request):
    as_of_date: date = Field(alias="asOfDate")
    symbols: list[str] = []
    lookback_days: int = Field(default=DEFAULT_LOOKBACK_DAYS, alias="lookbackDays", ge=2, le=2000)


class WeeklySectorRankRequest(_Request):
    week_end_date: date = Field(alias="weekEndDate")
    benchmark: Optional[str] = None
    top_n: Optional[int] = Field(default=None, alias="topN", ge=1)


class ScoreDocumentRequest(_Request):
    symbol: str = Field(min_length=1)
    doc_type: DocType = Field(default=DocType.MANUAL, alias="docType")
    text: str = Field(min_length=1)
    published_at: Optional[datetime] = Field(default=None, alias="publishedAt")
    force: bool = False
    source_meta: dict[str, Any] = Field(default_factory=dict, alias="sourceMeta")


class EvaluateSignalsRequest(_Request):
    as_of_date: date = Field(alias="asOfDate")
    symbols: list[str] = []


class SignalResponse(BaseModel):
    id: str
    symbol: str
    signal_type: str
    as_of_date: date
    confidence: Optional[float] = None
    shares: Optional[int] = None
    reason: dict[str, Any]
    created_at: datetime
    sent_at: Optional[datetime] = None


class PositionResponse(BaseModel):
    symbol: str
    state: str
    shares: int
    avg_entry: Optional[float] = None
    stop_price: Optional[float] = None
    opened_at: Optional[date] = None
    last_mark_price: Optional[float] = None


class SectorRankResponse(BaseModel):
    sector: str
    rank: int
    score: float
    etf_symbol: str
    rel_strength_5d: float
    breadth_above_ema21: float
    etf_dollar_vol_z: float


# =============================================================================
# Dependencies
# =============================================================================

def get_job_runner() -> JobRunner:
    return JobRunner()


def get_ingest_service() -> IngestService:
    return IngestService()


def get_indicator_service() -> IndicatorService:
    return IndicatorService()


def get_sector_service() -> SectorService:
    return SectorService()


def get_scoring_service() -> AiScoringService:
    return AiScoringService()


def get_signal_service() -> SignalService:
    return SignalService()


def get_signal_repo() -> SignalRepository:
    return SignalRepository()


def get_position_repo() -> PositionRepository:
    return PositionRepository()


def get_sector_repo() -> SectorRepository:
    return SectorRepository()


# =============================================================================
# Helpers
# =============================================================================

def ok(data: Any) -> ORJSONResponse:
    return ORJSONResponse({"ok": True, "data": data})


def error(message: str, status_code: int = 400, **extra) -> ORJSONResponse:
    return ORJSONResponse({"ok": False, "error": message, **extra}, status_code=status_code)


async def _run_job(
    runner: JobRunner,
    job_name: str,
    payload: BaseModel,
    handler,
    key: str | None,
) -> ORJSONResponse:
    body = payload.model_dump(mode="json", by_alias=True)
    try:
        result, replayed = await runner.run(job_name, body, handler, key=key)
    except JobInProgress as e:
        return error(str(e), status_code=409)
    except InvalidAiScore as e:
        return error(str(e), errors=e.errors)
    except ConfigurationError as e:
        logger.error("Job %s misconfigured: %s", job_name, e)
        return error(str(e), status_code=500)
    except httpx.HTTPError as e:
        logger.warning("Job %s upstream failure: %s", job_name, e)
        return error(f"Upstream request failed: {e}", status_code=502)
    if replayed:
        result = {**result, "replayed": True}
    return ok(result)


def _symbols_or_universe(symbols: list[str], universe: UniverseConfig) -> list[str]:
    return symbols or universe.all_symbols()


# =============================================================================
# Job endpoints
# =============================================================================

@router.post("/jobs/daily-ingest")
async def daily_ingest(
    request: DailyIngestRequest,
    idempotency_key: Optional[str] = Header(None),
    runner: JobRunner = Depends(get_job_runner),
    service: IngestService = Depends(get_ingest_service),
    universe: UniverseConfig = Depends(get_universe_config),
):
    """Fetch and store the daily bar for each symbol."""
    symbols = _symbols_or_universe(request.symbols, universe)
    return await _run_job(
        runner, "daily-ingest", request,
        lambda: service.run(request.as_of_date, symbols, request.force, request.backfill),
        idempotency_key,
    )


@router.post("/jobs/compute-indicators")
async def compute_indicators(
    request: ComputeIndicatorsRequest,
    idempotency_key: Optional[str] = Header(None),
    runner: JobRunner = Depends(get_job_runner),
    service: IndicatorService = Depends(get_indicator_service),
    universe: UniverseConfig = Depends(get_universe_config),
):
    """Compute indicator rows for the date."""
    symbols = _symbols_or_universe(request.symbols, universe)
    return await _run_job(
        runner, "compute-indicators", request,
        lambda: service.run(request.as_of_date, symbols, request.lookback_days),
        idempotency_key,
    )


@router.post("/jobs/weekly-sector-rank")
async def weekly_sector_rank(
    request: WeeklySectorRankRequest,
    idempotency_key: Optional[str] = Header(None),
    runner: JobRunner = Depends(get_job_runner),
    service: SectorService = Depends(get_sector_service),
):
    """Score and rank all enabled sectors for the week."""
    return await _run_job(
        runner, "weekly-sector-rank", request,
        lambda: service.run(request.week_end_date, request.benchmark, request.top_n),
        idempotency_key,
    )


@router.post("/jobs/score-document")
async def score_document(
    request: ScoreDocumentRequest,
    idempotency_key: Optional[str] = Header(None),
    runner: JobRunner = Depends(get_job_runner),
    service: AiScoringService = Depends(get_scoring_service),
):
    """Score a document, reusing the stored score for identical text."""
    return await _run_job(
        runner, "score-document", request,
        lambda: service.score_document(
            request.symbol,
            request.doc_type,
            request.text,
            published_at=request.published_at,
            force=request.force,
            source_meta=request.source_meta,
        ),
        idempotency_key,
    )


@router.post("/jobs/evaluate-signals")
async def evaluate_signals(
    request: EvaluateSignalsRequest,
    idempotency_key: Optional[str] = Header(None),
    runner: JobRunner = Depends(get_job_runner),
    service: SignalService = Depends(get_signal_service),
):
    """Run the decision engine for the date."""
    return await _run_job(
        runner, "evaluate-signals", request,
        lambda: service.run(request.as_of_date, request.symbols or None),
        idempotency_key,
    )


# =============================================================================
# Read endpoints
# =============================================================================

@router.get("/signals", response_model=list[SignalResponse])
async def get_signals(
    symbol: Optional[str] = Query(None, description="Filter by symbol"),
    signal_type: Optional[SignalType] = Query(None, alias="type", description="Filter by type"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum signals to return"),
    repo: SignalRepository = Depends(get_signal_repo),
):
    """Get recent signals."""
    signals = await repo.get_recent(limit=limit, symbol=symbol.upper() if symbol else None,
                                    signal_type=signal_type)
    return [
        SignalResponse(
            id=s.id,
            symbol=s.symbol,
            signal_type=s.signal_type.value,
            as_of_date=s.as_of_date,
            confidence=s.confidence,
            shares=s.shares,
            reason=s.reason,
            created_at=s.created_at,
            sent_at=s.sent_at,
        )
        for s in signals
    ]


@router.get("/positions", response_model=list[PositionResponse])
async def get_positions(repo: PositionRepository = Depends(get_position_repo)):
    """Get open paper positions."""
    positions = await repo.get_open()
    return [
        PositionResponse(
            symbol=p.symbol,
            state=p.state.value,
            shares=p.shares,
            avg_entry=float(p.avg_entry) if p.avg_entry is not None else None,
            stop_price=float(p.stop_price) if p.stop_price is not None else None,
            opened_at=p.opened_at,
            last_mark_price=float(p.last_mark_price) if p.last_mark_price is not None else None,
        )
        for p in positions
    ]


async def _cached_ranks(week_end_date: Optional[date]) -> list[SectorMetric] | None:
    cached = await cache.get_json(cache.KEY_SECTOR_RANKS)
    if not cached:
        return None
    if week_end_date and cached.get("weekEndDate") != week_end_date.isoformat():
        return None
    return [SectorMetric.model_validate(r) for r in cached.get("ranks", [])]


@router.get("/sectors/ranks", response_model=list[SectorRankResponse])
async def get_sector_ranks(
    week_end_date: Optional[date] = Query(None, alias="weekEndDate"),
    repo: SectorRepository = Depends(get_sector_repo),
):
    """Get the sector ranks for a week (latest week if omitted)."""
    metrics = await _cached_ranks(week_end_date)
    if metrics is None and week_end_date:
        metrics = await repo.get_week(week_end_date)
    elif metrics is None:
        metrics = await repo.latest_ranks(date.today())
    return [
        SectorRankResponse(
            sector=m.sector_name,
            rank=m.rank,
            score=m.score,
            etf_symbol=m.etf_symbol,
            rel_strength_5d=m.rel_strength_5d,
            breadth_above_ema21=m.breadth_above_ema21,
            etf_dollar_vol_z=m.etf_dollar_vol_z,
        )
        for m in metrics
    ]
