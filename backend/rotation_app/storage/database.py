"""Database connection and table definitions."""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from rotation_app.config import get_settings

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class SectorTable(Base):
    """Sector catalogue."""

    __tablename__ = "sectors"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False, unique=True)
    benchmark_etf = Column(String(20), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))


class SectorMemberTable(Base):
    """Sector membership."""

    __tablename__ = "sector_members"

    sector_id = Column(String(36), ForeignKey("sectors.id", ondelete="CASCADE"), primary_key=True)
    symbol = Column(String(20), primary_key=True)
    source = Column(String(20), nullable=False, default="manual")  # manual | etf_holdings | classifier
    enabled = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_sector_members_symbol", "symbol"),
    )


class UniverseTable(Base):
    """Tracked symbols."""

    __tablename__ = "universe"

    symbol = Column(String(20), primary_key=True)
    type = Column(String(10), nullable=False)  # stock | etf
    enabled = Column(Boolean, nullable=False, default=True)
    meta_json = Column(JSONB, nullable=True)


class PriceBarTable(Base):
    """Daily OHLCV bars."""

    __tablename__ = "price_bars_daily"

    symbol = Column(String(20), primary_key=True)
    date = Column(Date, primary_key=True)
    open = Column(Numeric(18, 6), nullable=False)
    high = Column(Numeric(18, 6), nullable=False)
    low = Column(Numeric(18, 6), nullable=False)
    close = Column(Numeric(18, 6), nullable=False)
    volume = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_price_bars_date", "date"),
    )


class IndicatorTable(Base):
    """Daily indicators, one row per (symbol, date)."""

    __tablename__ = "indicators_daily"

    symbol = Column(String(20), primary_key=True)
    date = Column(Date, primary_key=True)
    ema21 = Column(Float, nullable=False)
    ema50 = Column(Float, nullable=False)
    ema200 = Column(Float, nullable=False)
    atr_pct = Column(Float, nullable=False)
    rs_vs_spy = Column(Float, nullable=False)
    rs_slope_10d = Column(Float, nullable=False)
    volume_z = Column(Float, nullable=False)
    dollar_vol = Column(Float, nullable=False)

    __table_args__ = (
        Index("idx_indicators_date", "date"),
    )


class SectorMetricTable(Base):
    """Weekly sector flow metrics and ranks."""

    __tablename__ = "sector_metrics_weekly"

    sector_id = Column(String(36), ForeignKey("sectors.id", ondelete="CASCADE"), primary_key=True)
    week_end_date = Column(Date, primary_key=True)
    etf_symbol = Column(String(20), nullable=False)
    bench_symbol = Column(String(20), nullable=False)
    etf_5d_return = Column(Float, nullable=False)
    bench_5d_return = Column(Float, nullable=False)
    rel_strength_5d = Column(Float, nullable=False)
    etf_dollar_vol_z = Column(Float, nullable=False)
    breadth_above_ema21 = Column(Float, nullable=False)
    score = Column(Float, nullable=False)
    rank = Column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_sector_metrics_week_rank", "week_end_date", "rank", unique=True),
    )


class AiDocumentTable(Base):
    """Source documents submitted for AI scoring."""

    __tablename__ = "ai_documents"

    id = Column(String(36), primary_key=True, default=_uuid)
    symbol = Column(String(20), nullable=False)
    doc_type = Column(String(20), nullable=False)  # earnings | news_batch | manual
    published_at = Column(DateTime(timezone=True), nullable=True)
    raw_text_hash = Column(String(64), nullable=False, unique=True)
    raw_text = Column(Text, nullable=False)
    source_meta_json = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))

    __table_args__ = (
        Index("idx_ai_documents_symbol", "symbol"),
    )


class AiScoreTable(Base):
    """AI scores, content-addressed by the document's text hash."""

    __tablename__ = "ai_scores"

    id = Column(String(36), primary_key=True, default=_uuid)
    ai_document_id = Column(String(36), ForeignKey("ai_documents.id", ondelete="CASCADE"), nullable=False)
    raw_text_hash = Column(String(64), nullable=False)
    symbol = Column(String(20), nullable=False)
    score_type = Column(String(20), nullable=False, default="acceleration")
    json_result = Column(JSONB, nullable=False)
    growth_phase = Column(String(30), nullable=False)
    conviction = Column(Integer, nullable=False)
    hype_risk = Column(String(10), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))

    __table_args__ = (
        Index("idx_ai_scores_hash_type", "raw_text_hash", "score_type", unique=True),
        Index("idx_ai_scores_symbol_created", "symbol", "created_at"),
    )


class SignalTable(Base):
    """Append-only signal facts."""

    __tablename__ = "signals"

    id = Column(String(36), primary_key=True)
    symbol = Column(String(20), nullable=False)
    signal_type = Column(String(10), nullable=False)  # BUY | WATCH | SELL | ADD | TRIM
    as_of_date = Column(Date, nullable=False)
    reason_json = Column(JSONB, nullable=False)
    confidence = Column(Float, nullable=True)
    shares = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))
    sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_signals_symbol_date", "symbol", "as_of_date"),
        Index("idx_signals_type", "signal_type"),
    )


class CandidateStateTable(Base):
    """Last candidate state per symbol (derived, not a source of truth)."""

    __tablename__ = "candidate_states"

    symbol = Column(String(20), primary_key=True)
    state = Column(String(20), nullable=False)
    as_of_date = Column(Date, nullable=False)
    last_ai_score_id = Column(String(36), nullable=True)


class PaperPositionTable(Base):
    """One live paper position row per symbol."""

    __tablename__ = "paper_positions"

    symbol = Column(String(20), primary_key=True)
    state = Column(String(10), nullable=False)  # FLAT | OPEN | TRIMMED | CLOSED
    shares = Column(Integer, nullable=False, default=0)
    avg_entry = Column(Numeric(18, 6), nullable=True)
    stop_price = Column(Numeric(18, 6), nullable=True)
    opened_at = Column(Date, nullable=True)
    closed_at = Column(Date, nullable=True)
    last_mark_price = Column(Numeric(18, 6), nullable=True)
    pnl_json = Column(JSONB, nullable=True)


class PaperOrderTable(Base):
    """Paper orders and their fills."""

    __tablename__ = "paper_orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    symbol = Column(String(20), nullable=False)
    side = Column(String(4), nullable=False)  # buy | sell
    order_type = Column(String(10), nullable=False, default="market")
    shares = Column(Integer, nullable=False)
    requested_fill_rule = Column(String(10), nullable=False, default="close")
    requested_price = Column(Numeric(18, 6), nullable=True)
    filled_price = Column(Numeric(18, 6), nullable=True)
    status = Column(String(10), nullable=False, default="created")
    signal_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))
    filled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_paper_orders_symbol", "symbol"),
        Index("idx_paper_orders_signal", "signal_id", unique=True),
    )


class PortfolioSettingsTable(Base):
    """Single active portfolio settings row."""

    __tablename__ = "portfolio_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    equity_usd = Column(Numeric(18, 2), nullable=False)
    risk_per_trade_pct = Column(Numeric(6, 4), nullable=False, default=0.01)
    max_position_pct = Column(Numeric(6, 4), nullable=False, default=0.2)
    entry_fill_rule = Column(String(10), nullable=False, default="close")
    stop_rule = Column(String(20), nullable=False, default="pct_12")
    inflow_sector_top_n = Column(Integer, nullable=False, default=2)
    require_ai_for_buy = Column(Boolean, nullable=False, default=True)
    add_rule_enabled = Column(Boolean, nullable=False, default=True)
    trim_rule_enabled = Column(Boolean, nullable=False, default=True)
    extra_json = Column(JSONB, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=text("NOW()"), onupdate=text("NOW()"))


class JobRunTable(Base):
    """Job invocations keyed by idempotency key."""

    __tablename__ = "job_runs"

    idempotency_key = Column(String(64), primary_key=True)
    job_name = Column(String(100), nullable=False)
    payload_json = Column(JSONB, nullable=False)
    status = Column(String(10), nullable=False)  # running | done | failed
    result_json = Column(JSONB, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))
    finished_at = Column(DateTime(timezone=True), nullable=True)


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        settings = get_settings()
        url = database_url or settings.database_url

        # Convert postgresql:// to postgresql+asyncpg://
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

        # Jobs fan out per symbol, bounded by max_concurrency
        self.engine = create_async_engine(
            url,
            echo=settings.debug,
            pool_size=settings.max_concurrency,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_timeout=30,
            connect_args={
                "timeout": 10,
                "command_timeout": 60,
            },
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session; commits on success, rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()


# Global database instance
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


async def init_database() -> Database:
    """Initialize the database and create tables."""
    db = get_database()
    await db.create_tables()
    return db
