"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from rotation_app.api.routes import router
from rotation_app.api.websocket import manager, websocket_endpoint
from rotation_app.config import get_settings
from rotation_app.storage import SectorRepository, SettingsRepository, cache, get_database, init_database
from rotation_app.universe_config import get_universe_config

# Startup timeout in seconds
STARTUP_TIMEOUT = 60

logger = logging.getLogger(__name__)


async def bootstrap_catalogue() -> None:
    """Sync the sector catalogue and make sure a settings row exists.

    Raises:
        ConfigurationError: the portfolio settings row is malformed
    """
    universe = get_universe_config()
    await SectorRepository().sync_catalogue(universe.enabled_sectors(), universe.etf_symbols())

    settings_repo = SettingsRepository()
    await settings_repo.ensure_default()
    active = await settings_repo.get_active()
    logger.info(
        "Portfolio settings: equity=%s risk=%s cap=%s stop=%s topN=%d ai=%s",
        active.equity_usd, active.risk_per_trade_pct, active.max_position_pct,
        active.stop_rule.value, active.inflow_sector_top_n, active.require_ai_for_buy,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting sector rotation service...")

    db_initialized = False

    try:
        try:
            await asyncio.wait_for(init_database(), timeout=30)
            db_initialized = True
            logger.info("Database initialized")
        except asyncio.TimeoutError:
            raise RuntimeError("Database initialization timed out after 30s")

        try:
            await asyncio.wait_for(cache.init_cache(), timeout=10)
            if cache.is_cache_available():
                logger.info("Redis cache initialized")
            else:
                logger.warning("Redis cache unavailable - running without caching")
        except asyncio.TimeoutError:
            logger.warning("Redis cache initialization timed out - running without caching")

        await asyncio.wait_for(bootstrap_catalogue(), timeout=STARTUP_TIMEOUT)

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        await cache.close_cache()
        if db_initialized:
            await get_database().close()
        raise

    yield

    logger.info("Shutting down...")
    await cache.close_cache()
    try:
        await get_database().close()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database: {e}")
    logger.info("Shutdown complete")


app = FastAPI(
    title="Sector Rotation Signals",
    description="Daily indicators, weekly sector ranks and rule-based paper signals",
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed job payloads answer 400 in the job envelope."""
    messages = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return ORJSONResponse(
        {"ok": False, "error": "; ".join(messages) or "Invalid request"},
        status_code=400,
    )


app.include_router(router, prefix="/api")

app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    return {
        "name": "Sector Rotation Signals",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "cache": await cache.ping(),
        "websocket_clients": manager.connection_count,
    }


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "rotation_app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
