"""
Main FastAPI application for the Futsal League Statistics Engine.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from futsal_league.api.errors import register_exception_handlers
from futsal_league.api.rate_limit import limiter
from futsal_league.api.routes import fair_play, matches, players, seasons, standings, teams
from futsal_league.core.config import settings
from futsal_league.core.database import SessionLocal, init_db
from futsal_league.core.logging import configure_logging, get_logger
from futsal_league.core.middleware import CorrelationIdMiddleware

# Configure structured logging with JSON formatter
configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Match duration: {settings.MATCH_DURATION_MINUTES} minutes")

    # checkfirst: only missing tables are created
    init_db()
    logger.info("Application started")

    yield

    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Match result application, statistics maintenance and league standings for futsal leagues",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

# Add correlation ID middleware (must be added before CORS for proper header handling)
app.add_middleware(CorrelationIdMiddleware)

# Prometheus metrics must be initialized before routes are added
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(matches.router)
app.include_router(teams.router)
app.include_router(players.router)
app.include_router(seasons.router)
app.include_router(standings.router)
app.include_router(fair_play.router)


@app.get("/")
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "matches": "/api/matches",
            "teams": "/api/teams",
            "players": "/api/players",
            "seasons": "/api/seasons",
            "standings": "/api/standings",
            "fair_play": "/api/fair-play",
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        },
    }


@app.get("/health")
def health_check():
    """Health check endpoint with database connectivity."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "match_duration_minutes": settings.MATCH_DURATION_MINUTES,
        "components": {},
    }

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = {"status": "connected"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "unhealthy"
    finally:
        db.close()

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=health_status)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("futsal_league.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
