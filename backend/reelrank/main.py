"""
ReelRank — Main FastAPI Application

Video feed ranking engine: personalized and trending feeds, telemetry
ingestion and viewer feedback.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from reelrank.core.config import get_settings
from reelrank.core.database import init_db

settings = get_settings()

# ── Logging ──────────────────────────────────────────────────────────────

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level)
    ),
)
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

logger = structlog.get_logger()


# ── Lifespan ─────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    logger.info("Starting", app=settings.app_name, version=settings.app_version)
    await init_db()
    logger.info(
        "ReelRank ready",
        personalized_cap=settings.personalized_creator_cap,
        trending_cap=settings.trending_creator_cap,
        read_timeout=settings.feed_read_timeout_seconds,
    )

    yield

    from reelrank.core.database import engine
    await engine.dispose()
    logger.info("Shutting down ReelRank")


# ── App ──────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="Video feed ranking engine",
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── Routes ───────────────────────────────────────────────────────────────

from reelrank.api.routes import feed, feedback, telemetry

app.include_router(feed.router, prefix=settings.api_prefix)
app.include_router(telemetry.router, prefix=settings.api_prefix)
app.include_router(feedback.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "description": "Video feed ranking engine",
        "version": settings.app_version,
        "surfaces": ["personalized", "trending"],
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}
