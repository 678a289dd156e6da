"""FastAPI server — wires the registry, store, scheduler and query API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from healthmon.api.routes import router
from healthmon.config import Settings, settings
from healthmon.db import Database
from healthmon.prober import Prober
from healthmon.query import QueryService
from healthmon.registry import TargetRegistry, load_seed_file, parse_seed_urls
from healthmon.scheduler import ProbeScheduler
from healthmon.store import ResultStore

logger = logging.getLogger(__name__)


def seed_targets(registry: TargetRegistry, config: Settings) -> int:
    """Register SEED_URLS and the optional seed file."""
    urls = parse_seed_urls(config.seed_urls)
    if config.seed_file:
        path = Path(config.seed_file)
        if path.exists():
            try:
                urls.extend(load_seed_file(path))
            except Exception:
                logger.exception("Failed to read seed file %s", path)
        else:
            logger.warning("Seed file not found: %s", path)
    return registry.seed(urls) if urls else 0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize shared resources on startup."""
    config: Settings = app.state.settings

    # Storage (schema failure here is fatal)
    db = Database(config.database_url)
    app.state.db = db
    registry = TargetRegistry(db)
    store = ResultStore(db)
    app.state.registry = registry
    app.state.store = store
    app.state.query = QueryService(registry, store, default_limit=config.status_limit)

    seed_targets(registry, config)
    logger.info("Target registry ready: %d targets", registry.count())

    # Scheduler
    prober = Prober(user_agent=config.user_agent)
    scheduler = ProbeScheduler(
        registry,
        store,
        prober,
        interval=config.poll_interval_seconds,
        probe_timeout=config.probe_timeout,
        max_concurrency=config.max_concurrent_probes,
    )
    app.state.scheduler = scheduler
    await scheduler.start()

    logger.info("Service started")
    yield

    # Shutdown
    await scheduler.stop()
    await prober.aclose()
    db.close()


def create_app(config: Settings | None = None) -> FastAPI:
    app = FastAPI(
        title="healthmon",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = config or settings

    # The dashboard is served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        scheduler = getattr(request.app.state, "scheduler", None)
        return {
            "status": "ok",
            "targets": request.app.state.registry.count(),
            "scheduler_running": bool(scheduler and scheduler.running),
            "scheduler": scheduler.status() if scheduler else None,
        }

    return app


app = create_app()
