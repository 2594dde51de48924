"""
ChemDrill Server - Quiz session engine over HTTP

FastAPI server with:
- Question pools from cache, remote endpoint or bundled datasets
- Drill sessions (batch ranges, shuffle, streak scoring)
- Per-range leaderboards and learner summary
- Durable storage in a JSON file, memory or AgentFS
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chemdrill import __version__
from chemdrill.config import DrillConfig, configure_logging
from chemdrill.engine import DrillEngine
from chemdrill.loader import FallbackDatasets, RemotePoolLoader
from chemdrill.router import router as drill_router
from chemdrill.storage import (
    CacheStore,
    HistoryStore,
    SessionLogStore,
    SessionStore,
    create_kv_backend,
)

logger = logging.getLogger(__name__)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8001",
]


# =============================================================================
# FASTAPI APP
# =============================================================================


def create_app(config: DrillConfig | None = None) -> FastAPI:
    """Build the app. Config defaults to CHEMDRILL_* environment variables."""
    config = config or DrillConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage app lifecycle."""
        configure_logging(config.log_level)
        kv, agentfs = await create_kv_backend(config)

        cache = CacheStore(kv, namespace=config.cache_namespace, ttl_seconds=config.pool_ttl)
        loader = RemotePoolLoader(cache, config, fallback=FallbackDatasets())
        engine = DrillEngine(
            loader,
            HistoryStore(kv, cap=config.history_cap),
            session_logs=SessionLogStore(kv, cache=cache, ttl=config.aggregate_ttl),
            choice_count=config.choice_count,
            session_store=SessionStore(kv, ttl=config.session_ttl, max_results=config.max_finished_sessions),
            max_finished=config.max_finished_sessions,
        )

        app.state.config = config
        app.state.drill_engine = engine
        logger.info(
            f"ChemDrill started (storage={config.storage_backend.value}, "
            f"endpoint={'set' if config.pool_endpoint else 'none, bundled data only'})"
        )
        yield

        # Cleanup
        await loader.aclose()
        cache.dispose()
        if agentfs is not None:
            await agentfs.close()
            logger.info("AgentFS closed")

    app = FastAPI(
        title="ChemDrill",
        description="Chemistry quiz session engine",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(drill_router)

    @app.get("/")
    async def root():
        """Health check."""
        return {"status": "ok", "message": f"ChemDrill v{__version__}"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
