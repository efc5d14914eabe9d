import asyncio
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from actions import SignalingService
from backend import StoreBackend, build_backend
from constants import CORS_ORIGINS, JANITOR_ENABLED, JANITOR_INTERVAL_SECONDS, MAX_PLAYERS
from janitor import run_periodically
from routers.signaling import signaling_router
from logging_config import get_logger, setup_logging

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


def create_app(store: Optional[StoreBackend] = None, janitor_enabled: bool = JANITOR_ENABLED, max_players: int = MAX_PLAYERS) -> FastAPI:
    """Build the application. A store passed in is used as-is and left open on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        backend = store if store is not None else build_backend()
        service = SignalingService(backend, max_players=max_players)
        app.state.store = backend
        app.state.signaling_service = service

        janitor_task = None
        if janitor_enabled:
            janitor_task = asyncio.create_task(run_periodically(service.registry, JANITOR_INTERVAL_SECONDS))
        logger.info(f"Signaling relay started (store={type(backend).__name__}, janitor={'on' if janitor_enabled else 'off'})")
        try:
            yield
        finally:
            if janitor_task is not None:
                janitor_task.cancel()
                try:
                    await janitor_task
                except asyncio.CancelledError:
                    pass
            if store is None:
                await backend.close()
            logger.info("Signaling relay stopped")

    app = FastAPI(title="signal-relay", lifespan=lifespan)

    # Browsers call the relay directly from game pages on other origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials="*" not in CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(signaling_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    logger.info("FastAPI application initialized")
    return app


app = create_app()
