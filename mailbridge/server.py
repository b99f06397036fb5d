"""
Mail Bridge API Server

FastAPI application providing endpoints for:
- Tool invocation (mailbox read/search actions)
- OAuth login and callback
- Health check
"""

import logging
import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import config, state
from .database import open_token_store
from .graph import CollectionFetcher
from .graph.fetcher import REQUEST_TIMEOUT
from .rate_limit import setup_rate_limiting
from .routes import auth_router, misc_router, tools_router
from .scheduler import TokenSweepScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup application resources."""
    owned_client: httpx.AsyncClient | None = None

    # Startup - skip if already initialized (e.g., by tests)
    if state.tokens is None:
        state.tokens = open_token_store(config.DB_PATH)

        try:
            removed = state.tokens.sweep_expired()
            if removed:
                logger.info(f"Removed {removed} expired token(s) on startup")
        except Exception as e:
            logger.warning(f"Token cleanup failed: {e}")

        state.sweeper = TokenSweepScheduler(state.tokens, config.TOKEN_SWEEP_INTERVAL_MINUTES)
        await state.sweeper.start()

    if state.http_client is None:
        owned_client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        state.http_client = owned_client

    if state.fetcher is None:
        state.fetcher = CollectionFetcher(state.http_client)

    if not config.API_KEY:
        logger.warning("API_KEY is not set; every tool call will be rejected")
    if not config.CLIENT_ID:
        logger.warning("CLIENT_ID is not set; /login cannot start the OAuth flow")

    logger.info(f"Server running at {config.PUBLIC_BASE_URL}")

    yield

    # Shutdown
    if state.sweeper:
        try:
            await state.sweeper.stop()
        except Exception as e:
            logger.warning(f"Error stopping token sweeper: {e}")
        state.sweeper = None

    if owned_client is not None:
        await owned_client.aclose()
        if state.http_client is owned_client:
            state.http_client = None
            state.fetcher = None


app = FastAPI(
    title="Mail Bridge API",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_headers=["Content-Type", "Authorization"],
)

setup_rate_limiting(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log one line per request."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f} ms)"
    )
    return response


# Include routers
app.include_router(misc_router)
app.include_router(auth_router)
app.include_router(tools_router)


def run():
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
