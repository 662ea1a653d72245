"""
linkkeeper.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn linkkeeper.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from linkkeeper.api.deps import get_config, get_distribution_engine, get_engine  # noqa: E402
from linkkeeper.api.routes.admin import router as admin_router  # noqa: E402
from linkkeeper.api.routes.public import router as public_router  # noqa: E402
from linkkeeper.database.engine import run_db  # noqa: E402
from linkkeeper.errors import LinkKeeperError, StoreUnavailable  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine and make sure both lists exist."""
    engine = get_engine()
    distribution = get_distribution_engine(engine, get_config())
    await run_db(distribution.initialize_lists)
    logger.info("LinkKeeper API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("LinkKeeper API shutting down")


app = FastAPI(
    title="LinkKeeper Dashboard API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LinkKeeperError)
async def linkkeeper_error_handler(request: Request, exc: LinkKeeperError) -> JSONResponse:
    if isinstance(exc, StoreUnavailable):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Mount routers
app.include_router(public_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
