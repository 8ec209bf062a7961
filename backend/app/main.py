"""
Meeting CRM Sync - FastAPI application.
CORS, API versioning (/api/v1), health check, error handling, HubSpot token refresh scheduler.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest

from app.api.v1.routes import api_router
from app.core.config import get_settings
from app.services.credential_store import CredentialStore
from app.services.token_refresh_scheduler import TokenRefreshScheduler

# Send app logs (request logs, token refresh scans) to stdout for the deploy logs
_log_handler = logging.StreamHandler(sys.stdout)
_log_handler.setLevel(logging.INFO)
_log_handler.setFormatter(logging.Formatter("%(levelname)s:     %(message)s"))
_app_logger = logging.getLogger("app")
_app_logger.setLevel(logging.INFO)
if not _app_logger.handlers:
    _app_logger.addHandler(_log_handler)
logger = logging.getLogger(__name__)

# Load settings once at import so CORS list is available to middleware
_settings = get_settings()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request (method + path) so deploy logs show API traffic."""

    async def dispatch(self, request: StarletteRequest, call_next: Callable) -> Response:
        response = await call_next(request)
        logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: owns the proactive token refresh scheduler."""
    logger.info("Starting Meeting CRM Sync API")
    logger.info("CORS_ORIGINS=%s", _settings.cors_origins)
    if _settings.ENVIRONMENT == "production":
        _settings.validate_for_production()

    scheduler: TokenRefreshScheduler | None = None
    if _settings.hubspot_scheduler_enabled and _settings.SUPABASE_URL:
        scheduler = TokenRefreshScheduler(CredentialStore(), settings=_settings)
        scheduler.start()
    else:
        logger.info("HubSpot token refresh scheduler disabled")
    app.state.token_refresh_scheduler = scheduler
    yield
    if scheduler is not None:
        await scheduler.shutdown()
    logger.info("Shutting down")


app = FastAPI(
    title="Meeting CRM Sync API",
    version="1.0.0",
    description="Backend API: HubSpot contact updates from meeting insights, OAuth token lifecycle.",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handling middleware
@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


# Root and health (outside versioning)
@app.get("/")
def root():
    return {
        "message": "Meeting CRM Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "hubspot": "/api/v1/hubspot",
        },
    }


@app.get("/health")
def health():
    return {"status": "healthy"}


# API v1
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8080"))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port)
