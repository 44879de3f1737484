"""
blogsite/main.py — FastAPI application entry point
Includes: lifespan management, error handlers, CORS, edge middleware
          (bot gate + security headers), startup validation.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from blogsite.config import get_settings
from blogsite.core.errors import BlogError, blog_error_handler, unhandled_exception_handler
from blogsite.core.logging import setup_logging
from blogsite.core.middleware import edge_gate
from blogsite.routers import admin, api

settings = get_settings()


# ──────────────────────────────────────────────────────────────────────────────
# Application Lifespan
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan: startup → yield → shutdown.
    Startup: initialise structured logging, report missing configuration.
    """
    setup_logging(settings.log_level)
    logger.info("Blog core starting up...")

    _validate_env()

    logger.info("Startup complete.")
    yield
    logger.info("Shutting down blog core.")


def _validate_env() -> None:
    """
    Report secrets that are not configured. Never aborts start-up: each
    feature fails closed on its own when its secret is missing.
    """
    required = [
        ("admin_password", "ADMIN_PASSWORD"),
        ("admin_session_secret", "ADMIN_SESSION_SECRET"),
        ("api_key", "API_KEY"),
        ("sanity_project_id", "SANITY_PROJECT_ID"),
        ("sanity_api_token", "SANITY_API_TOKEN"),
    ]
    missing = [env_name for attr, env_name in required if not getattr(settings, attr, None)]

    if missing:
        msg = f"Missing env vars: {', '.join(missing)}"
        if settings.is_production:
            logger.critical(msg)
        else:
            logger.warning(msg)
        logger.warning("App will start but affected features will deny access until credentials are set.")


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Blog Core",
    description="Content import, admin editing and request protection for the blog.",
    version="1.0.0",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url=None,
    lifespan=lifespan,
)

# ── Errors ────────────────────────────────────────────────────────────────────
app.add_exception_handler(BlogError, blog_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

# ── Bot gate + security headers ───────────────────────────────────────────────
app.middleware("http")(edge_gate)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api.router, prefix="/api", tags=["api"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
