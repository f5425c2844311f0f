"""
Crosspost API - FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .database import engine, Base
from .exceptions import CrosspostError
from .limiter import limiter
from .logging_config import api_logger
from .middleware import SecurityHeadersMiddleware, RequestLoggingMiddleware
from .responses import api_exception_handler
from .routes import (
    auth_router,
    drafts_router,
    publish_router,
    accounts_router,
    calendar_router,
    health_router,
)

settings = get_settings()

# Create tables (in production, use Alembic migrations instead)
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    api_logger.info(
        "Crosspost API starting",
        environment=settings.environment,
        upload_post_configured=bool(settings.upload_post_api_key),
        optimistic_publish=settings.optimistic_publish,
        bootstrap_admins=len(settings.bootstrap_admin_emails),
    )

    yield  # App is running

    api_logger.info("Crosspost API stopped")


app = FastAPI(
    title="Crosspost API",
    description="Multi-platform social publishing through Upload-Post",
    version="1.0.0",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(CrosspostError, api_exception_handler)

# Security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# Request logging middleware (only in debug mode)
if settings.debug:
    app.add_middleware(RequestLoggingMiddleware)

# CORS - Properly configured with specific methods
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "Origin",
        "X-Requested-With",
        "X-Request-ID",
    ],
    max_age=3600,  # Cache preflight requests for 1 hour
)

# Routes
app.include_router(auth_router)
app.include_router(drafts_router)
app.include_router(publish_router)
app.include_router(accounts_router)
app.include_router(calendar_router)
app.include_router(health_router)


@app.get("/")
def root():
    """Root endpoint points at the API docs."""
    return {
        "message": "Crosspost API",
        "docs": "/api/docs" if settings.debug else "Disabled in production",
    }
