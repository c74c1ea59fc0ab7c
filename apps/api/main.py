"""
Test Management API - FastAPI Backend
Main application entry point with health check and API routing.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import health, report, public

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Test Management API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            logger.warning("Database bootstrap skipped: %s", e)
            print(f"⚠️ Database bootstrap skipped: {e}")
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Test Management API",
    description="Organize test cases into plans, record results and share reports",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def disable_api_caching(request, call_next):
    response = await call_next(request)
    if request.url.path.startswith(("/reports", "/public")):
        response.headers["Cache-Control"] = "no-store"
    return response


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(report.router, prefix="/reports", tags=["Report"])
app.include_router(public.router, prefix="/public", tags=["Public"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Test Management API",
        "version": "0.1.0",
        "status": "running"
    }
