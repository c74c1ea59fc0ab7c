"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from config import settings
from database import engine

router = APIRouter()


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "up"
    except Exception as exc:
        return f"down: {exc}"


@router.get("/health")
async def health_check():
    """Overall status. Redis only backs rate limiting, so its loss is reported but not fatal."""
    status = {"status": "healthy", "api": "up", "database": await _database_status(), "redis": "unknown"}
    if status["database"] != "up":
        status["status"] = "degraded"

    try:
        client = redis.from_url(settings.REDIS_URL)
        try:
            await client.ping()
        finally:
            await client.aclose()
        status["redis"] = "up"
    except Exception as exc:
        status["redis"] = f"down: {exc}"

    return status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    database = await _database_status()
    if database != "up":
        return JSONResponse(status_code=503, content={"ready": False, "database": database})
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
